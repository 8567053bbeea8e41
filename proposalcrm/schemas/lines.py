"""Line models consumed by the financial engine and the document renderer.

These are deliberately lenient: range checks belong to the engine, which
reports them as `ValidationError` instead of silently accepting bad totals.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ItemLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    product_id: Optional[int] = None
    product_code: Optional[str] = None
    product_name: str = ""
    category: str = ""
    description: str = ""
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    multiplier: Decimal = Decimal("1")
    list_price: Decimal = Decimal("0")
    partner_price: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    apply_custom_tax: bool = False


class EngineeringLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    description: str = ""
    days: Decimal = Decimal("0")
    rate: Decimal = Decimal("0")
    amount: Optional[Decimal] = None


class ExpenseLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    description: str = ""
    amount: Decimal = Decimal("0")


class TaxLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    rate: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")


class ProposalChildren(BaseModel):
    items: List[ItemLine] = []
    engineering: List[EngineeringLine] = []
    expenses: List[ExpenseLine] = []
    taxes: List[TaxLine] = []
