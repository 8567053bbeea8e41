"""Proposal, customer and line schemas for the HTTP surface."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class ProposalStatus(str, Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    SENT = "Sent"
    WON = "Won"
    LOST = "Lost"
    EXPIRED = "Expired"


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1)
    contact_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None


class CustomerRead(CustomerCreate):
    id: int
    email: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProposalCreate(BaseModel):
    number: Optional[str] = None
    customer_id: Optional[int] = None
    status: ProposalStatus = ProposalStatus.DRAFT
    notes: Optional[str] = None


class ProposalUpdate(BaseModel):
    number: Optional[str] = None
    customer_id: Optional[int] = None
    status: Optional[ProposalStatus] = None
    notes: Optional[str] = None


class ItemCreate(BaseModel):
    """A product line. Without `unit_price` the price is derived from the list price."""

    product_id: Optional[int] = None
    product_code: Optional[str] = None
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    multiplier: Decimal = Field(default=Decimal("1"), ge=0)
    apply_custom_tax: bool = False
    custom_description: Optional[str] = None

    @model_validator(mode="after")
    def require_product(self):
        if self.product_id is None and not self.product_code:
            raise ValueError("product_id or product_code is required")
        return self


class ItemUpdate(BaseModel):
    quantity: Optional[Decimal] = Field(default=None, gt=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    discount: Optional[Decimal] = Field(default=None, ge=0, le=100)
    multiplier: Optional[Decimal] = Field(default=None, ge=0)
    apply_custom_tax: Optional[bool] = None
    custom_description: Optional[str] = None


class ItemRead(BaseModel):
    id: int
    product_id: Optional[int] = None
    product_code: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    multiplier: Decimal
    amount: Decimal
    apply_custom_tax: bool
    custom_description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class EngineeringCreate(BaseModel):
    description: str = ""
    days: Decimal = Field(default=Decimal("0"), ge=0)
    rate: Decimal = Field(default=Decimal("0"), ge=0)


class EngineeringRead(EngineeringCreate):
    id: int
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class ExpenseCreate(BaseModel):
    description: str = ""
    amount: Decimal = Field(default=Decimal("0"), ge=0)


class ExpenseRead(ExpenseCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)


class TaxCreate(BaseModel):
    name: str = Field(min_length=1)
    rate: Decimal = Field(default=Decimal("0"), ge=0)


class TaxRead(TaxCreate):
    id: int
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class ProposalRead(BaseModel):
    id: int
    number: Optional[str] = None
    customer_id: Optional[int] = None
    status: ProposalStatus
    notes: Optional[str] = None
    creation_date: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProposalDetail(ProposalRead):
    items: List[ItemRead] = []
    engineering: List[EngineeringRead] = []
    expenses: List[ExpenseRead] = []
    taxes: List[TaxRead] = []
