"""Computed financial snapshot of a proposal."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

ZERO = Decimal("0")


class LineFinancials(BaseModel):
    """Per-item figures derived from an `ItemLine`."""

    id: Optional[int] = None
    product_code: str = ""
    product_name: str = ""
    category: str = ""
    quantity: Decimal
    list_price: Decimal
    multiplier: Decimal
    discount: Decimal
    unit_price: Decimal
    amount: Decimal
    cost: Decimal
    profit: Decimal
    margin_pct: Decimal
    amount_with_vat: Decimal


class CategoryBreakdown(BaseModel):
    category: str
    count: int
    revenue: Decimal
    cost: Decimal
    profit: Decimal
    margin_pct: Decimal


class ExpenseBreakdown(BaseModel):
    shipping: Decimal = ZERO
    insurance: Decimal = ZERO
    other: Decimal = ZERO


class ProposalFinancials(BaseModel):
    subtotal_products: Decimal = ZERO
    subtotal_engineering: Decimal = ZERO
    subtotal_expenses: Decimal = ZERO
    subtotal_taxes: Decimal = ZERO
    total_amount: Decimal = ZERO

    custom_tax_base: Decimal = ZERO
    vat_rate_percent: Decimal = ZERO
    vat_amount: Decimal = ZERO
    total_with_vat: Decimal = ZERO

    product_cost: Decimal = ZERO
    expenses: ExpenseBreakdown = ExpenseBreakdown()
    total_cost: Decimal = ZERO

    product_profit: Decimal = ZERO
    engineering_profit: Decimal = ZERO
    gross_profit: Decimal = ZERO
    margin_pct: Decimal = ZERO
    roi_pct: Decimal = ZERO
    target_margin_pct: Decimal = ZERO
    margin_gap_pct: Decimal = ZERO

    lines: List[LineFinancials] = []
    categories: List[CategoryBreakdown] = []
