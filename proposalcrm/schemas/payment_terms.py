from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class PaymentTerms(BaseModel):
    terms: str = ""
    deposit_required: bool = False
    deposit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    deposit_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    payment_methods: List[str] = ["Bank Transfer"]
    late_penalty: str = ""
    invoice_schedule: str = ""
    custom_terms: str = ""
