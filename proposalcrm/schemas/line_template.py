"""Line template schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TemplateKind(str, Enum):
    ENGINEERING = "engineering"
    EXPENSE = "expense"
    TAX = "tax"
    RATE = "rate"


class LineTemplateBase(BaseModel):
    kind: TemplateKind
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    tax_name: Optional[str] = None
    days: Optional[Decimal] = None
    rate: Optional[Decimal] = None
    amount: Optional[Decimal] = None


class LineTemplateCreate(LineTemplateBase):
    is_default: bool = False


class LineTemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    tax_name: Optional[str] = None
    days: Optional[Decimal] = None
    rate: Optional[Decimal] = None
    amount: Optional[Decimal] = None


class LineTemplateRead(LineTemplateBase):
    id: int
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
