"""Product schemas shared by the API and the CSV codec."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductRecord(BaseModel):
    """Flat product row as exchanged through CSV."""

    code: str
    name: str
    description: str = ""
    category: str = ""
    list_price: Decimal = Decimal("0")
    partner_price: Decimal = Decimal("0")

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    category: str = ""
    list_price: Decimal = Field(default=Decimal("0"), ge=0)
    partner_price: Decimal = Field(default=Decimal("0"), ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    list_price: Optional[Decimal] = Field(default=None, ge=0)
    partner_price: Optional[Decimal] = Field(default=None, ge=0)


class ProductRead(ProductRecord):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UpsertResult(BaseModel):
    created: int = 0
    updated: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated
