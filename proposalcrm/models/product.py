"""Product catalog model; `code` is the natural key for import and export."""

from decimal import Decimal

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from proposalcrm.core.time import utc_now
from proposalcrm.db.base_class import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(255), nullable=False, default="")
    list_price = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    partner_price = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    proposal_items = relationship("ProposalItem", back_populates="product")
