"""Proposal line referencing a catalog product."""

from decimal import Decimal

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from proposalcrm.db.base_class import Base


class ProposalItem(Base):
    __tablename__ = "proposal_items"

    id = Column(Integer, primary_key=True, index=True)
    proposal_id = Column(Integer, ForeignKey("proposals.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    # catalog values at the time the item was added; used once the product is deleted
    product_code = Column(String(100), nullable=True)
    product_name = Column(String(255), nullable=True)
    category = Column(String(255), nullable=True)
    list_price = Column(Numeric(12, 2), nullable=True)
    partner_price = Column(Numeric(12, 2), nullable=True)
    quantity = Column(Numeric(12, 4), nullable=False, default=Decimal("1"))
    unit_price = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    discount = Column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    multiplier = Column(Numeric(12, 4), nullable=False, default=Decimal("1"))
    amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    apply_custom_tax = Column(Boolean, nullable=False, default=False)
    custom_description = Column(String(500), nullable=True)

    proposal = relationship("Proposal", back_populates="items")
    product = relationship("Product", back_populates="proposal_items")
