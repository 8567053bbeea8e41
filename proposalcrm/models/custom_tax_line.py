"""Custom tax line; its amount is derived from the proposal's custom tax base."""

from decimal import Decimal

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from proposalcrm.db.base_class import Base


class CustomTaxLine(Base):
    __tablename__ = "custom_tax_lines"

    id = Column(Integer, primary_key=True, index=True)
    proposal_id = Column(Integer, ForeignKey("proposals.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    rate = Column(Numeric(7, 4), nullable=False, default=Decimal("0"))
    amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    proposal = relationship("Proposal", back_populates="taxes")
