from decimal import Decimal

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from proposalcrm.db.base_class import Base


class ExpenseLine(Base):
    __tablename__ = "expense_lines"

    id = Column(Integer, primary_key=True, index=True)
    proposal_id = Column(Integer, ForeignKey("proposals.id"), nullable=False, index=True)
    description = Column(String(500), nullable=False, default="")
    amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    proposal = relationship("Proposal", back_populates="expenses")
