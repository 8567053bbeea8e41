"""Customer model referenced by proposals."""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from proposalcrm.core.time import utc_now
from proposalcrm.db.base_class import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    tax_id = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    proposals = relationship("Proposal", back_populates="customer")
