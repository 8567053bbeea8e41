"""Proposal aggregate root; owns every line collection."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from proposalcrm.core.time import utc_now
from proposalcrm.db.base_class import Base


class Proposal(Base):
    __tablename__ = "proposals"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(50), nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    status = Column(String, default="Draft", nullable=False)
    notes = Column(Text, nullable=True)
    creation_date = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    customer = relationship("Customer", back_populates="proposals")
    items = relationship("ProposalItem", back_populates="proposal", cascade="all, delete-orphan")
    engineering = relationship("EngineeringLine", back_populates="proposal", cascade="all, delete-orphan")
    expenses = relationship("ExpenseLine", back_populates="proposal", cascade="all, delete-orphan")
    taxes = relationship("CustomTaxLine", back_populates="proposal", cascade="all, delete-orphan")
    settings = relationship("ProposalSetting", back_populates="proposal", cascade="all, delete-orphan")
