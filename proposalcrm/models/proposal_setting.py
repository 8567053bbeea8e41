"""Typed per-proposal settings (payment terms and similar), one row per key."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from proposalcrm.core.time import utc_now
from proposalcrm.db.base_class import Base


class ProposalSetting(Base):
    __tablename__ = "proposal_settings"
    __table_args__ = (UniqueConstraint("proposal_id", "key", name="uq_proposal_settings_key"),)

    id = Column(Integer, primary_key=True, index=True)
    proposal_id = Column(Integer, ForeignKey("proposals.id"), nullable=False, index=True)
    key = Column(String(100), nullable=False)
    value = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    proposal = relationship("Proposal", back_populates="settings")
