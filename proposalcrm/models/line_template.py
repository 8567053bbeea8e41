"""Reusable boilerplate for engineering, expense, tax and day-rate lines."""

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, UniqueConstraint, func

from proposalcrm.db.base_class import Base


class LineTemplate(Base):
    __tablename__ = "line_templates"
    __table_args__ = (UniqueConstraint("kind", "name", name="uq_line_templates_kind_name"),)

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(20), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String(500), nullable=True)
    category = Column(String(100), nullable=True)
    tax_name = Column(String(100), nullable=True)
    days = Column(Numeric(12, 4), nullable=True)
    rate = Column(Numeric(12, 4), nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
