"""CRUD operations for engineering, expense, tax and rate line templates."""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from proposalcrm.crud.crud_proposal import proposal_crud
from proposalcrm.models.line_template import LineTemplate
from proposalcrm.models.proposal import Proposal
from proposalcrm.schemas.line_template import LineTemplateCreate, LineTemplateUpdate, TemplateKind
from proposalcrm.schemas.proposal import EngineeringCreate, ExpenseCreate, TaxCreate

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES = [
    LineTemplateCreate(kind=TemplateKind.ENGINEERING, name="Initial Setup", description="System configuration and initial setup", days=Decimal("1"), rate=Decimal("1200"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.ENGINEERING, name="Basic Installation", description="Standard installation services", days=Decimal("0.5"), rate=Decimal("1000"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.ENGINEERING, name="Advanced Installation", description="Complex installation with custom configuration", days=Decimal("1.5"), rate=Decimal("1200"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.ENGINEERING, name="Training Session", description="User or administrator training", days=Decimal("1"), rate=Decimal("800"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.EXPENSE, name="Flight Tickets", description="Round-trip flight tickets", category="Travel", amount=Decimal("500"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.EXPENSE, name="Hotel Accommodation", description="Hotel stay for 3 nights", category="Travel", amount=Decimal("450"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.EXPENSE, name="Standard Shipping", description="Standard shipping service", category="Shipping", amount=Decimal("75"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.EXPENSE, name="Express Shipping", description="Express shipping service", category="Shipping", amount=Decimal("150"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.TAX, name="Standard VAT", tax_name="VAT", rate=Decimal("19"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.TAX, name="Reduced VAT", tax_name="VAT", rate=Decimal("7"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.TAX, name="Sales Tax", tax_name="Sales Tax", rate=Decimal("5"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.TAX, name="Service Tax", tax_name="Service Tax", rate=Decimal("10"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.RATE, name="Junior Engineer", rate=Decimal("800"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.RATE, name="Senior Engineer", rate=Decimal("1200"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.RATE, name="Lead Engineer", rate=Decimal("1500"), is_default=True),
    LineTemplateCreate(kind=TemplateKind.RATE, name="Expert Consultant", rate=Decimal("2000"), is_default=True),
]


class CRUDLineTemplate:
    def _name_taken(self, db: Session, kind: str, name: str, exclude_id: Optional[int] = None) -> bool:
        query = db.query(LineTemplate).filter(LineTemplate.kind == kind, LineTemplate.name == name)
        if exclude_id is not None:
            query = query.filter(LineTemplate.id != exclude_id)
        return db.query(query.exists()).scalar()

    def unique_name(self, db: Session, kind: str, name: str, exclude_id: Optional[int] = None) -> str:
        """Return `name`, or `name (n)` with the first free n >= 2 when it is taken."""
        candidate = name
        counter = 1
        while self._name_taken(db, kind, candidate, exclude_id):
            counter += 1
            candidate = f"{name} ({counter})"
        return candidate

    def create(self, db: Session, *, obj_in: LineTemplateCreate) -> LineTemplate:
        data = obj_in.model_dump()
        data["kind"] = obj_in.kind.value
        data["name"] = self.unique_name(db, data["kind"], obj_in.name)
        obj = LineTemplate(**data)
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    def get(self, db: Session, *, template_id: int) -> Optional[LineTemplate]:
        return db.query(LineTemplate).filter(LineTemplate.id == template_id).first()

    def get_multi(self, db: Session, *, kind: Optional[TemplateKind] = None) -> List[LineTemplate]:
        query = db.query(LineTemplate)
        if kind is not None:
            query = query.filter(LineTemplate.kind == kind.value)
        return query.order_by(LineTemplate.kind.asc(), LineTemplate.name.asc()).all()

    def update(self, db: Session, *, db_obj: LineTemplate, obj_in: LineTemplateUpdate) -> LineTemplate:
        update_data = obj_in.model_dump(exclude_unset=True)
        if update_data.get("name"):
            update_data["name"] = self.unique_name(db, db_obj.kind, update_data["name"], exclude_id=db_obj.id)
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def delete(self, db: Session, *, db_obj: LineTemplate) -> LineTemplate:
        db.delete(db_obj)
        db.commit()
        return db_obj

    def seed_defaults(self, db: Session) -> int:
        """Insert any missing default templates; returns how many were added."""
        created = 0
        for template in DEFAULT_TEMPLATES:
            if self._name_taken(db, template.kind.value, template.name):
                continue
            data = template.model_dump()
            data["kind"] = template.kind.value
            db.add(LineTemplate(**data))
            created += 1
        if created:
            db.commit()
            logger.info("Seeded %s default line templates", created)
        return created

    def apply_template(self, db: Session, template: LineTemplate, proposal: Proposal):
        """Add the line a template describes to `proposal` and return the new row."""
        kind = TemplateKind(template.kind)
        if kind == TemplateKind.ENGINEERING:
            obj_in = EngineeringCreate(
                description=template.description or template.name,
                days=template.days or Decimal("0"),
                rate=template.rate or Decimal("0"),
            )
            return proposal_crud.add_engineering(db, proposal=proposal, obj_in=obj_in)
        if kind == TemplateKind.EXPENSE:
            obj_in = ExpenseCreate(description=template.description or template.name, amount=template.amount or Decimal("0"))
            return proposal_crud.add_expense(db, proposal=proposal, obj_in=obj_in)
        if kind == TemplateKind.TAX:
            obj_in = TaxCreate(name=template.tax_name or template.name, rate=template.rate or Decimal("0"))
            return proposal_crud.add_tax(db, proposal=proposal, obj_in=obj_in)
        # a day rate becomes a one-day engineering line
        obj_in = EngineeringCreate(description=template.name, days=Decimal("1"), rate=template.rate or Decimal("0"))
        return proposal_crud.add_engineering(db, proposal=proposal, obj_in=obj_in)


line_template_crud = CRUDLineTemplate()
