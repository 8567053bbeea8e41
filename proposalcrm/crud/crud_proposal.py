"""Proposal aggregate persistence: the proposal row and its four line collections."""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from proposalcrm.core.errors import PersistenceError, ValidationError
from proposalcrm.crud.crud_product import product_crud
from proposalcrm.models.custom_tax_line import CustomTaxLine
from proposalcrm.models.customer import Customer
from proposalcrm.models.engineering_line import EngineeringLine as EngineeringRow
from proposalcrm.models.expense_line import ExpenseLine as ExpenseRow
from proposalcrm.models.product import Product
from proposalcrm.models.proposal import Proposal
from proposalcrm.models.proposal_item import ProposalItem
from proposalcrm.schemas.lines import EngineeringLine, ExpenseLine, ItemLine, ProposalChildren, TaxLine
from proposalcrm.schemas.proposal import (
    CustomerCreate,
    EngineeringCreate,
    ExpenseCreate,
    ItemCreate,
    ItemUpdate,
    ProposalCreate,
    ProposalUpdate,
    TaxCreate,
)
from proposalcrm.services.financials import compute_engineering_amount, compute_line_amount, price_from_list

logger = logging.getLogger(__name__)


def item_line_from_row(row: ProposalItem) -> ItemLine:
    product = row.product
    if product is None:
        return ItemLine(
            id=row.id,
            product_code=row.product_code,
            product_name=row.product_name or "",
            category=row.category or "",
            description=row.custom_description or "",
            quantity=row.quantity,
            unit_price=row.unit_price,
            discount=row.discount,
            multiplier=row.multiplier,
            list_price=row.list_price if row.list_price is not None else Decimal("0"),
            partner_price=row.partner_price,
            amount=row.amount,
            apply_custom_tax=row.apply_custom_tax,
        )
    return ItemLine(
        id=row.id,
        product_id=row.product_id,
        product_code=product.code,
        product_name=product.name or "",
        category=product.category or "",
        description=row.custom_description or product.description or "",
        quantity=row.quantity,
        unit_price=row.unit_price,
        discount=row.discount,
        multiplier=row.multiplier,
        list_price=product.list_price,
        partner_price=product.partner_price,
        amount=row.amount,
        apply_custom_tax=row.apply_custom_tax,
    )


def _refresh_item_amount(row: ProposalItem) -> None:
    row.amount = compute_line_amount(ItemLine(quantity=row.quantity, unit_price=row.unit_price))


class CRUDProposal:
    def create_customer(self, db: Session, *, obj_in: CustomerCreate) -> Customer:
        obj = Customer(**obj_in.model_dump())
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    def get_customer(self, db: Session, *, customer_id: int) -> Optional[Customer]:
        return db.query(Customer).filter(Customer.id == customer_id).first()

    def create(self, db: Session, *, obj_in: ProposalCreate) -> Proposal:
        data = obj_in.model_dump()
        data["status"] = obj_in.status.value
        obj = Proposal(**data)
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    def get(self, db: Session, *, proposal_id: int) -> Optional[Proposal]:
        return db.query(Proposal).filter(Proposal.id == proposal_id).first()

    def update(self, db: Session, *, db_obj: Proposal, obj_in: ProposalUpdate) -> Proposal:
        update_data = obj_in.model_dump(exclude_unset=True)
        if update_data.get("status") is not None:
            update_data["status"] = obj_in.status.value
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def load_children(self, db: Session, proposal_id: int) -> ProposalChildren:
        proposal = self.get(db, proposal_id=proposal_id)
        if proposal is None:
            raise PersistenceError(f"Proposal {proposal_id} not found")
        return ProposalChildren(
            items=[item_line_from_row(row) for row in proposal.items],
            engineering=[EngineeringLine.model_validate(row) for row in proposal.engineering],
            expenses=[ExpenseLine.model_validate(row) for row in proposal.expenses],
            taxes=[TaxLine.model_validate(row) for row in proposal.taxes],
        )

    def save_tax_lines(self, db: Session, proposal_id: int, lines: Sequence[TaxLine]) -> None:
        """Write every tax amount in one transaction; on any failure none are written."""
        try:
            for line in lines:
                row = (
                    db.query(CustomTaxLine)
                    .filter(CustomTaxLine.id == line.id, CustomTaxLine.proposal_id == proposal_id)
                    .first()
                )
                if row is None:
                    raise PersistenceError(f"Tax line {line.id} not found on proposal {proposal_id}")
                row.amount = line.amount
            db.commit()
        except (SQLAlchemyError, PersistenceError) as exc:
            db.rollback()
            logger.error("Saving tax lines for proposal %s failed", proposal_id, exc_info=True)
            if isinstance(exc, PersistenceError):
                raise
            raise PersistenceError(f"Saving tax lines failed: {exc}") from exc

    # -- items ------------------------------------------------------------------

    def _resolve_product(self, db: Session, obj_in: ItemCreate) -> Product:
        product = None
        if obj_in.product_id is not None:
            product = product_crud.get(db, product_id=obj_in.product_id)
        elif obj_in.product_code:
            product = product_crud.get_by_code(db, obj_in.product_code)
        if product is None:
            raise ValidationError("Referenced product does not exist")
        return product

    def add_item(self, db: Session, *, proposal: Proposal, obj_in: ItemCreate) -> ProposalItem:
        product = self._resolve_product(db, obj_in)
        unit_price = obj_in.unit_price
        if unit_price is None:
            unit_price = price_from_list(Decimal(product.list_price), obj_in.multiplier, obj_in.discount)
        row = ProposalItem(
            proposal_id=proposal.id,
            product_id=product.id,
            product_code=product.code,
            product_name=product.name,
            category=product.category,
            list_price=product.list_price,
            partner_price=product.partner_price,
            quantity=obj_in.quantity,
            unit_price=unit_price,
            discount=obj_in.discount,
            multiplier=obj_in.multiplier,
            apply_custom_tax=obj_in.apply_custom_tax,
            custom_description=obj_in.custom_description,
        )
        _refresh_item_amount(row)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    def get_item(self, db: Session, *, proposal_id: int, item_id: int) -> Optional[ProposalItem]:
        return (
            db.query(ProposalItem)
            .filter(ProposalItem.id == item_id, ProposalItem.proposal_id == proposal_id)
            .first()
        )

    def update_item(self, db: Session, *, db_obj: ProposalItem, obj_in: ItemUpdate) -> ProposalItem:
        update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if value is not None or field == "custom_description":
                setattr(db_obj, field, value)
        if "unit_price" not in update_data and ({"discount", "multiplier"} & set(update_data)):
            product = db_obj.product
            list_price = product.list_price if product is not None else db_obj.list_price
            if list_price is not None:
                db_obj.unit_price = price_from_list(
                    Decimal(list_price), Decimal(db_obj.multiplier), Decimal(db_obj.discount)
                )
        _refresh_item_amount(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def delete_item(self, db: Session, *, db_obj: ProposalItem) -> ProposalItem:
        db.delete(db_obj)
        db.commit()
        return db_obj

    # -- engineering, expenses, taxes --------------------------------------------

    def add_engineering(self, db: Session, *, proposal: Proposal, obj_in: EngineeringCreate) -> EngineeringRow:
        line = EngineeringLine(**obj_in.model_dump())
        row = EngineeringRow(proposal_id=proposal.id, amount=compute_engineering_amount(line), **obj_in.model_dump())
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    def add_expense(self, db: Session, *, proposal: Proposal, obj_in: ExpenseCreate) -> ExpenseRow:
        row = ExpenseRow(proposal_id=proposal.id, **obj_in.model_dump())
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    def add_tax(self, db: Session, *, proposal: Proposal, obj_in: TaxCreate) -> CustomTaxLine:
        row = CustomTaxLine(proposal_id=proposal.id, amount=Decimal("0.00"), **obj_in.model_dump())
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    def delete_line(self, db: Session, *, model, proposal_id: int, line_id: int) -> bool:
        row = db.query(model).filter(model.id == line_id, model.proposal_id == proposal_id).first()
        if row is None:
            return False
        db.delete(row)
        db.commit()
        return True

    def list_taxes(self, db: Session, *, proposal_id: int) -> List[CustomTaxLine]:
        return (
            db.query(CustomTaxLine)
            .filter(CustomTaxLine.proposal_id == proposal_id)
            .order_by(CustomTaxLine.name.asc(), CustomTaxLine.id.asc())
            .all()
        )


proposal_crud = CRUDProposal()
