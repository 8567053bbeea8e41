from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from proposalcrm.core.errors import PersistenceError, ValidationError
from proposalcrm.crud.crud_product import product_crud
from proposalcrm.crud.crud_proposal import proposal_crud
from proposalcrm.db.base import Base
from proposalcrm.db.session import SessionLocal, engine
from proposalcrm.models.engineering_line import EngineeringLine
from proposalcrm.schemas.product import ProductCreate
from proposalcrm.schemas.proposal import (
    EngineeringCreate,
    ExpenseCreate,
    ItemCreate,
    ItemUpdate,
    ProposalCreate,
    TaxCreate,
)
from proposalcrm.services.financials import recalculate_custom_taxes
from proposalcrm.services.product_import import delete_all_products
from proposalcrm.services.proposal_service import get_proposal_financials, recalculate_proposal_taxes


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def proposal(db):
    product_crud.create(db, obj_in=ProductCreate(code="PUMP", name="Pump", category="Hydraulics",
                                                 list_price=Decimal("100"), partner_price=Decimal("50")))
    product_crud.create(db, obj_in=ProductCreate(code="VALVE", name="Valve", category="Hydraulics",
                                                 list_price=Decimal("100"), partner_price=Decimal("30")))
    proposal = proposal_crud.create(db, obj_in=ProposalCreate(number="Q-1"))
    proposal_crud.add_item(db, proposal=proposal, obj_in=ItemCreate(product_code="PUMP", quantity=Decimal("2"), apply_custom_tax=True))
    proposal_crud.add_item(db, proposal=proposal, obj_in=ItemCreate(product_code="VALVE", quantity=Decimal("1")))
    for name, rate in (("Customs", "10"), ("Levy", "5"), ("Stamp", "1")):
        proposal_crud.add_tax(db, proposal=proposal, obj_in=TaxCreate(name=name, rate=Decimal(rate)))
    return proposal


def stored_amounts(proposal_id):
    session = SessionLocal()
    try:
        return [tax.amount for tax in proposal_crud.list_taxes(session, proposal_id=proposal_id)]
    finally:
        session.close()


def test_add_item_prices_from_list(db, proposal):
    items = sorted(proposal_crud.load_children(db, proposal.id).items, key=lambda i: i.product_code)
    assert items[0].unit_price == Decimal("100.00")
    assert items[0].amount == Decimal("200.00")

    row = proposal_crud.get_item(db, proposal_id=proposal.id, item_id=items[0].id)
    updated = proposal_crud.update_item(db, db_obj=row, obj_in=ItemUpdate(discount=Decimal("10")))
    assert updated.unit_price == Decimal("90.00")
    assert updated.amount == Decimal("180.00")


def test_add_item_with_unknown_product(db, proposal):
    with pytest.raises(ValidationError):
        proposal_crud.add_item(db, proposal=proposal, obj_in=ItemCreate(product_code="NOPE"))


def test_recalculate_persists_every_tax(db, proposal):
    updated = recalculate_proposal_taxes(db, proposal.id)

    assert [t.amount for t in updated] == [Decimal("10.00"), Decimal("5.00"), Decimal("1.00")]
    assert stored_amounts(proposal.id) == [Decimal("10.00"), Decimal("5.00"), Decimal("1.00")]

    financials = get_proposal_financials(db, proposal.id)
    assert financials.subtotal_taxes == Decimal("16.00")
    assert financials.total_amount == Decimal("316.00")


def test_unknown_tax_line_writes_nothing(db, proposal):
    children = proposal_crud.load_children(db, proposal.id)
    updated = recalculate_custom_taxes(children.items, children.taxes)
    updated[1] = updated[1].model_copy(update={"id": 9999})

    with pytest.raises(PersistenceError):
        proposal_crud.save_tax_lines(db, proposal.id, updated)

    assert stored_amounts(proposal.id) == [Decimal("0.00")] * 3


def test_commit_failure_writes_nothing(db, proposal, monkeypatch):
    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(PersistenceError):
        recalculate_proposal_taxes(db, proposal.id)

    assert stored_amounts(proposal.id) == [Decimal("0.00")] * 3


def test_load_children_for_missing_proposal(db):
    with pytest.raises(PersistenceError):
        proposal_crud.load_children(db, 42)


def test_engineering_and_expense_lines(db, proposal):
    line = proposal_crud.add_engineering(db, proposal=proposal, obj_in=EngineeringCreate(
        description="Commissioning", days=Decimal("2.5"), rate=Decimal("800")))
    proposal_crud.add_expense(db, proposal=proposal, obj_in=ExpenseCreate(description="Freight", amount=Decimal("120")))
    assert line.amount == Decimal("2000.00")

    financials = get_proposal_financials(db, proposal.id)
    assert financials.subtotal_engineering == Decimal("2000.00")
    assert financials.expenses.shipping == Decimal("120.00")

    assert proposal_crud.delete_line(db, model=EngineeringLine, proposal_id=proposal.id, line_id=line.id)
    assert not proposal_crud.delete_line(db, model=EngineeringLine, proposal_id=proposal.id, line_id=line.id)


def test_items_keep_catalog_snapshot_after_products_are_deleted(db, proposal):
    before = get_proposal_financials(db, proposal.id)

    delete_all_products(db, batch_size=1)

    items = sorted(proposal_crud.load_children(db, proposal.id).items, key=lambda i: i.product_code)
    assert [(i.product_id, i.product_code, i.partner_price) for i in items] == [
        (None, "PUMP", Decimal("50.00")),
        (None, "VALVE", Decimal("30.00")),
    ]
    after = get_proposal_financials(db, proposal.id)
    assert (after.total_amount, after.gross_profit) == (before.total_amount, before.gross_profit)

    row = proposal_crud.get_item(db, proposal_id=proposal.id, item_id=items[0].id)
    updated = proposal_crud.update_item(db, db_obj=row, obj_in=ItemUpdate(discount=Decimal("20")))
    assert updated.unit_price == Decimal("80.00")
