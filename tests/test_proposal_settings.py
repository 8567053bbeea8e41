from decimal import Decimal

import pytest

from proposalcrm.crud.crud_proposal import proposal_crud
from proposalcrm.crud.crud_proposal_settings import PAYMENT_TERMS_KEY, proposal_settings_crud
from proposalcrm.db.base import Base
from proposalcrm.db.session import SessionLocal, engine
from proposalcrm.models.proposal_setting import ProposalSetting
from proposalcrm.schemas.payment_terms import PaymentTerms
from proposalcrm.schemas.proposal import ProposalCreate


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


def test_payment_terms_default_when_unset(db):
    proposal = proposal_crud.create(db, obj_in=ProposalCreate())
    terms = proposal_settings_crud.get_payment_terms(db, proposal.id)

    assert terms == PaymentTerms()
    assert terms.payment_methods == ["Bank Transfer"]


def test_payment_terms_round_trip_per_proposal(db):
    first = proposal_crud.create(db, obj_in=ProposalCreate(number="A"))
    second = proposal_crud.create(db, obj_in=ProposalCreate(number="B"))
    terms = PaymentTerms(
        terms="Net 45",
        deposit_required=True,
        deposit_percentage=Decimal("30"),
        payment_methods=["Bank Transfer", "Cheque"],
    )

    proposal_settings_crud.set_payment_terms(db, first.id, terms)

    assert proposal_settings_crud.get_payment_terms(db, first.id) == terms
    assert proposal_settings_crud.get_payment_terms(db, second.id) == PaymentTerms()


def test_setting_twice_keeps_one_row(db):
    proposal = proposal_crud.create(db, obj_in=ProposalCreate())
    proposal_settings_crud.set_payment_terms(db, proposal.id, PaymentTerms(terms="Net 15"))
    proposal_settings_crud.set_payment_terms(db, proposal.id, PaymentTerms(terms="Net 60"))

    rows = db.query(ProposalSetting).filter(ProposalSetting.proposal_id == proposal.id).all()
    assert len(rows) == 1
    assert proposal_settings_crud.get_payment_terms(db, proposal.id).terms == "Net 60"


def test_delete_setting(db):
    proposal = proposal_crud.create(db, obj_in=ProposalCreate())
    proposal_settings_crud.set_payment_terms(db, proposal.id, PaymentTerms(terms="Net 15"))

    assert proposal_settings_crud.delete(db, proposal.id, PAYMENT_TERMS_KEY)
    assert not proposal_settings_crud.delete(db, proposal.id, PAYMENT_TERMS_KEY)
    assert proposal_settings_crud.get(db, proposal.id, PAYMENT_TERMS_KEY, PaymentTerms) is None
