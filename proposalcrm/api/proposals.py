"""Proposal endpoints: lines, financial snapshot, tax recalculation, PDF and payment terms."""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from proposalcrm.api.errors import http_error
from proposalcrm.core.errors import ProposalCRMError
from proposalcrm.crud.crud_proposal import proposal_crud
from proposalcrm.crud.crud_proposal_settings import proposal_settings_crud
from proposalcrm.db.session import get_db
from proposalcrm.models.custom_tax_line import CustomTaxLine
from proposalcrm.models.engineering_line import EngineeringLine
from proposalcrm.models.expense_line import ExpenseLine
from proposalcrm.models.proposal import Proposal
from proposalcrm.schemas.financials import ProposalFinancials
from proposalcrm.schemas.lines import TaxLine
from proposalcrm.schemas.payment_terms import PaymentTerms
from proposalcrm.schemas.proposal import (
    EngineeringCreate,
    EngineeringRead,
    ExpenseCreate,
    ExpenseRead,
    ItemCreate,
    ItemRead,
    ItemUpdate,
    ProposalCreate,
    ProposalDetail,
    ProposalRead,
    ProposalUpdate,
    TaxCreate,
    TaxRead,
)
from proposalcrm.services.proposal_service import (
    build_proposal_pdf,
    get_proposal_financials,
    proposal_reference,
    recalculate_proposal_taxes,
)

router = APIRouter(prefix="/proposals", tags=["proposals"])

LINE_MODELS = {
    "engineering": EngineeringLine,
    "expenses": ExpenseLine,
    "taxes": CustomTaxLine,
}


def _get_proposal(db: Session, proposal_id: int) -> Proposal:
    proposal = proposal_crud.get(db, proposal_id=proposal_id)
    if not proposal:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proposal not found")
    return proposal


@router.post("/", response_model=ProposalRead, status_code=status.HTTP_201_CREATED)
def create_proposal(proposal_in: ProposalCreate, db: Session = Depends(get_db)):
    if proposal_in.customer_id is not None and not proposal_crud.get_customer(db, customer_id=proposal_in.customer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return proposal_crud.create(db, obj_in=proposal_in)


@router.get("/{proposal_id}", response_model=ProposalDetail)
def get_proposal(proposal_id: int, db: Session = Depends(get_db)):
    return _get_proposal(db, proposal_id)


@router.put("/{proposal_id}", response_model=ProposalRead)
def update_proposal(proposal_id: int, proposal_in: ProposalUpdate, db: Session = Depends(get_db)):
    proposal = _get_proposal(db, proposal_id)
    if proposal_in.customer_id is not None and not proposal_crud.get_customer(db, customer_id=proposal_in.customer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return proposal_crud.update(db, db_obj=proposal, obj_in=proposal_in)


@router.post("/{proposal_id}/items", response_model=ItemRead, status_code=status.HTTP_201_CREATED)
def add_item(proposal_id: int, item_in: ItemCreate, db: Session = Depends(get_db)):
    proposal = _get_proposal(db, proposal_id)
    try:
        return proposal_crud.add_item(db, proposal=proposal, obj_in=item_in)
    except ProposalCRMError as exc:
        raise http_error(exc) from exc


@router.put("/{proposal_id}/items/{item_id}", response_model=ItemRead)
def update_item(proposal_id: int, item_id: int, item_in: ItemUpdate, db: Session = Depends(get_db)):
    _get_proposal(db, proposal_id)
    item = proposal_crud.get_item(db, proposal_id=proposal_id, item_id=item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    try:
        return proposal_crud.update_item(db, db_obj=item, obj_in=item_in)
    except ProposalCRMError as exc:
        raise http_error(exc) from exc


@router.delete("/{proposal_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(proposal_id: int, item_id: int, db: Session = Depends(get_db)):
    _get_proposal(db, proposal_id)
    item = proposal_crud.get_item(db, proposal_id=proposal_id, item_id=item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    proposal_crud.delete_item(db, db_obj=item)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{proposal_id}/engineering", response_model=EngineeringRead, status_code=status.HTTP_201_CREATED)
def add_engineering(proposal_id: int, line_in: EngineeringCreate, db: Session = Depends(get_db)):
    proposal = _get_proposal(db, proposal_id)
    return proposal_crud.add_engineering(db, proposal=proposal, obj_in=line_in)


@router.post("/{proposal_id}/expenses", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED)
def add_expense(proposal_id: int, line_in: ExpenseCreate, db: Session = Depends(get_db)):
    proposal = _get_proposal(db, proposal_id)
    return proposal_crud.add_expense(db, proposal=proposal, obj_in=line_in)


@router.post("/{proposal_id}/taxes", response_model=TaxRead, status_code=status.HTTP_201_CREATED)
def add_tax(proposal_id: int, line_in: TaxCreate, db: Session = Depends(get_db)):
    proposal = _get_proposal(db, proposal_id)
    return proposal_crud.add_tax(db, proposal=proposal, obj_in=line_in)


@router.post("/{proposal_id}/taxes/recalculate", response_model=list[TaxLine])
def recalculate_taxes(proposal_id: int, db: Session = Depends(get_db)):
    _get_proposal(db, proposal_id)
    try:
        return recalculate_proposal_taxes(db, proposal_id)
    except ProposalCRMError as exc:
        raise http_error(exc) from exc


@router.delete("/{proposal_id}/{kind}/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_line(proposal_id: int, kind: str, line_id: int, db: Session = Depends(get_db)):
    model = LINE_MODELS.get(kind)
    if model is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown line kind")
    _get_proposal(db, proposal_id)
    if not proposal_crud.delete_line(db, model=model, proposal_id=proposal_id, line_id=line_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Line not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{proposal_id}/financials", response_model=ProposalFinancials)
def proposal_financials(proposal_id: int, db: Session = Depends(get_db)):
    _get_proposal(db, proposal_id)
    try:
        return get_proposal_financials(db, proposal_id)
    except ProposalCRMError as exc:
        raise http_error(exc) from exc


@router.get("/{proposal_id}/pdf")
def proposal_pdf(proposal_id: int, db: Session = Depends(get_db)):
    proposal = _get_proposal(db, proposal_id)
    try:
        content = build_proposal_pdf(db, proposal_id)
    except ProposalCRMError as exc:
        raise http_error(exc) from exc
    filename = f"proposal-{proposal_reference(proposal)}.pdf"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{proposal_id}/payment-terms", response_model=PaymentTerms)
def get_payment_terms(proposal_id: int, db: Session = Depends(get_db)):
    _get_proposal(db, proposal_id)
    return proposal_settings_crud.get_payment_terms(db, proposal_id)


@router.put("/{proposal_id}/payment-terms", response_model=PaymentTerms)
def put_payment_terms(proposal_id: int, terms_in: PaymentTerms, db: Session = Depends(get_db)):
    _get_proposal(db, proposal_id)
    return proposal_settings_crud.set_payment_terms(db, proposal_id, terms_in)
