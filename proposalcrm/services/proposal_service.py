"""Proposal use cases that combine persistence with the pure engine and renderer."""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from proposalcrm.core.formatting import FormatConfig
from proposalcrm.core.settings import get_settings
from proposalcrm.core.time import utc_now
from proposalcrm.crud.crud_proposal import proposal_crud
from proposalcrm.crud.crud_proposal_settings import proposal_settings_crud
from proposalcrm.schemas.document import CompanyInfo, CustomerInfo, ProposalDocumentContext
from proposalcrm.schemas.financials import ProposalFinancials
from proposalcrm.schemas.lines import TaxLine
from proposalcrm.services.financials import compute_financials, recalculate_custom_taxes
from proposalcrm.services.pdf_renderer import generate_proposal_pdf

logger = logging.getLogger(__name__)


def proposal_reference(proposal) -> str:
    return proposal.number or f"PROP-{proposal.id:05d}"


def get_proposal_financials(db: Session, proposal_id: int, config: Optional[FormatConfig] = None) -> ProposalFinancials:
    settings = get_settings()
    config = config or settings.format_config()
    children = proposal_crud.load_children(db, proposal_id)
    return compute_financials(children, config.vat_rate_percent, settings.target_margin_pct)


def recalculate_proposal_taxes(db: Session, proposal_id: int) -> List[TaxLine]:
    """Recompute every custom tax amount and persist them together."""
    children = proposal_crud.load_children(db, proposal_id)
    updated = recalculate_custom_taxes(children.items, children.taxes)
    proposal_crud.save_tax_lines(db, proposal_id, updated)
    logger.info("Recalculated %s custom tax line(s) for proposal %s", len(updated), proposal_id)
    return updated


def build_document_context(db: Session, proposal_id: int, today: Optional[date] = None) -> ProposalDocumentContext:
    settings = get_settings()
    proposal = proposal_crud.get(db, proposal_id=proposal_id)
    children = proposal_crud.load_children(db, proposal_id)
    customer = CustomerInfo.model_validate(proposal.customer) if proposal.customer else None
    return ProposalDocumentContext(
        reference=proposal_reference(proposal),
        status=proposal.status,
        creation_date=proposal.creation_date,
        generated_on=today or utc_now().date(),
        customer=customer,
        notes=proposal.notes,
        company=CompanyInfo(
            name=settings.company_name,
            address=settings.company_address,
            contact=settings.company_contact,
        ),
        offer_validity_days=settings.offer_validity_days,
        payment_terms=proposal_settings_crud.get_payment_terms(db, proposal_id),
        children=children,
    )


def build_proposal_pdf(
    db: Session,
    proposal_id: int,
    config: Optional[FormatConfig] = None,
    today: Optional[date] = None,
) -> bytes:
    config = config or get_settings().format_config()
    context = build_document_context(db, proposal_id, today)
    financials = get_proposal_financials(db, proposal_id, config)
    return generate_proposal_pdf(context, financials, config)
