"""Inputs for the proposal document layout."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from proposalcrm.schemas.lines import ProposalChildren
from proposalcrm.schemas.payment_terms import PaymentTerms


class CustomerInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None


class CompanyInfo(BaseModel):
    name: str = "Your Company"
    address: str = ""
    contact: str = ""


class ProposalDocumentContext(BaseModel):
    """Everything about a proposal the renderer prints besides the computed figures."""

    reference: str
    status: str = "Draft"
    creation_date: Optional[datetime] = None
    generated_on: date
    customer: Optional[CustomerInfo] = None
    notes: Optional[str] = None
    company: CompanyInfo = CompanyInfo()
    offer_validity_days: int = 30
    payment_terms: Optional[PaymentTerms] = None
    children: ProposalChildren = ProposalChildren()
