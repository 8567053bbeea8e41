"""Per-proposal typed settings stored as JSON rows keyed by (proposal_id, key)."""

from typing import Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Session

from proposalcrm.models.proposal_setting import ProposalSetting
from proposalcrm.schemas.payment_terms import PaymentTerms

PAYMENT_TERMS_KEY = "payment_terms"

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class CRUDProposalSettings:
    def _row(self, db: Session, proposal_id: int, key: str) -> Optional[ProposalSetting]:
        return (
            db.query(ProposalSetting)
            .filter(ProposalSetting.proposal_id == proposal_id, ProposalSetting.key == key)
            .first()
        )

    def get(self, db: Session, proposal_id: int, key: str, schema: Type[SchemaT]) -> Optional[SchemaT]:
        row = self._row(db, proposal_id, key)
        if row is None:
            return None
        return schema.model_validate(row.value)

    def set(self, db: Session, proposal_id: int, key: str, value: BaseModel) -> ProposalSetting:
        payload = value.model_dump(mode="json")
        row = self._row(db, proposal_id, key)
        if row is None:
            row = ProposalSetting(proposal_id=proposal_id, key=key, value=payload)
            db.add(row)
        else:
            row.value = payload
        db.commit()
        db.refresh(row)
        return row

    def delete(self, db: Session, proposal_id: int, key: str) -> bool:
        row = self._row(db, proposal_id, key)
        if row is None:
            return False
        db.delete(row)
        db.commit()
        return True

    def get_payment_terms(self, db: Session, proposal_id: int) -> PaymentTerms:
        return self.get(db, proposal_id, PAYMENT_TERMS_KEY, PaymentTerms) or PaymentTerms()

    def set_payment_terms(self, db: Session, proposal_id: int, terms: PaymentTerms) -> PaymentTerms:
        self.set(db, proposal_id, PAYMENT_TERMS_KEY, terms)
        return terms


proposal_settings_crud = CRUDProposalSettings()
