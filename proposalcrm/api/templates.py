"""Line template endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from proposalcrm.crud.crud_line_template import line_template_crud
from proposalcrm.crud.crud_proposal import proposal_crud
from proposalcrm.db.session import get_db
from proposalcrm.schemas.line_template import LineTemplateCreate, LineTemplateRead, LineTemplateUpdate, TemplateKind

router = APIRouter(prefix="/templates", tags=["templates"])


def _get_template(db: Session, template_id: int):
    template = line_template_crud.get(db, template_id=template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return template


@router.get("/", response_model=list[LineTemplateRead])
def list_templates(kind: Optional[TemplateKind] = None, db: Session = Depends(get_db)):
    return line_template_crud.get_multi(db, kind=kind)


@router.post("/", response_model=LineTemplateRead, status_code=status.HTTP_201_CREATED)
def create_template(template_in: LineTemplateCreate, db: Session = Depends(get_db)):
    return line_template_crud.create(db, obj_in=template_in)


@router.put("/{template_id}", response_model=LineTemplateRead)
def update_template(template_id: int, template_in: LineTemplateUpdate, db: Session = Depends(get_db)):
    template = _get_template(db, template_id)
    return line_template_crud.update(db, db_obj=template, obj_in=template_in)


@router.delete("/{template_id}", response_model=LineTemplateRead)
def delete_template(template_id: int, db: Session = Depends(get_db)):
    template = _get_template(db, template_id)
    return line_template_crud.delete(db, db_obj=template)


@router.post("/{template_id}/apply/{proposal_id}", status_code=status.HTTP_201_CREATED)
def apply_template(template_id: int, proposal_id: int, db: Session = Depends(get_db)):
    template = _get_template(db, template_id)
    proposal = proposal_crud.get(db, proposal_id=proposal_id)
    if not proposal:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proposal not found")
    kind = template.kind
    line = line_template_crud.apply_template(db, template, proposal)
    return {"kind": kind, "line_id": line.id}
