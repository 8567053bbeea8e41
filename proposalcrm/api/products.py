"""Product catalog endpoints, including CSV import and export."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from proposalcrm.api.errors import http_error
from proposalcrm.core.errors import ProposalCRMError
from proposalcrm.core.settings import get_settings
from proposalcrm.crud.crud_product import product_crud
from proposalcrm.db.session import get_db
from proposalcrm.schemas.imports import DeleteReport, ImportReport
from proposalcrm.schemas.product import ProductCreate, ProductRead, ProductUpdate
from proposalcrm.services.csv_codec import decode_bytes, format_products
from proposalcrm.services.product_import import delete_all_products, import_products

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/", response_model=list[ProductRead])
def list_products(skip: int = 0, limit: Optional[int] = Query(default=None, ge=1), db: Session = Depends(get_db)):
    return product_crud.get_multi(db, skip=skip, limit=limit)


@router.post("/", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(product_in: ProductCreate, db: Session = Depends(get_db)):
    if product_crud.get_by_code(db, product_in.code):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product code already exists")
    return product_crud.create(db, obj_in=product_in)


@router.get("/export")
def export_products(db: Session = Depends(get_db)):
    content = format_products(product_crud.get_multi(db))
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="products.csv"'},
    )


@router.post("/import", response_model=ImportReport)
async def import_products_csv(
    request: Request,
    batch_size: Optional[int] = Query(default=None, ge=1),
    start_batch: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    """Import a raw CSV request body in any common encoding."""
    text = decode_bytes(await request.body())
    size = batch_size or get_settings().import_batch_size
    try:
        return await run_in_threadpool(import_products, db, text, size, None, None, start_batch)
    except ProposalCRMError as exc:
        raise http_error(exc) from exc


@router.delete("/", response_model=DeleteReport)
def delete_products(batch_size: Optional[int] = Query(default=None, ge=1), db: Session = Depends(get_db)):
    try:
        return delete_all_products(db, batch_size or get_settings().delete_batch_size)
    except ProposalCRMError as exc:
        raise http_error(exc) from exc


@router.get("/{code}", response_model=ProductRead)
def get_product(code: str, db: Session = Depends(get_db)):
    product = product_crud.get_by_code(db, code)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.put("/{code}", response_model=ProductRead)
def update_product(code: str, product_in: ProductUpdate, db: Session = Depends(get_db)):
    product = product_crud.get_by_code(db, code)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product_crud.update(db, db_obj=product, obj_in=product_in)
