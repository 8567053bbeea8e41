"""CRUD operations for catalog products."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from proposalcrm.core.errors import PersistenceError
from proposalcrm.models.product import Product
from proposalcrm.models.proposal_item import ProposalItem
from proposalcrm.schemas.product import ProductCreate, ProductRecord, ProductUpdate, UpsertResult

logger = logging.getLogger(__name__)

UPSERT_FIELDS = ("name", "description", "category", "list_price", "partner_price")


class CRUDProduct:
    def get(self, db: Session, *, product_id: int) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    def get_by_code(self, db: Session, code: str) -> Optional[Product]:
        return db.query(Product).filter(Product.code == code).first()

    def get_multi(self, db: Session, *, skip: int = 0, limit: Optional[int] = None) -> List[Product]:
        query = db.query(Product).order_by(Product.code.asc()).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(self, db: Session) -> int:
        return db.query(Product).count()

    def create(self, db: Session, *, obj_in: ProductCreate) -> Product:
        obj = Product(**obj_in.model_dump())
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    def update(self, db: Session, *, db_obj: Product, obj_in: ProductUpdate) -> Product:
        update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if value is not None:
                setattr(db_obj, field, value)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def upsert_batch(self, db: Session, records: Sequence[ProductRecord]) -> UpsertResult:
        """Insert or update by code, committing the whole batch at once.

        A code repeated inside the batch resolves to its last row.
        """
        latest = {}
        for record in records:
            latest[record.code] = record

        result = UpsertResult()
        try:
            existing = {
                product.code: product
                for product in db.query(Product).filter(Product.code.in_(list(latest))).all()
            } if latest else {}
            for code, record in latest.items():
                product = existing.get(code)
                if product is None:
                    db.add(Product(code=code, **record.model_dump(include=set(UPSERT_FIELDS))))
                    result.created += 1
                else:
                    for field in UPSERT_FIELDS:
                        setattr(product, field, getattr(record, field))
                    result.updated += 1
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Product batch upsert failed", exc_info=True)
            raise PersistenceError(f"Product upsert failed: {exc}") from exc
        return result

    def delete_batch(self, db: Session, *, batch_size: int) -> int:
        """Delete up to `batch_size` products in one transaction; returns the number removed.

        Proposal items referencing a deleted product are detached in the same
        transaction and keep their catalog snapshot.
        """
        try:
            ids = [row.id for row in db.query(Product.id).order_by(Product.id.asc()).limit(batch_size).all()]
            if not ids:
                return 0
            db.query(ProposalItem).filter(ProposalItem.product_id.in_(ids)).update(
                {ProposalItem.product_id: None}, synchronize_session=False
            )
            db.query(Product).filter(Product.id.in_(ids)).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Product batch delete failed", exc_info=True)
            raise PersistenceError(f"Product delete failed: {exc}") from exc
        return len(ids)


product_crud = CRUDProduct()
