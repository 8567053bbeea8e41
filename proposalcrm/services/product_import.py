"""Batched product catalog import and bulk delete.

Each batch is decoded, upserted and committed on its own, so a failure or a
cancellation leaves whole batches applied and none half applied. Callers can
resume a failed import with `start_batch` set to the reported failed batch.
"""

import logging
from typing import Callable, Dict, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from proposalcrm.core.errors import PersistenceError
from proposalcrm.crud.crud_product import product_crud
from proposalcrm.schemas.imports import BatchProgress, DeleteReport, ImportReport
from proposalcrm.services.csv_codec import DEFAULT_BATCH_SIZE, DEFAULT_COLUMN_ALIASES, ProductCSVDecoder, Source

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


def _cancelled(cancel: Optional[CancelToken]) -> bool:
    return cancel is not None and cancel.is_set()


def import_products(
    db: Session,
    source: Source,
    batch_size: int = DEFAULT_BATCH_SIZE,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancelToken] = None,
    start_batch: int = 0,
    aliases: Dict[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES,
) -> ImportReport:
    """Import a product CSV, one committed transaction per batch.

    `cancel` (anything with `is_set()`, e.g. `threading.Event`) is checked
    between batches only. File-level parse errors propagate before anything
    is written.
    """
    decoder = ProductCSVDecoder(source, aliases, batch_size)
    report = ImportReport()

    for batch in decoder.batches():
        report.separator = decoder.separator
        report.line_ending = decoder.line_ending
        if batch.index < start_batch:
            logger.debug("Skipping batch %s below start batch %s", batch.index, start_batch)
            continue
        if _cancelled(cancel):
            report.status = "cancelled"
            logger.info("Product import cancelled before batch %s", batch.index)
            break

        try:
            result = product_crud.upsert_batch(db, batch.records)
        except PersistenceError as exc:
            report.status = "failed"
            report.failed_batch = batch.index
            report.error = str(exc)
            logger.error(
                "Product import failed at batch %s after %s committed rows",
                batch.index,
                report.committed_rows,
            )
            break

        skipped = sum(1 for error in batch.errors if error.skipped)
        report.batches_committed += 1
        report.created += result.created
        report.updated += result.updated
        report.skipped += skipped
        report.errors.extend(batch.errors)
        report.committed_rows += result.total
        logger.info(
            "Committed product batch %s: %s created, %s updated, %s skipped",
            batch.index,
            result.created,
            result.updated,
            skipped,
        )
        if progress is not None:
            progress(
                BatchProgress(
                    batch_index=batch.index,
                    rows_read=batch.rows_read,
                    created=result.created,
                    updated=result.updated,
                    skipped=skipped,
                    committed_rows=report.committed_rows,
                )
            )

    if report.status == "completed" and report.skipped:
        report.status = "partial"
    return report


def delete_all_products(
    db: Session,
    batch_size: int = 1000,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancelToken] = None,
) -> DeleteReport:
    report = DeleteReport()
    while True:
        if _cancelled(cancel):
            report.status = "cancelled"
            logger.info("Product delete cancelled after %s rows", report.deleted)
            break
        deleted = product_crud.delete_batch(db, batch_size=batch_size)
        if not deleted:
            break
        report.deleted += deleted
        report.batches += 1
        logger.info("Deleted product batch %s (%s rows)", report.batches - 1, deleted)
        if progress is not None:
            progress(
                BatchProgress(
                    batch_index=report.batches - 1,
                    rows_read=deleted,
                    created=0,
                    updated=0,
                    skipped=0,
                    committed_rows=report.deleted,
                )
            )
    return report
