"""Schemas reporting CSV decode and bulk import outcomes."""

from typing import List, Optional

from pydantic import BaseModel

from proposalcrm.schemas.product import ProductRecord


class RowError(BaseModel):
    """A recoverable problem with one CSV row. `skipped` rows were not imported."""

    row: int
    code: str
    message: str
    skipped: bool = True


class BatchProgress(BaseModel):
    batch_index: int
    rows_read: int
    created: int
    updated: int
    skipped: int
    committed_rows: int


class ImportReport(BaseModel):
    status: str = "completed"
    batches_committed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[RowError] = []
    failed_batch: Optional[int] = None
    committed_rows: int = 0
    error: Optional[str] = None
    separator: Optional[str] = None
    line_ending: Optional[str] = None


class DeleteReport(BaseModel):
    status: str = "completed"
    deleted: int = 0
    batches: int = 0


class ParseBatch(BaseModel):
    """One bounded slice of decoded rows; never splits a logical CSV record."""

    index: int
    records: List[ProductRecord] = []
    errors: List[RowError] = []
    rows_read: int = 0


class ParseResult(BaseModel):
    records: List[ProductRecord] = []
    errors: List[RowError] = []
    separator: str = ","
    line_ending: str = "\n"
    header_row: Optional[int] = None
