"""Domain errors raised by the financial engine, CSV codec, renderer and repositories."""

from typing import Optional, Sequence


class ProposalCRMError(Exception):
    """Base class for every error the core raises on purpose."""


class ValidationError(ProposalCRMError, ValueError):
    """Malformed financial input: negative amounts, missing required references."""


class ParseError(ProposalCRMError):
    """File-level CSV failure; the whole decode is aborted."""


class EmptyFileError(ParseError):
    def __init__(self, message: str = "CSV file is empty or contains no data"):
        super().__init__(message)


class MissingColumnError(ParseError):
    def __init__(self, columns: Sequence[str]):
        self.columns = list(columns)
        super().__init__(f"Could not identify required column(s): {', '.join(self.columns)}")


class RenderError(ProposalCRMError):
    """The rendered document could not be serialized."""


class PersistenceError(ProposalCRMError):
    def __init__(self, message: str, *, batch_index: Optional[int] = None, committed_rows: int = 0):
        self.batch_index = batch_index
        self.committed_rows = committed_rows
        super().__init__(message)
