"""Translate domain errors into HTTP responses."""

from fastapi import HTTPException, status

from proposalcrm.core.errors import ParseError, PersistenceError, ProposalCRMError, RenderError, ValidationError

STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ParseError, status.HTTP_400_BAD_REQUEST),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (RenderError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def http_error(exc: ProposalCRMError) -> HTTPException:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
