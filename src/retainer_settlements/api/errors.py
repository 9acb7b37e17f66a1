"""Map the service's error hierarchy onto HTTP responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from invoicing.errors import DuplicateInvoiceNumberError, InvoiceNotFoundError

from ..errors import (
    ConsistencyError,
    DatabaseError,
    IneligibleOperationError,
    PersistenceError,
    SettlementError,
    TransitionInFlightError,
    UnknownDealError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# Checked in order; first match wins
_STATUS_CODES: list[tuple[type[SettlementError], int]] = [
    (InvoiceNotFoundError, 404),
    (UnknownDealError, 404),
    (ValidationError, 422),
    (IneligibleOperationError, 409),
    (TransitionInFlightError, 409),
    (DuplicateInvoiceNumberError, 409),
    (ConsistencyError, 502),
    (PersistenceError, 502),
    (DatabaseError, 502),
]


def status_code_for(exc: SettlementError) -> int:
    for cls, code in _STATUS_CODES:
        if isinstance(exc, cls):
            return code
    return 500


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    status_code = status_code_for(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        'api.request_failed',
        path=request.url.path,
        status_code=status_code,
        error=exc.message,
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=status_code,
        content={'error': exc.message, 'error_type': type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SettlementError, settlement_error_handler)
