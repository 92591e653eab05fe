from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from shared.core import (
    ConcurrentModification,
    InsufficientStock,
    InvalidStateTransition,
    LedgerError,
    NotFound,
    TenantScopeRequired,
    ValidationError,
    get_logger,
)

logger = get_logger(__name__)

STATUS_BY_ERROR = {
    NotFound: status.HTTP_404_NOT_FOUND,
    InsufficientStock: status.HTTP_409_CONFLICT,
    InvalidStateTransition: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    TenantScopeRequired: status.HTTP_400_BAD_REQUEST,
    ConcurrentModification: status.HTTP_409_CONFLICT,
}


def status_for(exc: LedgerError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return status.HTTP_400_BAD_REQUEST


def setup_exception_handlers(app: FastAPI):

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        status_code = status_for(exc)
        logger.warning(
            f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
            extra={'extra_fields': {'error': exc.code, 'status_code': status_code, 'details': exc.details}}
        )
        headers = {"Retry-After": "0"} if exc.retriable else None
        return JSONResponse(content=exc.to_dict(), status_code=status_code, headers=headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            content={"error": "INTERNAL_ERROR", "message": "Internal server error", "details": {}},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
