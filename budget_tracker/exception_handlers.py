import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from budget_tracker.exceptions import (
    AppError,
    ConflictError,
    LedgerTimeoutError,
    NotFoundError,
    PersistenceConflictError,
    UnauthorizedError,
    ValidationError,
)

logger = structlog.get_logger()


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.error("unhandled_app_error", code=exc.code, message=exc.message, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": exc.code, "message": exc.message},
    )


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": exc.code, "message": exc.message},
    )


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": exc.code, "message": exc.message},
    )


async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"error": exc.code, "message": exc.message},
    )


async def persistence_conflict_handler(
    request: Request, exc: PersistenceConflictError
) -> JSONResponse:
    logger.warning(
        "persistence_conflict",
        aggregate_id=exc.aggregate_id,
        expected_version=exc.expected_version,
        actual_version=exc.actual_version,
    )
    return JSONResponse(
        status_code=409,
        content={"error": exc.code, "message": exc.message},
        headers={"Retry-After": "0"},
    )


async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"error": exc.code, "message": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def ledger_timeout_handler(request: Request, exc: LedgerTimeoutError) -> JSONResponse:
    return JSONResponse(
        status_code=504,
        content={"error": exc.code, "message": exc.message},
    )


def register_exception_handlers(app):
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(PersistenceConflictError, persistence_conflict_handler)
    app.add_exception_handler(ConflictError, conflict_handler)
    app.add_exception_handler(UnauthorizedError, unauthorized_handler)
    app.add_exception_handler(LedgerTimeoutError, ledger_timeout_handler)
    app.add_exception_handler(AppError, app_error_handler)
