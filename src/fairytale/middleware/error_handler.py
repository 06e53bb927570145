"""Global error handlers: consistent JSON error responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fairytale.rewards.errors import (
    InconsistentStateError,
    PersistenceError,
    RewardsError,
    ValidationError,
)

logger = structlog.get_logger()

REWARDS_ERROR_STATUS: dict[type[RewardsError], int] = {
    ValidationError: 422,
    PersistenceError: 503,
    InconsistentStateError: 500,
}


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle validation errors with consistent JSON format."""
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": exc.errors()},
        )

    @app.exception_handler(RewardsError)
    async def rewards_exception_handler(request: Request, exc: RewardsError) -> JSONResponse:
        """Expose kind and context so the UI can pick a toast or a silent failure."""
        status_code = REWARDS_ERROR_STATUS.get(type(exc), 500)
        logger.warning(
            "rewards_error",
            path=request.url.path,
            kind=exc.kind,
            error=exc.message,
            status_code=status_code,
        )
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions, always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
