"""Exception handlers translating core errors into JSON responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from kpi_engine.core.exceptions import ScoringError

logger = logging.getLogger(__name__)


async def scoring_error_handler(request: Request, exc: ScoringError) -> JSONResponse:
    """ScoringError → {detail, error_code, retryable} with its own status."""
    if exc.status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} failed: {exc.error_code} {exc.message}",
            extra={"error_code": exc.error_code},
        )
    else:
        logger.warning(
            f"{request.method} {request.url.path} refused: {exc.error_code} {exc.message}",
            extra={"error_code": exc.error_code},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error", "error_code": "DATABASE_ERROR", "retryable": False},
    )


def add_error_handlers(app: FastAPI) -> None:
    """Register handlers on the application."""
    app.add_exception_handler(ScoringError, scoring_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
