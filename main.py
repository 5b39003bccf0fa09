"""FastAPI application for KPI scoring and submission approval."""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kpi_engine.core.config import settings
from kpi_engine.core.database import get_db, init_db
from kpi_engine.api.router import api_router
from kpi_engine.middleware.error_handler import add_error_handlers
from kpi_engine.utils.logging import setup_logging

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.PROJECT_NAME}...")

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Configuration loaded:")
    logger.info(f"   - Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"   - Approval stages: {', '.join(settings.APPROVAL_STAGES_LIST)}")
    logger.info(f"   - Role resolver: {'HTTP' if settings.ROLE_SERVICE_URL else 'static'}")
    logger.info(f"   - Notifications: {'webhook' if settings.NOTIFICATION_WEBHOOK_URL else 'log only'}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")


def create_application() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="""
        **KPI Assessment Engine**

        * **Periods** move DRAFT → ACTIVE → LOCKED → ARCHIVED; activation requires
          every scope's assignment weights to total 100
        * **Submissions** carry actual values, scored per KPI formula
          (POSITIVE, NEGATIVE, BINARY, STEPPED, CUSTOM) and weighted into a total
        * **Approval** runs SELF_EVAL → MANAGER_REVIEW → SKIP_LEVEL → HR_CONFIRM,
          with a score snapshot at every transition

        Writes use optimistic concurrency: pass `expected_revision` and retry on
        409 `CONCURRENT_MODIFICATION`.
        """,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS_LIST,
        allow_credentials=True,
        allow_methods=settings.CORS_METHODS_LIST,
        allow_headers=settings.CORS_HEADERS_LIST,
    )

    add_error_handlers(app)
    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["System"])
    async def health_check(session: AsyncSession = Depends(get_db)):
        """Liveness plus a database round trip."""
        payload = {
            "status": "healthy",
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "approval_stages": settings.APPROVAL_STAGES_LIST,
            "database": "ok",
        }
        try:
            await session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Health check database query failed: {e}")
            payload.update(status="degraded", database="unavailable")
            return JSONResponse(status_code=503, content=payload)
        return payload

    return app


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
