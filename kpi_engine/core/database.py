"""Database engine and session management."""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from kpi_engine.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_uri: str, **kwargs):
    """Create async engine; pool settings only apply to server databases."""
    if database_uri.startswith("sqlite"):
        return create_async_engine(
            database_uri,
            echo=settings.SQL_ECHO,
            connect_args={"timeout": 30},
            **kwargs,
        )

    return create_async_engine(
        database_uri,
        echo=settings.SQL_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        **kwargs,
    )


engine = build_engine(str(settings.DATABASE_URI))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency untuk database session per request."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables registered on SQLModel metadata."""
    # Import models so every table is registered before create_all
    import kpi_engine.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables ensured")
