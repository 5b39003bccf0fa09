# ===== kpi_engine/api/dependencies.py =====
"""Shared dependencies untuk endpoints."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kpi_engine.core.database import get_db
from kpi_engine.repositories.kpi import KPIRepository
from kpi_engine.repositories.period import PeriodRepository
from kpi_engine.repositories.submission import SubmissionRepository
from kpi_engine.services.department_directory import DepartmentDirectory, build_department_directory
from kpi_engine.services.kpi import KPIService
from kpi_engine.services.notification import NotificationDispatcher, build_dispatcher
from kpi_engine.services.period import PeriodService
from kpi_engine.services.role_resolver import RoleResolver, build_role_resolver
from kpi_engine.services.scoring_orchestrator import ScoringOrchestrator


@lru_cache
def get_role_resolver() -> RoleResolver:
    """Dependency untuk role gate (override in tests)."""
    return build_role_resolver()


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    """Dependency untuk notification dispatcher."""
    return build_dispatcher()


@lru_cache
def get_department_directory() -> Optional[DepartmentDirectory]:
    """Dependency untuk department membership (leader, personal weight)."""
    return build_department_directory()


async def get_scoring_orchestrator(
    session: AsyncSession = Depends(get_db),
    role_resolver: RoleResolver = Depends(get_role_resolver),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    department_directory: Optional[DepartmentDirectory] = Depends(get_department_directory),
) -> ScoringOrchestrator:
    """Dependency untuk ScoringOrchestrator."""
    return ScoringOrchestrator(
        SubmissionRepository(session),
        PeriodRepository(session),
        KPIRepository(session),
        role_resolver,
        dispatcher,
        department_directory=department_directory,
    )


async def get_period_service(session: AsyncSession = Depends(get_db)) -> PeriodService:
    """Dependency untuk PeriodService."""
    return PeriodService(PeriodRepository(session))


async def get_kpi_service(session: AsyncSession = Depends(get_db)) -> KPIService:
    """Dependency untuk KPIService."""
    return KPIService(KPIRepository(session), PeriodRepository(session))
