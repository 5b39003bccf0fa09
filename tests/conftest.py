"""Shared fixtures: temporary SQLite database and seeded KPI data."""

import os
import tempfile
from datetime import datetime
from decimal import Decimal

# Must be set before kpi_engine.core.config is imported
os.environ.setdefault("DATABASE_URI", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_DIRECTORY", os.path.join(tempfile.gettempdir(), "kpi-engine-test-logs"))

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

import kpi_engine.models  # noqa: F401
from kpi_engine.core.database import build_engine
from kpi_engine.models.enums import FormulaType, PeriodStatus
from kpi_engine.models.kpi import KPIDefinition, KPIAssignment
from kpi_engine.models.period import AssessmentPeriod
from kpi_engine.repositories.kpi import KPIRepository
from kpi_engine.repositories.period import PeriodRepository
from kpi_engine.repositories.submission import SubmissionRepository
from kpi_engine.services.notification import LoggingNotificationDispatcher
from kpi_engine.services.role_resolver import StaticRoleResolver
from kpi_engine.services.scoring_orchestrator import ScoringOrchestrator

STAGE_ROLES = {
    "SELF_EVAL": "EMPLOYEE",
    "MANAGER_REVIEW": "MANAGER",
    "SKIP_LEVEL": "SKIP_LEVEL_MANAGER",
    "HR_CONFIRM": "HR",
}

USER_ROLES = {
    "emp-1": ["EMPLOYEE"],
    "mgr-1": ["MANAGER"],
    "skip-1": ["SKIP_LEVEL_MANAGER"],
    "hr-1": ["HR"],
}


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'kpi.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def role_resolver():
    return StaticRoleResolver(user_roles=USER_ROLES, stage_roles=STAGE_ROLES)


@pytest.fixture
def dispatcher():
    return LoggingNotificationDispatcher()


@pytest.fixture
def make_orchestrator(role_resolver, dispatcher):
    """Build an orchestrator bound to the given session."""

    def _make(session, **kwargs):
        kwargs.setdefault("dispatcher", dispatcher)
        return ScoringOrchestrator(
            SubmissionRepository(session),
            PeriodRepository(session),
            KPIRepository(session),
            role_resolver,
            **kwargs,
        )

    return _make


@pytest.fixture
def orchestrator(session, make_orchestrator):
    return make_orchestrator(session)


async def seed_period(session, status=PeriodStatus.ACTIVE, name="2025-Q1", start=None, end=None):
    period = AssessmentPeriod(
        name=name,
        start_date=start or datetime(2025, 1, 1),
        end_date=end or datetime(2025, 3, 31),
        status=status,
    )
    session.add(period)
    await session.commit()
    return period


async def seed_definition(session, code, formula_type=FormulaType.POSITIVE, **kwargs):
    definition = KPIDefinition(
        code=code,
        name=f"KPI {code}",
        formula_type=formula_type,
        score_cap=kwargs.pop("score_cap", Decimal("120")),
        score_floor=kwargs.pop("score_floor", Decimal("0")),
        **kwargs,
    )
    session.add(definition)
    await session.commit()
    return definition


async def seed_assignment(session, period, definition, weight, target, **kwargs):
    assignment = KPIAssignment(
        period_id=period.id,
        kpi_definition_id=definition.id,
        weight=Decimal(str(weight)),
        target_value=Decimal(str(target)),
        **kwargs,
    )
    session.add(assignment)
    await session.commit()
    return assignment


@pytest.fixture
async def scored_period(session):
    """
    ACTIVE period with two POSITIVE KPIs for emp-1:
    sales (target 100, weight 30) and quality (target 10, weight 70).
    """
    period = await seed_period(session)
    sales = await seed_definition(session, "SALES")
    quality = await seed_definition(session, "QUALITY")
    sales_assignment = await seed_assignment(session, period, sales, 30, 100, employee_id="emp-1")
    quality_assignment = await seed_assignment(session, period, quality, 70, 10, employee_id="emp-1")
    return {
        "period": period,
        "sales": sales_assignment,
        "quality": quality_assignment,
    }
