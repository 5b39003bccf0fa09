# ===== kpi_engine/repositories/period.py =====
"""Repository untuk assessment period."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, and_, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from kpi_engine.models.enums import PeriodStatus
from kpi_engine.models.period import AssessmentPeriod
from kpi_engine.models.kpi import KPIAssignment
from kpi_engine.models.submission import Submission


class PeriodRepository:
    """Repository untuk operasi assessment period."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ===== CREATE OPERATIONS =====

    async def create(self, period: AssessmentPeriod) -> AssessmentPeriod:
        """Stage a new period; the service commits."""
        self.session.add(period)
        await self.session.flush()
        return period

    # ===== READ OPERATIONS =====

    async def get_by_id(self, period_id: str) -> Optional[AssessmentPeriod]:
        """Get period by ID."""
        query = select(AssessmentPeriod).where(
            and_(AssessmentPeriod.id == period_id, AssessmentPeriod.deleted_at.is_(None))
        ).execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_overlapping(
        self,
        start_date: datetime,
        end_date: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[AssessmentPeriod]:
        """Periods whose [start, end] range intersects the given one."""
        query = select(AssessmentPeriod).where(
            and_(
                AssessmentPeriod.deleted_at.is_(None),
                AssessmentPeriod.start_date <= end_date,
                AssessmentPeriod.end_date >= start_date,
            )
        )
        if exclude_id:
            query = query.where(AssessmentPeriod.id != exclude_id)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_status(self, period_id: str) -> Optional[PeriodStatus]:
        """Fresh status read, bypassing objects already loaded in the session."""
        result = await self.session.execute(
            select(AssessmentPeriod.status).where(AssessmentPeriod.id == period_id)
        )
        return result.scalar_one_or_none()

    async def get_status_for_share(self, period_id: str) -> Optional[PeriodStatus]:
        """
        Fresh status read that holds a share lock on the period row.

        A concurrent lock/archive UPDATE waits until this transaction ends,
        so rows inserted after the read cannot land under a LOCKED period.
        """
        result = await self.session.execute(
            select(AssessmentPeriod.status)
            .where(and_(AssessmentPeriod.id == period_id, AssessmentPeriod.deleted_at.is_(None)))
            .with_for_update(read=True)
        )
        return result.scalar_one_or_none()

    async def list_assignments(self, period_id: str, active_only: bool = False) -> List[KPIAssignment]:
        """All assignments under a period."""
        query = select(KPIAssignment).where(
            and_(KPIAssignment.period_id == period_id, KPIAssignment.deleted_at.is_(None))
        )
        if active_only:
            query = query.where(KPIAssignment.is_active.is_(True))

        result = await self.session.execute(query.order_by(KPIAssignment.created_at))
        return list(result.scalars().all())

    async def count_references(self, period_id: str) -> int:
        """Assignments plus submissions still pointing at the period."""
        assignment_count = await self.session.execute(
            select(func.count(KPIAssignment.id)).where(
                and_(KPIAssignment.period_id == period_id, KPIAssignment.deleted_at.is_(None))
            )
        )
        submission_count = await self.session.execute(
            select(func.count(Submission.id)).where(
                and_(Submission.period_id == period_id, Submission.deleted_at.is_(None))
            )
        )
        return (assignment_count.scalar() or 0) + (submission_count.scalar() or 0)

    # ===== UPDATE OPERATIONS =====

    async def update_status(
        self,
        period_id: str,
        current: PeriodStatus,
        target: PeriodStatus,
        updated_by: Optional[str] = None,
    ) -> bool:
        """
        Move status only if it is still `current`.

        Returns False when another writer moved the period first.
        """
        result = await self.session.execute(
            update(AssessmentPeriod)
            .where(
                and_(
                    AssessmentPeriod.id == period_id,
                    AssessmentPeriod.status == current,
                )
            )
            .values(status=target, updated_at=datetime.utcnow(), updated_by=updated_by)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ===== DELETE OPERATIONS =====

    async def soft_delete(self, period: AssessmentPeriod, deleted_by: Optional[str] = None) -> None:
        """Soft delete period."""
        period.deleted_at = datetime.utcnow()
        period.deleted_by = deleted_by
        await self.session.flush()
