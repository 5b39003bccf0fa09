# ===== kpi_engine/services/period.py =====
"""Service untuk lifecycle assessment period."""

import logging
from datetime import datetime
from typing import Dict, Optional

from kpi_engine.core.exceptions import NotFound, PeriodOverlap, InvalidTransition
from kpi_engine.models.enums import PeriodStatus
from kpi_engine.models.period import AssessmentPeriod
from kpi_engine.repositories.period import PeriodRepository
from kpi_engine.services.period_guard import PeriodGuard

logger = logging.getLogger(__name__)


class PeriodService:
    """Service untuk period operations."""

    def __init__(self, period_repo: PeriodRepository, period_guard: Optional[PeriodGuard] = None):
        self.period_repo = period_repo
        self.session = period_repo.session
        self.period_guard = period_guard or PeriodGuard()

    async def create_period(
        self,
        name: str,
        start_date: datetime,
        end_date: datetime,
        lock_date: Optional[datetime] = None,
        created_by: Optional[str] = None,
    ) -> AssessmentPeriod:
        """
        Create a DRAFT period.

        Business rules:
        - end_date must not precede start_date
        - date range must not overlap another period
        """
        if end_date < start_date:
            raise InvalidTransition("Period end_date is before start_date")

        overlapping = await self.period_repo.find_overlapping(start_date, end_date)
        if overlapping:
            raise PeriodOverlap(
                f"Period overlaps with '{overlapping[0].name}'",
                period_id=overlapping[0].id,
            )

        period = AssessmentPeriod(
            name=name,
            start_date=start_date,
            end_date=end_date,
            lock_date=lock_date,
            status=PeriodStatus.DRAFT,
            created_by=created_by,
        )
        try:
            await self.period_repo.create(period)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Period {period.id} '{name}' created")
        return period

    async def get_period_or_404(self, period_id: str) -> AssessmentPeriod:
        period = await self.period_repo.get_by_id(period_id)
        if not period:
            raise NotFound("Periode tidak ditemukan", period_id=period_id)
        return period

    async def weight_check(self, period_id: str) -> Dict[str, object]:
        """Advisory per-scope weight sums; never raises on bad sums."""
        period = await self.get_period_or_404(period_id)
        assignments = await self.period_repo.list_assignments(period_id, active_only=True)
        sums = self.period_guard.weight_sum_report(assignments)
        return {
            "period_id": period.id,
            "scopes": sums,
            "invalid_scopes": {scope: total for scope, total in sums.items() if total != 100},
            "is_valid": bool(sums) and all(total == 100 for total in sums.values()),
        }

    # ===== LIFECYCLE =====

    async def activate(self, period_id: str, updated_by: Optional[str] = None) -> AssessmentPeriod:
        period = await self.get_period_or_404(period_id)
        if not self.period_guard.check_transition(period, PeriodStatus.ACTIVE):
            return period

        assignments = await self.period_repo.list_assignments(period_id, active_only=True)
        self.period_guard.assert_activatable(period, assignments)
        return await self._move(period, PeriodStatus.ACTIVE, updated_by)

    async def lock(self, period_id: str, updated_by: Optional[str] = None) -> AssessmentPeriod:
        period = await self.get_period_or_404(period_id)
        if not self.period_guard.check_transition(period, PeriodStatus.LOCKED):
            return period
        return await self._move(period, PeriodStatus.LOCKED, updated_by)

    async def archive(self, period_id: str, updated_by: Optional[str] = None) -> AssessmentPeriod:
        period = await self.get_period_or_404(period_id)
        if not self.period_guard.check_transition(period, PeriodStatus.ARCHIVED):
            return period
        return await self._move(period, PeriodStatus.ARCHIVED, updated_by)

    async def delete_period(self, period_id: str, deleted_by: Optional[str] = None) -> None:
        """Only unreferenced DRAFT periods can be deleted."""
        period = await self.get_period_or_404(period_id)
        if PeriodStatus(period.status) != PeriodStatus.DRAFT:
            raise InvalidTransition(
                f"Only DRAFT periods can be deleted, period is {PeriodStatus(period.status).value}",
                period_id=period_id,
            )
        if await self.period_repo.count_references(period_id):
            raise InvalidTransition("Period still has assignments or submissions", period_id=period_id)

        try:
            await self.period_repo.soft_delete(period, deleted_by)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info(f"Period {period_id} deleted")

    async def _move(self, period: AssessmentPeriod, target: PeriodStatus, updated_by: Optional[str]) -> AssessmentPeriod:
        current = PeriodStatus(period.status)
        try:
            moved = await self.period_repo.update_status(period.id, current, target, updated_by)
            if not moved:
                raise InvalidTransition(
                    f"Period {period.id} changed status concurrently",
                    period_id=period.id,
                )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(period)
        logger.info(f"Period {period.id}: {current.value} → {target.value}")
        return period
