# ===== kpi_engine/repositories/kpi.py =====
"""Repository untuk KPI definitions dan assignments."""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, and_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from kpi_engine.models.enums import PeriodStatus
from kpi_engine.models.kpi import KPIDefinition, KPIAssignment
from kpi_engine.models.period import AssessmentPeriod


class KPIRepository:
    """Repository untuk operasi KPI library."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ===== CREATE OPERATIONS =====

    async def create_definition(self, definition: KPIDefinition) -> KPIDefinition:
        self.session.add(definition)
        await self.session.flush()
        return definition

    async def create_assignment(self, assignment: KPIAssignment) -> KPIAssignment:
        self.session.add(assignment)
        await self.session.flush()
        return assignment

    # ===== READ OPERATIONS =====

    async def get_definition(self, definition_id: str) -> Optional[KPIDefinition]:
        query = select(KPIDefinition).where(
            and_(KPIDefinition.id == definition_id, KPIDefinition.deleted_at.is_(None))
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_definition_by_code(self, code: str) -> Optional[KPIDefinition]:
        query = select(KPIDefinition).where(
            and_(KPIDefinition.code == code, KPIDefinition.deleted_at.is_(None))
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_assignment(self, assignment_id: str) -> Optional[KPIAssignment]:
        query = select(KPIAssignment).where(
            and_(KPIAssignment.id == assignment_id, KPIAssignment.deleted_at.is_(None))
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_assignments_with_definitions(
        self,
        assignment_ids: Iterable[str],
    ) -> Dict[str, tuple]:
        """Map assignment_id -> (assignment, definition) for scoring."""
        ids = list(set(assignment_ids))
        if not ids:
            return {}

        query = (
            select(KPIAssignment, KPIDefinition)
            .join(KPIDefinition, KPIDefinition.id == KPIAssignment.kpi_definition_id)
            .where(
                and_(
                    KPIAssignment.id.in_(ids),
                    KPIAssignment.deleted_at.is_(None),
                )
            )
        )
        result = await self.session.execute(query)
        return {assignment.id: (assignment, definition) for assignment, definition in result.all()}

    async def definition_in_use_outside_draft(self, definition_id: str) -> bool:
        """True when an assignment of a non-DRAFT period references the definition."""
        query = select(
            exists().where(
                and_(
                    KPIAssignment.kpi_definition_id == definition_id,
                    KPIAssignment.deleted_at.is_(None),
                    AssessmentPeriod.id == KPIAssignment.period_id,
                    AssessmentPeriod.status != PeriodStatus.DRAFT,
                )
            )
        )
        result = await self.session.execute(query)
        return bool(result.scalar())

    async def list_definitions(self) -> List[KPIDefinition]:
        query = select(KPIDefinition).where(KPIDefinition.deleted_at.is_(None)).order_by(KPIDefinition.code)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    # ===== UPDATE OPERATIONS =====

    async def update_definition(self, definition: KPIDefinition, values: Dict) -> KPIDefinition:
        for key, value in values.items():
            setattr(definition, key, value)
        await self.session.flush()
        return definition
