# ===== kpi_engine/services/kpi.py =====
"""Service untuk KPI library dan assignment."""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from kpi_engine.core.config import settings
from kpi_engine.core.exceptions import (
    NotFound, KPIDefinitionImmutable, InvalidTransition, WeightSumInvalid
)
from kpi_engine.models.enums import PeriodStatus
from kpi_engine.models.kpi import KPIDefinition, KPIAssignment
from kpi_engine.repositories.kpi import KPIRepository
from kpi_engine.repositories.period import PeriodRepository
from kpi_engine.utils.formula_evaluator import FormulaEvaluator

logger = logging.getLogger(__name__)

# Fields that change how a definition scores
SCORING_FIELDS = {"formula_type", "score_cap", "score_floor", "step_rules", "custom_formula"}


class KPIService:
    """Service untuk KPI definition dan assignment operations."""

    def __init__(
        self,
        kpi_repo: KPIRepository,
        period_repo: PeriodRepository,
        evaluator: Optional[FormulaEvaluator] = None,
    ):
        self.kpi_repo = kpi_repo
        self.period_repo = period_repo
        self.session = kpi_repo.session
        self.evaluator = evaluator or FormulaEvaluator()

    # ===== DEFINITIONS =====

    async def create_definition(self, data: Dict[str, Any], created_by: Optional[str] = None) -> KPIDefinition:
        """Create a definition after validating its formula configuration."""
        if await self.kpi_repo.get_definition_by_code(data["code"]):
            raise InvalidTransition(f"KPI code '{data['code']}' already exists")

        values = dict(data)
        if values.get("score_cap") is None:
            values["score_cap"] = Decimal(settings.DEFAULT_SCORE_CAP)
        if values.get("score_floor") is None:
            values["score_floor"] = Decimal(settings.DEFAULT_SCORE_FLOOR)

        definition = KPIDefinition(**values, created_by=created_by)
        self.evaluator.validate_definition(definition)

        try:
            await self.kpi_repo.create_definition(definition)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"KPI definition {definition.code} created ({definition.formula_type})")
        return definition

    async def update_definition(
        self,
        definition_id: str,
        data: Dict[str, Any],
        updated_by: Optional[str] = None,
    ) -> KPIDefinition:
        """
        Update a definition.

        Scoring fields are frozen once an assignment of a non-DRAFT period
        references the definition; descriptive fields stay editable.
        """
        definition = await self.get_definition_or_404(definition_id)

        changes = {k: v for k, v in data.items() if v is not None}
        if SCORING_FIELDS & changes.keys() and await self.kpi_repo.definition_in_use_outside_draft(definition_id):
            raise KPIDefinitionImmutable(
                f"KPI {definition.code} is used by an active period; scoring fields cannot change",
                definition_id=definition_id,
            )

        candidate = KPIDefinition(**{**definition.model_dump(), **changes})
        self.evaluator.validate_definition(candidate)

        try:
            changes["updated_by"] = updated_by
            await self.kpi_repo.update_definition(definition, changes)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"KPI definition {definition.code} updated: {sorted(changes)}")
        return definition

    async def get_definition_or_404(self, definition_id: str) -> KPIDefinition:
        definition = await self.kpi_repo.get_definition(definition_id)
        if not definition:
            raise NotFound("KPI definition tidak ditemukan", definition_id=definition_id)
        return definition

    async def list_definitions(self) -> List[KPIDefinition]:
        return await self.kpi_repo.list_definitions()

    # ===== ASSIGNMENTS =====

    async def create_assignment(
        self,
        period_id: str,
        data: Dict[str, Any],
        created_by: Optional[str] = None,
    ) -> KPIAssignment:
        """Assignments are only added while the period is DRAFT."""
        period = await self.period_repo.get_by_id(period_id)
        if not period:
            raise NotFound("Periode tidak ditemukan", period_id=period_id)
        if PeriodStatus(period.status) != PeriodStatus.DRAFT:
            raise InvalidTransition(
                f"Assignments can only be added to a DRAFT period, period is {PeriodStatus(period.status).value}",
                period_id=period_id,
            )

        await self.get_definition_or_404(data["kpi_definition_id"])

        weight = Decimal(str(data["weight"]))
        if weight < 0 or weight > 100 or weight != weight.to_integral_value():
            raise WeightSumInvalid(
                f"Assignment weight must be a whole number between 0 and 100, got {weight}"
            )

        assignment = KPIAssignment(**{**data, "weight": weight}, period_id=period_id, created_by=created_by)
        try:
            await self.kpi_repo.create_assignment(assignment)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Assignment {assignment.id} created for {assignment.scope_key()} in period {period_id}")
        return assignment

    async def list_assignments(self, period_id: str) -> List[KPIAssignment]:
        return await self.period_repo.list_assignments(period_id)
