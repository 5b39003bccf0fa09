# ===== kpi_engine/services/period_guard.py =====
"""Guard untuk lifecycle periode assessment."""

import logging
from decimal import Decimal
from typing import Dict, Iterable

from kpi_engine.core.exceptions import PeriodNotMutable, InvalidTransition, WeightSumInvalid
from kpi_engine.models.enums import PeriodStatus

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

# One-way transitions, no skipping
ALLOWED_TRANSITIONS = {
    PeriodStatus.DRAFT: PeriodStatus.ACTIVE,
    PeriodStatus.ACTIVE: PeriodStatus.LOCKED,
    PeriodStatus.LOCKED: PeriodStatus.ARCHIVED,
}


class PeriodGuard:
    """Decides which mutations are legal for a period's lifecycle state."""

    def assert_mutable(self, period) -> None:
        """Raise PeriodNotMutable unless the period is DRAFT or ACTIVE."""
        if not period.is_mutable():
            raise PeriodNotMutable(
                f"Period '{period.name}' is {PeriodStatus(period.status).value}; submissions are frozen",
                period_id=period.id,
                status=PeriodStatus(period.status).value,
            )

    def weight_sum_report(self, assignments: Iterable) -> Dict[str, Decimal]:
        """Sum of active assignment weights per scope."""
        sums: Dict[str, Decimal] = {}
        for assignment in assignments:
            if not assignment.is_active:
                continue
            key = assignment.scope_key()
            sums[key] = sums.get(key, Decimal("0")) + Decimal(str(assignment.weight))
        return sums

    def assert_activatable(self, period, assignments: Iterable) -> None:
        """
        Every scope's active weights must total exactly 100.

        Weights must be whole numbers; fractional weights are rejected, not
        rounded. A period with no active assignments cannot be activated.
        """
        assignments = [a for a in assignments if a.is_active]
        if not assignments:
            raise WeightSumInvalid(f"Period '{period.name}' has no active KPI assignments")

        fractional = {
            a.scope_key(): a.weight
            for a in assignments
            if Decimal(str(a.weight)) != Decimal(str(a.weight)).to_integral_value()
        }
        if fractional:
            raise WeightSumInvalid(
                "Assignment weights must be whole numbers",
                invalid_scopes=fractional,
            )

        invalid = {
            scope: total
            for scope, total in self.weight_sum_report(assignments).items()
            if total != HUNDRED
        }
        if invalid:
            logger.warning(f"Activation of period {period.id} refused, weight sums: {invalid}")
            raise WeightSumInvalid(
                "Assignment weights must sum to exactly 100 for every scope",
                invalid_scopes=invalid,
            )

    def check_transition(self, period, target: PeriodStatus) -> bool:
        """
        Validate a lifecycle move.

        Returns:
            False when the period is already in the target state (no-op),
            True when the transition should be applied.

        Raises:
            InvalidTransition: for out-of-order requests.
        """
        target = PeriodStatus(target)
        if PeriodStatus(period.status) == target:
            return False

        if ALLOWED_TRANSITIONS.get(PeriodStatus(period.status)) != target:
            raise InvalidTransition(
                f"Cannot move period from {PeriodStatus(period.status).value} to {target.value}",
                period_id=period.id,
            )
        return True
