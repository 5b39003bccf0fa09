# ===== kpi_engine/utils/rollup.py =====
"""Roll-up employee totals ke satu department score."""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from kpi_engine.models.enums import RollupMethod
from kpi_engine.utils.score_aggregator import round_total


@dataclass
class IndividualScore:
    employee_id: str
    total_score: Decimal
    is_leader: bool = False
    weight: Optional[Decimal] = None


class RollupEngine:
    """Department score from individual totals."""

    def department_score(
        self,
        scores: List[IndividualScore],
        method: RollupMethod = RollupMethod.AVERAGE,
    ) -> Decimal:
        """Combine totals with the given method. Empty input scores 0."""
        if not scores:
            return Decimal("0.0")

        method = RollupMethod(method)
        totals = [Decimal(str(s.total_score)) for s in scores]

        if method == RollupMethod.WEIGHTED_AVERAGE:
            return round_total(self._weighted_average(scores))
        if method == RollupMethod.LEADER_SCORE:
            leader = next((s for s in scores if s.is_leader), None)
            if leader is not None:
                return round_total(Decimal(str(leader.total_score)))
            return round_total(self._average(totals))
        if method == RollupMethod.SUM:
            return round_total(sum(totals, Decimal("0")))
        if method == RollupMethod.MIN:
            return round_total(min(totals))
        if method == RollupMethod.MAX:
            return round_total(max(totals))
        return round_total(self._average(totals))

    def _average(self, values: List[Decimal]) -> Decimal:
        return sum(values, Decimal("0")) / Decimal(len(values))

    def _weighted_average(self, scores: List[IndividualScore]) -> Decimal:
        # Missing personal weight counts as 1
        weights = [Decimal(str(s.weight)) if s.weight is not None else Decimal("1") for s in scores]
        total_weight = sum(weights, Decimal("0"))
        if total_weight == 0:
            return Decimal("0")
        weighted = sum(
            (Decimal(str(s.total_score)) * w for s, w in zip(scores, weights)),
            Decimal("0"),
        )
        return weighted / total_weight
