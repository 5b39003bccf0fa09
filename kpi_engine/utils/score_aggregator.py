# ===== kpi_engine/utils/score_aggregator.py =====
"""Aggregator untuk weighted KPI scores per employee."""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Tuple

HUNDRED = Decimal("100")
TOTAL_QUANT = Decimal("0.1")


def _d(x) -> Decimal:
    """Convert to Decimal safely."""
    return x if isinstance(x, Decimal) else Decimal(str(x))


def round_total(value: Decimal) -> Decimal:
    """Round to one decimal, half up."""
    return value.quantize(TOTAL_QUANT, rounding=ROUND_HALF_UP)


@dataclass
class AggregateResult:
    """Weighted roll-up for one employee."""

    contributions: Dict[str, Decimal] = field(default_factory=dict)
    raw_scores: Dict[str, Decimal] = field(default_factory=dict)
    total_score: Decimal = Decimal("0.0")
    weight_sum: Decimal = Decimal("0")

    @property
    def is_complete(self) -> bool:
        """Informational: the assignment set covers the full 100%."""
        return self.weight_sum == HUNDRED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_score": str(self.total_score),
            "weight_sum": str(self.weight_sum),
            "is_complete": self.is_complete,
        }


class ScoreAggregator:
    """Combines per-assignment scores with assignment weights."""

    def aggregate(self, entries: Iterable[Tuple[Any, Any]]) -> AggregateResult:
        """
        Aggregate (assignment, score) pairs into one weighted total.

        weighted_contribution = score × weight / 100, kept exact.
        total_score = Σ contributions rounded to one decimal (half up).

        Decimal addition is exact, so permuting the input never changes the
        total. A weight_sum other than 100 is reported, not rejected.
        """
        result = AggregateResult()
        total = Decimal("0")
        weight_sum = Decimal("0")

        for assignment, score in entries:
            weight = _d(assignment.weight)
            score = _d(score)
            contribution = score * weight / HUNDRED

            assignment_id = assignment.id
            if assignment_id in result.contributions:
                raise ValueError(f"Assignment {assignment_id} appears more than once")

            result.contributions[assignment_id] = contribution
            result.raw_scores[assignment_id] = score
            total += contribution
            weight_sum += weight

        result.total_score = round_total(total)
        result.weight_sum = weight_sum
        return result

    def aggregate_by_employee(
        self,
        entries: Iterable[Tuple[str, Any, Any]],
    ) -> Dict[str, AggregateResult]:
        """Aggregate (employee_id, assignment, score) triples per employee."""
        grouped: Dict[str, List[Tuple[Any, Any]]] = {}
        for employee_id, assignment, score in entries:
            grouped.setdefault(employee_id, []).append((assignment, score))

        return {
            employee_id: self.aggregate(pairs)
            for employee_id, pairs in sorted(grouped.items())
        }
