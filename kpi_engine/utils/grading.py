# ===== kpi_engine/utils/grading.py =====
"""Grade boundaries untuk total score."""

from decimal import Decimal

from kpi_engine.models.enums import PerformanceGrade, KPIStatus

GRADE_BOUNDARIES = {
    PerformanceGrade.S: Decimal("95"),
    PerformanceGrade.A: Decimal("85"),
    PerformanceGrade.B: Decimal("70"),
    PerformanceGrade.C: Decimal("60"),
}

STATUS_BOUNDARIES = {
    KPIStatus.EXCELLENT: Decimal("90"),
    KPIStatus.GOOD: Decimal("75"),
    KPIStatus.AVERAGE: Decimal("60"),
}


def determine_grade(score) -> PerformanceGrade:
    """S/A/B/C/D from a total score."""
    score = Decimal(str(score))
    for grade, boundary in GRADE_BOUNDARIES.items():
        if score >= boundary:
            return grade
    return PerformanceGrade.D


def determine_kpi_status(score) -> KPIStatus:
    """EXCELLENT/GOOD/AVERAGE/POOR from a total score."""
    score = Decimal(str(score))
    for kpi_status, boundary in STATUS_BOUNDARIES.items():
        if score >= boundary:
            return kpi_status
    return KPIStatus.POOR
