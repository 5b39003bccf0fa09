# ===== kpi_engine/models/__init__.py =====
"""Models initialization."""

from .base import BaseModel, TimestampMixin, SoftDeleteMixin, AuditMixin

# Enums
from .enums import (
    PeriodStatus, FormulaType, SubmissionStatus, ApprovalStage,
    SnapshotEvent, PerformanceGrade, KPIStatus, RollupMethod
)

# Tables
from .period import AssessmentPeriod
from .kpi import KPIDefinition, KPIAssignment
from .submission import Submission, DataEntry, ScoreResult, ScoreSnapshot

__all__ = [
    # Base classes
    "BaseModel",
    "TimestampMixin",
    "SoftDeleteMixin",
    "AuditMixin",

    # Enums
    "PeriodStatus",
    "FormulaType",
    "SubmissionStatus",
    "ApprovalStage",
    "SnapshotEvent",
    "PerformanceGrade",
    "KPIStatus",
    "RollupMethod",

    # Tables
    "AssessmentPeriod",
    "KPIDefinition",
    "KPIAssignment",
    "Submission",
    "DataEntry",
    "ScoreResult",
    "ScoreSnapshot",
]

# Table creation order (foreign keys):
# 1. assessment_periods, kpi_definitions
# 2. kpi_assignments (periods, definitions)
# 3. submissions (periods)
# 4. data_entries, score_results, score_snapshots (submissions)
