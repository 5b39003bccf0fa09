"""Enums untuk KPI assessment - MATCH DATABASE UPPERCASE."""

from enum import Enum


class PeriodStatus(str, Enum):
    """Lifecycle of an assessment period. One-way: DRAFT → ACTIVE → LOCKED → ARCHIVED."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    LOCKED = "LOCKED"
    ARCHIVED = "ARCHIVED"

    @classmethod
    def get_all_values(cls):
        """Get all status values as list."""
        return [status.value for status in cls]

    @classmethod
    def mutable_statuses(cls):
        """Statuses under which submissions may still change."""
        return [cls.DRAFT, cls.ACTIVE]

    @classmethod
    def get_display_name(cls, status: str) -> str:
        """Get display name untuk status."""
        display_map = {
            cls.DRAFT.value: "Draft",
            cls.ACTIVE.value: "Active",
            cls.LOCKED.value: "Locked",
            cls.ARCHIVED.value: "Archived",
        }
        return display_map.get(status, status)


class FormulaType(str, Enum):
    """Scoring rule family applied to an actual value."""
    POSITIVE = "POSITIVE"  # higher is better
    NEGATIVE = "NEGATIVE"  # lower is better
    BINARY = "BINARY"
    STEPPED = "STEPPED"
    CUSTOM = "CUSTOM"

    @classmethod
    def get_all_values(cls):
        """Get all formula type values as list."""
        return [formula.value for formula in cls]

    @classmethod
    def requires_target(cls, formula_type: str) -> bool:
        """Formulas that divide by target."""
        return formula_type in (cls.POSITIVE.value, cls.NEGATIVE.value)


class SubmissionStatus(str, Enum):
    """Status of a submission version."""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @classmethod
    def get_all_values(cls):
        """Get all status values as list."""
        return [status.value for status in cls]

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """APPROVED and REJECTED never change again for the same version."""
        return status in (cls.APPROVED.value, cls.REJECTED.value)


class ApprovalStage(str, Enum):
    """Sequential review steps while a submission is PENDING."""
    SELF_EVAL = "SELF_EVAL"
    MANAGER_REVIEW = "MANAGER_REVIEW"
    SKIP_LEVEL = "SKIP_LEVEL"
    HR_CONFIRM = "HR_CONFIRM"
    COMPLETED = "COMPLETED"

    @classmethod
    def get_all_stages(cls):
        """Get all review stages in default order (COMPLETED excluded)."""
        return [
            cls.SELF_EVAL,
            cls.MANAGER_REVIEW,
            cls.SKIP_LEVEL,
            cls.HR_CONFIRM,
        ]

    @classmethod
    def get_stage_order(cls, stage: str) -> int:
        """Get order number for stage (1-4), 0 if unknown or COMPLETED."""
        stages = cls.get_all_stages()
        try:
            return stages.index(cls(stage)) + 1
        except (ValueError, TypeError):
            return 0

    @classmethod
    def get_display_name(cls, stage: str) -> str:
        """Get display name untuk stage."""
        display_map = {
            cls.SELF_EVAL.value: "Self Evaluation",
            cls.MANAGER_REVIEW.value: "Manager Review",
            cls.SKIP_LEVEL.value: "Skip-level Review",
            cls.HR_CONFIRM.value: "HR Confirmation",
            cls.COMPLETED.value: "Completed",
        }
        return display_map.get(stage, stage)


class SnapshotEvent(str, Enum):
    """Transition that produced a score snapshot."""
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RETURN = "RETURN"


class PerformanceGrade(str, Enum):
    S = "S"
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class KPIStatus(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    AVERAGE = "AVERAGE"
    POOR = "POOR"


class RollupMethod(str, Enum):
    """How employee totals combine into one department score."""
    AVERAGE = "AVERAGE"
    WEIGHTED_AVERAGE = "WEIGHTED_AVERAGE"
    LEADER_SCORE = "LEADER_SCORE"
    SUM = "SUM"
    MIN = "MIN"
    MAX = "MAX"
