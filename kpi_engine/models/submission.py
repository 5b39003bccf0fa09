# ===== kpi_engine/models/submission.py =====
"""Models untuk submission, data entry dan cached score."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any
import uuid as uuid_lib

from sqlalchemy import Column, Enum as SQLEnum, JSON, UniqueConstraint
from sqlmodel import Field, SQLModel

from kpi_engine.models.base import BaseModel, decimal_column, utcnow
from kpi_engine.models.enums import SubmissionStatus, ApprovalStage, SnapshotEvent


class Submission(BaseModel, SQLModel, table=True):
    """One version of a batch of scored data moving through approval."""

    __tablename__ = "submissions"

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        primary_key=True,
        max_length=36
    )

    period_id: str = Field(foreign_key="assessment_periods.id", index=True, max_length=36)

    employee_id: Optional[str] = Field(default=None, index=True, max_length=36)
    department_id: Optional[str] = Field(default=None, index=True, max_length=36)
    data_source: Optional[str] = Field(default=None, max_length=50, description="manual / excel / api")

    version: int = Field(default=1, description="Incremented on every resubmission after rejection")
    previous_submission_id: Optional[str] = Field(default=None, max_length=36, unique=True)

    status: SubmissionStatus = Field(
        default=SubmissionStatus.DRAFT,
        sa_column=Column(
            SQLEnum(SubmissionStatus, name="submission_status"),
            nullable=False,
            default=SubmissionStatus.DRAFT,
            index=True,
        ),
    )
    approval_stage: Optional[ApprovalStage] = Field(
        default=None,
        sa_column=Column(SQLEnum(ApprovalStage, name="approval_stage"), nullable=True),
    )

    reject_reason: Optional[str] = Field(default=None)
    submitted_by: Optional[str] = Field(default=None, max_length=36)
    submitted_at: Optional[datetime] = Field(default=None)
    approved_by: Optional[str] = Field(default=None, max_length=36)
    approved_at: Optional[datetime] = Field(default=None)

    total_score: Optional[Decimal] = Field(default=None, sa_column=decimal_column())
    weight_sum: Optional[Decimal] = Field(default=None, sa_column=decimal_column())

    revision: int = Field(
        default=0,
        description="Optimistic concurrency token, bumped on every write"
    )

    def scope_key(self) -> str:
        """Scope identifier used for version numbering."""
        if self.employee_id:
            return f"employee:{self.employee_id}"
        if self.department_id:
            return f"department:{self.department_id}"
        return "period"

    def is_editable(self) -> bool:
        """Entries may only change while DRAFT."""
        return self.status == SubmissionStatus.DRAFT and self.deleted_at is None

    def get_stage_display(self) -> Optional[str]:
        if self.approval_stage is None:
            return None
        return ApprovalStage.get_display_name(self.approval_stage.value)

    def __repr__(self) -> str:
        return (
            f"<Submission(id={self.id}, v{self.version}, status={self.status}, "
            f"stage={self.approval_stage}, rev={self.revision})>"
        )


class DataEntry(BaseModel, SQLModel, table=True):
    """Actual value reported for one assignment and employee."""

    __tablename__ = "data_entries"
    __table_args__ = (
        UniqueConstraint("submission_id", "assignment_id", "employee_id", name="uq_data_entry_scope"),
    )

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        primary_key=True,
        max_length=36
    )

    submission_id: str = Field(foreign_key="submissions.id", index=True, max_length=36)
    assignment_id: str = Field(foreign_key="kpi_assignments.id", index=True, max_length=36)
    employee_id: str = Field(index=True, max_length=36)

    actual_value: Optional[Decimal] = Field(default=None, sa_column=decimal_column())
    remark: Optional[str] = Field(default=None)

    def copy_for(self, submission_id: str) -> "DataEntry":
        """Detached copy bound to another submission version."""
        return DataEntry(
            submission_id=submission_id,
            assignment_id=self.assignment_id,
            employee_id=self.employee_id,
            actual_value=self.actual_value,
            remark=self.remark,
        )


class ScoreResult(SQLModel, table=True):
    """Cached per-assignment score, recomputed while the submission is DRAFT."""

    __tablename__ = "score_results"

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        primary_key=True,
        max_length=36
    )

    submission_id: str = Field(foreign_key="submissions.id", index=True, max_length=36)
    assignment_id: str = Field(max_length=36)
    employee_id: str = Field(index=True, max_length=36)

    raw_score: Decimal = Field(sa_column=decimal_column(nullable=False))
    weighted_contribution: Decimal = Field(sa_column=decimal_column(nullable=False))

    computed_at: datetime = Field(default_factory=utcnow)


class ScoreSnapshot(SQLModel, table=True):
    """Score as it stood at a given approval transition."""

    __tablename__ = "score_snapshots"

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        primary_key=True,
        max_length=36
    )

    submission_id: str = Field(foreign_key="submissions.id", index=True, max_length=36)

    event: SnapshotEvent = Field(
        sa_column=Column(SQLEnum(SnapshotEvent, name="snapshot_event"), nullable=False),
    )
    status: SubmissionStatus = Field(
        sa_column=Column(SQLEnum(SubmissionStatus, name="submission_status"), nullable=False),
    )
    approval_stage: Optional[ApprovalStage] = Field(
        default=None,
        sa_column=Column(SQLEnum(ApprovalStage, name="approval_stage"), nullable=True),
    )
    revision: int

    total_score: Decimal = Field(sa_column=decimal_column(nullable=False))
    weight_sum: Decimal = Field(sa_column=decimal_column(nullable=False))
    grade: Optional[str] = Field(default=None, max_length=2)
    employee_scores: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="employee_id -> {total_score, weight_sum}"
    )

    actor_id: Optional[str] = Field(default=None, max_length=36)
    taken_at: datetime = Field(default_factory=utcnow)
