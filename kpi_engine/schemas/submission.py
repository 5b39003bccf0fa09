# ===== kpi_engine/schemas/submission.py =====
"""Schemas untuk submission, data entry dan scores."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from kpi_engine.models.enums import SubmissionStatus, ApprovalStage, SnapshotEvent


# ===== REQUEST SCHEMAS =====

class SubmissionCreate(BaseModel):
    """Schema untuk create submission."""

    period_id: str = Field(..., max_length=36)
    employee_id: Optional[str] = Field(None, max_length=36)
    department_id: Optional[str] = Field(None, max_length=36)
    data_source: Optional[str] = Field(None, max_length=50, description="manual / excel / api")
    created_by: Optional[str] = Field(None, max_length=36)


class DataEntryInput(BaseModel):
    assignment_id: str = Field(..., max_length=36)
    employee_id: str = Field(..., max_length=36)
    actual_value: Optional[Decimal] = None
    remark: Optional[str] = None


class BulkEntryRequest(BaseModel):
    """Schema untuk bulk data entry."""

    entries: List[DataEntryInput] = Field(..., min_length=1)
    expected_revision: Optional[int] = Field(None, ge=0)
    updated_by: Optional[str] = Field(None, max_length=36)

    @model_validator(mode="after")
    def validate_unique_keys(self) -> "BulkEntryRequest":
        keys = [(e.assignment_id, e.employee_id) for e in self.entries]
        if len(keys) != len(set(keys)):
            raise ValueError("Each (assignment_id, employee_id) may appear only once")
        return self


class TransitionRequest(BaseModel):
    """Body for submit / approve / return."""

    actor_id: str = Field(..., max_length=36)
    expected_revision: Optional[int] = Field(None, ge=0)


class RejectRequest(TransitionRequest):
    reason: Optional[str] = None


class ResubmitRequest(BaseModel):
    actor_id: Optional[str] = Field(None, max_length=36)


# ===== RESPONSE SCHEMAS =====

class SubmissionResponse(BaseModel):
    """Schema untuk response submission."""

    id: str
    period_id: str
    employee_id: Optional[str] = None
    department_id: Optional[str] = None
    data_source: Optional[str] = None
    version: int
    previous_submission_id: Optional[str] = None
    status: SubmissionStatus
    approval_stage: Optional[ApprovalStage] = None
    reject_reason: Optional[str] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    total_score: Optional[Decimal] = None
    weight_sum: Optional[Decimal] = None
    revision: int

    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ScoreResultResponse(BaseModel):
    assignment_id: str
    employee_id: str
    raw_score: Decimal
    weighted_contribution: Decimal

    model_config = ConfigDict(from_attributes=True)


class SubmissionScoreResponse(BaseModel):
    """Cached scores of a submission."""

    submission_id: str
    status: SubmissionStatus
    approval_stage: Optional[ApprovalStage] = None
    revision: int
    total_score: Optional[Decimal] = None
    weight_sum: Optional[Decimal] = None
    is_complete: bool
    grade: Optional[str] = None
    results: List[ScoreResultResponse]
    employee_scores: Dict[str, Dict[str, Any]]


class ScoreSnapshotResponse(BaseModel):
    id: str
    submission_id: str
    event: SnapshotEvent
    status: SubmissionStatus
    approval_stage: Optional[ApprovalStage] = None
    revision: int
    total_score: Decimal
    weight_sum: Decimal
    grade: Optional[str] = None
    employee_scores: Optional[Dict[str, Any]] = None
    actor_id: Optional[str] = None
    taken_at: datetime

    model_config = ConfigDict(from_attributes=True)
