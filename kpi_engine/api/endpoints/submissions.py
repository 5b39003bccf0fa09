# ===== kpi_engine/api/endpoints/submissions.py =====
"""API endpoints untuk submission scoring dan approval."""

from typing import List

from fastapi import APIRouter, Depends, status

from kpi_engine.api.dependencies import get_scoring_orchestrator
from kpi_engine.schemas.submission import (
    SubmissionCreate, BulkEntryRequest, TransitionRequest, RejectRequest, ResubmitRequest,
    SubmissionResponse, SubmissionScoreResponse, ScoreResultResponse, ScoreSnapshotResponse
)
from kpi_engine.services.scoring_orchestrator import ScoringOrchestrator

router = APIRouter()


# ===== CREATE OPERATIONS =====

@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    data: SubmissionCreate,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    """
    Create DRAFT submission.

    **Business Rules**:
    - Period must be DRAFT or ACTIVE
    - Version = latest version in the same scope + 1
    """
    return await orchestrator.create_submission(
        data.period_id,
        employee_id=data.employee_id,
        department_id=data.department_id,
        data_source=data.data_source,
        created_by=data.created_by,
    )


# ===== DATA ENTRY =====

@router.put("/{submission_id}/entries", response_model=SubmissionResponse)
async def bulk_enter_data(
    submission_id: str,
    data: BulkEntryRequest,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    """
    Upsert actual values and recompute scores.

    Only DRAFT submissions accept entries. Pass `expected_revision` to fail
    with 409 CONCURRENT_MODIFICATION when someone else wrote first.
    """
    return await orchestrator.bulk_enter_data(
        submission_id,
        [entry.model_dump() for entry in data.entries],
        expected_revision=data.expected_revision,
        updated_by=data.updated_by,
    )


# ===== TRANSITIONS =====

@router.post("/{submission_id}/submit", response_model=SubmissionResponse)
async def submit_submission(
    submission_id: str,
    data: TransitionRequest,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    """DRAFT → PENDING at the first approval stage."""
    return await orchestrator.submit(
        submission_id, submitted_by=data.actor_id, expected_revision=data.expected_revision
    )


@router.post("/{submission_id}/approve", response_model=SubmissionResponse)
async def approve_submission(
    submission_id: str,
    data: TransitionRequest,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    """
    Advance one approval stage.

    Approving at the last stage sets status APPROVED and stage COMPLETED.
    """
    return await orchestrator.approve(
        submission_id, approver_id=data.actor_id, expected_revision=data.expected_revision
    )


@router.post("/{submission_id}/reject", response_model=SubmissionResponse)
async def reject_submission(
    submission_id: str,
    data: RejectRequest,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    """PENDING → REJECTED; a reason is required."""
    return await orchestrator.reject(
        submission_id, data.reason, rejected_by=data.actor_id, expected_revision=data.expected_revision
    )


@router.post("/{submission_id}/return", response_model=SubmissionResponse)
async def return_submission(
    submission_id: str,
    data: TransitionRequest,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    """Move back one approval stage."""
    return await orchestrator.return_submission(
        submission_id, returned_by=data.actor_id, expected_revision=data.expected_revision
    )


@router.post("/{submission_id}/resubmit", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def resubmit_submission(
    submission_id: str,
    data: ResubmitRequest,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    """Open a new DRAFT version of a REJECTED submission."""
    return await orchestrator.resubmit(submission_id, created_by=data.actor_id)


# ===== READ OPERATIONS =====

@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: str,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    return await orchestrator.get_submission(submission_id)


@router.get("/{submission_id}/score", response_model=SubmissionScoreResponse)
async def get_submission_score(
    submission_id: str,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    """Cached per-assignment scores, per-employee totals and grade."""
    view = await orchestrator.get_score(submission_id)
    submission = view.submission
    return SubmissionScoreResponse(
        submission_id=submission.id,
        status=submission.status,
        approval_stage=submission.approval_stage,
        revision=submission.revision,
        total_score=submission.total_score,
        weight_sum=submission.weight_sum,
        is_complete=submission.weight_sum is not None and submission.weight_sum == 100,
        grade=view.grade,
        results=[ScoreResultResponse.model_validate(r) for r in view.results],
        employee_scores=view.employee_scores,
    )


@router.get("/{submission_id}/snapshots", response_model=List[ScoreSnapshotResponse])
async def get_submission_snapshots(
    submission_id: str,
    orchestrator: ScoringOrchestrator = Depends(get_scoring_orchestrator),
):
    """Score history written at every approval transition, oldest first."""
    return await orchestrator.get_snapshots(submission_id)
