# ===== kpi_engine/services/submission_state_machine.py =====
"""
State machine untuk submission approval.

Status flow:  DRAFT → PENDING → APPROVED | REJECTED
Stage flow (while PENDING), index based:
    SELF_EVAL → MANAGER_REVIEW → SKIP_LEVEL → HR_CONFIRM → COMPLETED

Approving the last review stage moves to COMPLETED and APPROVED in the same
step. Returning moves one stage back and keeps PENDING. REJECTED is terminal
for a version; a new version is opened with resubmit_after_rejection().

The machine only mutates in-memory objects. Persisting them atomically is
the caller's job (see ScoringOrchestrator).
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from kpi_engine.core.exceptions import (
    InvalidTransition, EmptySubmission, WrongApprover, MissingReason,
    CannotReturnFromFirstStage
)
from kpi_engine.models.enums import SubmissionStatus, ApprovalStage
from kpi_engine.models.submission import Submission, DataEntry

logger = logging.getLogger(__name__)


class SubmissionStateMachine:
    """Owns every status/stage mutation of a Submission."""

    def __init__(self, stages: Optional[Sequence] = None):
        configured = [ApprovalStage(s) for s in (stages or ApprovalStage.get_all_stages())]
        if not configured:
            raise ValueError("At least one approval stage is required")
        if ApprovalStage.COMPLETED in configured:
            raise ValueError("COMPLETED is implicit and cannot be configured as a review stage")
        if len(set(configured)) != len(configured):
            raise ValueError("Approval stages must be unique")
        self.stages: List[ApprovalStage] = configured

    # ===== STAGE HELPERS =====

    @property
    def first_stage(self) -> ApprovalStage:
        return self.stages[0]

    @property
    def last_stage(self) -> ApprovalStage:
        return self.stages[-1]

    def stage_index(self, stage) -> int:
        """Position of a review stage in the configured sequence."""
        try:
            return self.stages.index(ApprovalStage(stage))
        except ValueError:
            raise InvalidTransition(f"Stage {stage} is not part of the approval sequence")

    def next_stage(self, stage) -> ApprovalStage:
        index = self.stage_index(stage)
        if index + 1 >= len(self.stages):
            return ApprovalStage.COMPLETED
        return self.stages[index + 1]

    def previous_stage(self, stage) -> Optional[ApprovalStage]:
        index = self.stage_index(stage)
        if index == 0:
            return None
        return self.stages[index - 1]

    def _require_status(self, submission: Submission, expected: SubmissionStatus, action: str) -> None:
        if SubmissionStatus(submission.status) != expected:
            raise InvalidTransition(
                f"Cannot {action} a {SubmissionStatus(submission.status).value} submission",
                submission_id=submission.id,
            )

    # ===== TRANSITIONS =====

    def submit(
        self,
        submission: Submission,
        entries: Iterable[DataEntry],
        submitted_by: Optional[str] = None,
    ) -> Submission:
        """DRAFT → PENDING at the first configured stage."""
        self._require_status(submission, SubmissionStatus.DRAFT, "submit")

        if not any(entry.actual_value is not None for entry in entries):
            raise EmptySubmission(
                "Submission has no data entry with an actual value",
                submission_id=submission.id,
            )

        submission.status = SubmissionStatus.PENDING
        submission.approval_stage = self.first_stage
        submission.reject_reason = None
        submission.submitted_by = submitted_by
        submission.submitted_at = datetime.utcnow()
        logger.info(f"Submission {submission.id} v{submission.version} submitted at {self.first_stage.value}")
        return submission

    def approve(self, submission: Submission, approver_id: str, role_granted: bool) -> Submission:
        """
        Advance exactly one stage.

        Args:
            role_granted: answer of the injected role gate for the current
                stage; False raises WrongApprover.
        """
        self._require_status(submission, SubmissionStatus.PENDING, "approve")

        current = ApprovalStage(submission.approval_stage)
        if not role_granted:
            raise WrongApprover(
                f"User {approver_id} does not hold the role required for {current.value}",
                submission_id=submission.id,
                stage=current.value,
            )

        following = self.next_stage(current)
        submission.approval_stage = following
        if following == ApprovalStage.COMPLETED:
            submission.status = SubmissionStatus.APPROVED
            submission.approved_by = approver_id
            submission.approved_at = datetime.utcnow()

        logger.info(f"Submission {submission.id} approved by {approver_id}: {current.value} → {following.value}")
        return submission

    def reject(self, submission: Submission, reason: Optional[str], rejected_by: Optional[str] = None) -> Submission:
        """PENDING → REJECTED from any stage; stage kept for audit."""
        if reason is None or not reason.strip():
            raise MissingReason("A rejection reason is required", submission_id=submission.id)

        self._require_status(submission, SubmissionStatus.PENDING, "reject")

        submission.status = SubmissionStatus.REJECTED
        submission.reject_reason = reason.strip()
        if rejected_by:
            submission.updated_by = rejected_by

        logger.info(f"Submission {submission.id} rejected at {ApprovalStage(submission.approval_stage).value}")
        return submission

    def return_to_previous(self, submission: Submission) -> Submission:
        """Move back one stage, status stays PENDING."""
        self._require_status(submission, SubmissionStatus.PENDING, "return")

        current = ApprovalStage(submission.approval_stage)
        previous = self.previous_stage(current)
        if previous is None:
            raise CannotReturnFromFirstStage(
                f"Submission is at {current.value}, the first stage",
                submission_id=submission.id,
            )

        submission.approval_stage = previous
        logger.info(f"Submission {submission.id} returned: {current.value} → {previous.value}")
        return submission

    def resubmit_after_rejection(
        self,
        submission: Submission,
        entries: Iterable[DataEntry],
        created_by: Optional[str] = None,
    ) -> Tuple[Submission, List[DataEntry]]:
        """
        Open version+1 as a DRAFT with copied entries.

        The rejected original is not modified.
        """
        self._require_status(submission, SubmissionStatus.REJECTED, "resubmit")

        new_submission = Submission(
            period_id=submission.period_id,
            employee_id=submission.employee_id,
            department_id=submission.department_id,
            data_source=submission.data_source,
            version=submission.version + 1,
            previous_submission_id=submission.id,
            status=SubmissionStatus.DRAFT,
            approval_stage=None,
            created_by=created_by,
        )
        new_entries = [entry.copy_for(new_submission.id) for entry in entries]

        logger.info(
            f"Submission {submission.id} v{submission.version} reopened as "
            f"{new_submission.id} v{new_submission.version}"
        )
        return new_submission, new_entries
