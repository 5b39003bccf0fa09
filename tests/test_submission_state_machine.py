from decimal import Decimal

import pytest

from kpi_engine.core.exceptions import (
    InvalidTransition, EmptySubmission, WrongApprover, MissingReason, CannotReturnFromFirstStage
)
from kpi_engine.models.enums import SubmissionStatus, ApprovalStage
from kpi_engine.models.submission import Submission, DataEntry
from kpi_engine.services.submission_state_machine import SubmissionStateMachine


@pytest.fixture
def machine():
    return SubmissionStateMachine()


def make_submission(status=SubmissionStatus.DRAFT, stage=None):
    return Submission(period_id="p", employee_id="emp-1", status=status, approval_stage=stage)


def make_entry(submission, actual="10"):
    return DataEntry(
        submission_id=submission.id,
        assignment_id="a-1",
        employee_id="emp-1",
        actual_value=Decimal(actual) if actual is not None else None,
    )


class TestSubmit:
    def test_draft_moves_to_first_stage(self, machine):
        submission = make_submission()
        machine.submit(submission, [make_entry(submission)], "emp-1")

        assert submission.status == SubmissionStatus.PENDING
        assert submission.approval_stage == ApprovalStage.SELF_EVAL
        assert submission.submitted_by == "emp-1"
        assert submission.submitted_at is not None

    def test_no_actual_values_rejected(self, machine):
        submission = make_submission()
        with pytest.raises(EmptySubmission):
            machine.submit(submission, [make_entry(submission, actual=None)])
        with pytest.raises(EmptySubmission):
            machine.submit(submission, [])
        assert submission.status == SubmissionStatus.DRAFT

    def test_only_from_draft(self, machine):
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.SELF_EVAL)
        with pytest.raises(InvalidTransition):
            machine.submit(submission, [make_entry(submission)])


class TestApprove:
    def test_advances_one_stage(self, machine):
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.SELF_EVAL)
        machine.approve(submission, "emp-1", role_granted=True)

        assert submission.approval_stage == ApprovalStage.MANAGER_REVIEW
        assert submission.status == SubmissionStatus.PENDING

    def test_last_stage_completes(self, machine):
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.HR_CONFIRM)
        machine.approve(submission, "hr-1", role_granted=True)

        assert submission.approval_stage == ApprovalStage.COMPLETED
        assert submission.status == SubmissionStatus.APPROVED
        assert submission.approved_by == "hr-1"
        assert submission.approved_at is not None

    def test_role_denied(self, machine):
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.MANAGER_REVIEW)
        with pytest.raises(WrongApprover):
            machine.approve(submission, "emp-1", role_granted=False)
        assert submission.approval_stage == ApprovalStage.MANAGER_REVIEW

    @pytest.mark.parametrize("status", [
        SubmissionStatus.DRAFT, SubmissionStatus.APPROVED, SubmissionStatus.REJECTED,
    ])
    def test_only_pending(self, machine, status):
        with pytest.raises(InvalidTransition):
            machine.approve(make_submission(status), "hr-1", role_granted=True)


class TestReject:
    def test_keeps_stage(self, machine):
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.SKIP_LEVEL)
        machine.reject(submission, "  targets misreported ", "skip-1")

        assert submission.status == SubmissionStatus.REJECTED
        assert submission.approval_stage == ApprovalStage.SKIP_LEVEL
        assert submission.reject_reason == "targets misreported"

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reason_required(self, machine, reason):
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.MANAGER_REVIEW)
        with pytest.raises(MissingReason):
            machine.reject(submission, reason)

    def test_only_pending(self, machine):
        with pytest.raises(InvalidTransition):
            machine.reject(make_submission(SubmissionStatus.APPROVED, ApprovalStage.COMPLETED), "late")


class TestReturn:
    def test_moves_back_one_stage(self, machine):
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.MANAGER_REVIEW)
        machine.return_to_previous(submission)

        assert submission.approval_stage == ApprovalStage.SELF_EVAL
        assert submission.status == SubmissionStatus.PENDING

    def test_first_stage_cannot_return(self, machine):
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.SELF_EVAL)
        with pytest.raises(CannotReturnFromFirstStage):
            machine.return_to_previous(submission)


class TestResubmit:
    def test_new_version_with_copied_entries(self, machine):
        original = make_submission(SubmissionStatus.REJECTED, ApprovalStage.MANAGER_REVIEW)
        entries = [make_entry(original, "42")]

        new_submission, new_entries = machine.resubmit_after_rejection(original, entries, "emp-1")

        assert new_submission.id != original.id
        assert new_submission.version == original.version + 1
        assert new_submission.previous_submission_id == original.id
        assert new_submission.status == SubmissionStatus.DRAFT
        assert new_submission.approval_stage is None
        assert [e.submission_id for e in new_entries] == [new_submission.id]
        assert new_entries[0].actual_value == Decimal("42")
        assert new_entries[0] is not entries[0]

        assert original.status == SubmissionStatus.REJECTED
        assert entries[0].submission_id == original.id

    def test_only_from_rejected(self, machine):
        with pytest.raises(InvalidTransition):
            machine.resubmit_after_rejection(make_submission(), [])


class TestConfiguredStages:
    def test_short_sequence(self):
        machine = SubmissionStateMachine(["SELF_EVAL", "HR_CONFIRM"])
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.SELF_EVAL)

        machine.approve(submission, "emp-1", role_granted=True)
        assert submission.approval_stage == ApprovalStage.HR_CONFIRM
        machine.approve(submission, "hr-1", role_granted=True)
        assert submission.status == SubmissionStatus.APPROVED

    def test_completed_not_configurable(self):
        with pytest.raises(ValueError):
            SubmissionStateMachine(["SELF_EVAL", "COMPLETED"])

    def test_stage_outside_sequence(self):
        machine = SubmissionStateMachine(["SELF_EVAL", "HR_CONFIRM"])
        submission = make_submission(SubmissionStatus.PENDING, ApprovalStage.SKIP_LEVEL)
        with pytest.raises(InvalidTransition):
            machine.approve(submission, "x", role_granted=True)
