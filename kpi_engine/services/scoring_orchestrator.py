# ===== kpi_engine/services/scoring_orchestrator.py =====
"""
Service untuk scoring dan approval submission.

Each public write is one transaction:
1. Load the submission detached from the session
2. Check the period is mutable
3. Apply the state machine / entry changes in memory
4. Re-score from the stored entries
5. compare_and_swap() the submission row, write cache and snapshot
6. Commit, then notify

A failed step rolls the whole transaction back.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from kpi_engine.core.config import settings
from kpi_engine.core.exceptions import (
    NotFound, InvalidTransition, PeriodNotMutable, ConcurrentModification, EntryScopeMismatch
)
from kpi_engine.models.enums import (
    PeriodStatus, SubmissionStatus, SnapshotEvent, RollupMethod
)
from kpi_engine.models.period import AssessmentPeriod
from kpi_engine.models.submission import Submission, DataEntry, ScoreResult, ScoreSnapshot
from kpi_engine.repositories.kpi import KPIRepository
from kpi_engine.repositories.period import PeriodRepository
from kpi_engine.repositories.submission import SubmissionRepository
from kpi_engine.services.department_directory import DepartmentDirectory
from kpi_engine.services.notification import NotificationDispatcher, SubmissionEvent
from kpi_engine.services.period_guard import PeriodGuard
from kpi_engine.services.role_resolver import RoleResolver
from kpi_engine.services.submission_state_machine import SubmissionStateMachine
from kpi_engine.utils.formula_evaluator import FormulaEvaluator
from kpi_engine.utils.grading import determine_grade
from kpi_engine.utils.logging import get_audit_logger
from kpi_engine.utils.rollup import RollupEngine, IndividualScore
from kpi_engine.utils.score_aggregator import ScoreAggregator, AggregateResult, round_total

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

MEMBERSHIP_ROLLUPS = (RollupMethod.LEADER_SCORE, RollupMethod.WEIGHTED_AVERAGE)


@dataclass
class ScoringOutcome:
    """Fresh scores for one submission."""

    results: List[ScoreResult] = field(default_factory=list)
    by_employee: Dict[str, AggregateResult] = field(default_factory=dict)
    total_score: Decimal = Decimal("0.0")
    weight_sum: Decimal = Decimal("0")

    def employee_scores(self) -> Dict[str, Dict[str, Any]]:
        return {
            employee_id: {
                "total_score": str(result.total_score),
                "weight_sum": str(result.weight_sum),
                "grade": determine_grade(result.total_score).value,
            }
            for employee_id, result in self.by_employee.items()
        }


@dataclass
class ScoreView:
    """Read model returned by get_score()."""

    submission: Submission
    results: List[ScoreResult]
    employee_scores: Dict[str, Dict[str, Any]]
    grade: Optional[str]


class ScoringOrchestrator:
    """Coordinates guard, state machine, evaluator and aggregator."""

    def __init__(
        self,
        submission_repo: SubmissionRepository,
        period_repo: PeriodRepository,
        kpi_repo: KPIRepository,
        role_resolver: RoleResolver,
        dispatcher: Optional[NotificationDispatcher] = None,
        evaluator: Optional[FormulaEvaluator] = None,
        aggregator: Optional[ScoreAggregator] = None,
        state_machine: Optional[SubmissionStateMachine] = None,
        period_guard: Optional[PeriodGuard] = None,
        rollup: Optional[RollupEngine] = None,
        rollup_method: Optional[str] = None,
        department_directory: Optional[DepartmentDirectory] = None,
    ):
        self.submission_repo = submission_repo
        self.period_repo = period_repo
        self.kpi_repo = kpi_repo
        self.session = submission_repo.session
        self.role_resolver = role_resolver
        self.dispatcher = dispatcher
        self.evaluator = evaluator or FormulaEvaluator()
        self.aggregator = aggregator or ScoreAggregator()
        self.state_machine = state_machine or SubmissionStateMachine(settings.APPROVAL_STAGES_LIST)
        self.period_guard = period_guard or PeriodGuard()
        self.rollup = rollup or RollupEngine()
        self.rollup_method = RollupMethod((rollup_method or settings.DEPARTMENT_ROLLUP_METHOD).upper())
        self.department_directory = department_directory

        # Leader flag and personal weight only come from the directory
        if self.rollup_method in MEMBERSHIP_ROLLUPS and department_directory is None:
            raise ValueError(
                f"{self.rollup_method.value} rollup requires a department directory "
                f"(set DEPARTMENT_LEADERS / DEPARTMENT_MEMBER_WEIGHTS)"
            )

    # ===== CREATE OPERATIONS =====

    async def create_submission(
        self,
        period_id: str,
        employee_id: Optional[str] = None,
        department_id: Optional[str] = None,
        data_source: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Submission:
        """Open a DRAFT submission numbered after the scope's latest version."""
        period = await self._get_period(period_id)
        self.period_guard.assert_mutable(period)

        try:
            await self._hold_mutable_period(period_id)
            latest = await self.submission_repo.latest_version_for_scope(period_id, employee_id, department_id)
            submission = Submission(
                period_id=period_id,
                employee_id=employee_id,
                department_id=department_id,
                data_source=data_source,
                version=latest + 1,
                status=SubmissionStatus.DRAFT,
                created_by=created_by,
            )
            await self.submission_repo.create(submission)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Submission {submission.id} v{submission.version} created in period {period_id}")
        return submission

    # ===== DATA ENTRY =====

    async def bulk_enter_data(
        self,
        submission_id: str,
        entries: List[Dict[str, Any]],
        expected_revision: Optional[int] = None,
        updated_by: Optional[str] = None,
    ) -> Submission:
        """
        Upsert actual values on a DRAFT submission and refresh its scores.

        Each entry is a dict with assignment_id, employee_id, actual_value
        and an optional remark.
        """
        submission = await self._get_submission(submission_id)
        period = await self._get_period(submission.period_id)
        self.period_guard.assert_mutable(period)

        if not submission.is_editable():
            raise InvalidTransition(
                f"Entries of a {SubmissionStatus(submission.status).value} submission cannot change",
                submission_id=submission_id,
            )
        await self._validate_entries(submission, entries)

        revision = self._resolve_revision(submission, expected_revision)
        try:
            await self.submission_repo.upsert_entries(submission_id, entries)
            stored = await self.submission_repo.get_entries(submission_id)
            outcome = await self._score(submission, stored)

            await self.submission_repo.replace_score_results(submission_id, outcome.results)
            submission.total_score = outcome.total_score
            submission.weight_sum = outcome.weight_sum
            submission.updated_by = updated_by
            await self._swap(submission, revision)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            f"Submission {submission_id}: {len(entries)} entries stored, "
            f"total {submission.total_score} (weights {submission.weight_sum})"
        )
        return submission

    # ===== TRANSITIONS =====

    async def submit(
        self,
        submission_id: str,
        submitted_by: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> Submission:
        async def mutate(submission: Submission, entries: List[DataEntry]) -> None:
            self.state_machine.submit(submission, entries, submitted_by)

        return await self._transition(submission_id, SnapshotEvent.SUBMIT, submitted_by, expected_revision, mutate)

    async def approve(
        self,
        submission_id: str,
        approver_id: str,
        expected_revision: Optional[int] = None,
    ) -> Submission:
        async def mutate(submission: Submission, entries: List[DataEntry]) -> None:
            granted = False
            if SubmissionStatus(submission.status) == SubmissionStatus.PENDING:
                granted = await self.role_resolver.has_stage_role(
                    approver_id, submission.approval_stage, submission
                )
            self.state_machine.approve(submission, approver_id, granted)

        return await self._transition(submission_id, SnapshotEvent.APPROVE, approver_id, expected_revision, mutate)

    async def reject(
        self,
        submission_id: str,
        reason: Optional[str],
        rejected_by: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> Submission:
        async def mutate(submission: Submission, entries: List[DataEntry]) -> None:
            self.state_machine.reject(submission, reason, rejected_by)

        return await self._transition(submission_id, SnapshotEvent.REJECT, rejected_by, expected_revision, mutate)

    async def return_submission(
        self,
        submission_id: str,
        returned_by: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> Submission:
        async def mutate(submission: Submission, entries: List[DataEntry]) -> None:
            self.state_machine.return_to_previous(submission)
            submission.updated_by = returned_by

        return await self._transition(submission_id, SnapshotEvent.RETURN, returned_by, expected_revision, mutate)

    async def resubmit(self, submission_id: str, created_by: Optional[str] = None) -> Submission:
        """Open version+1 of a REJECTED submission with copied entries."""
        original = await self._get_submission(submission_id)
        period = await self._get_period(original.period_id)
        self.period_guard.assert_mutable(period)

        try:
            await self._hold_mutable_period(original.period_id)
            entries = await self.submission_repo.get_entries(submission_id)
            new_submission, new_entries = self.state_machine.resubmit_after_rejection(
                original, entries, created_by
            )
            await self.submission_repo.create(new_submission)
            await self.submission_repo.add_entries(new_entries)

            outcome = await self._score(new_submission, new_entries)
            await self.submission_repo.replace_score_results(new_submission.id, outcome.results)
            new_submission.total_score = outcome.total_score
            new_submission.weight_sum = outcome.weight_sum
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConcurrentModification(
                f"Submission {submission_id} was already resubmitted",
                submission_id=submission_id,
            ) from e
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Submission {submission_id} resubmitted as {new_submission.id} v{new_submission.version}")
        self._audit(new_submission, "RESUBMIT", created_by)
        await self._notify(new_submission, "RESUBMIT", created_by)
        return new_submission

    # ===== READ OPERATIONS =====

    async def get_submission(self, submission_id: str) -> Submission:
        submission = await self.submission_repo.get_by_id(submission_id)
        if not submission:
            raise NotFound("Submission tidak ditemukan", submission_id=submission_id)
        return submission

    async def get_score(self, submission_id: str) -> ScoreView:
        """Cached per-assignment scores plus per-employee totals."""
        submission = await self.get_submission(submission_id)
        results = await self.submission_repo.get_score_results(submission_id)

        employee_scores: Dict[str, Dict[str, Any]] = {}
        for result in results:
            bucket = employee_scores.setdefault(
                result.employee_id, {"total": Decimal("0"), "assignments": 0}
            )
            bucket["total"] += result.weighted_contribution
            bucket["assignments"] += 1

        for employee_id, bucket in employee_scores.items():
            total = round_total(bucket.pop("total"))
            bucket["total_score"] = str(total)
            bucket["grade"] = determine_grade(total).value

        grade = None
        if submission.total_score is not None:
            grade = determine_grade(submission.total_score).value

        return ScoreView(
            submission=submission,
            results=results,
            employee_scores=employee_scores,
            grade=grade,
        )

    async def get_snapshots(self, submission_id: str) -> List[ScoreSnapshot]:
        await self.get_submission(submission_id)
        return await self.submission_repo.get_snapshots(submission_id)

    # ===== HELPERS =====

    async def _get_submission(self, submission_id: str) -> Submission:
        submission = await self.submission_repo.get_detached(submission_id)
        if not submission:
            raise NotFound("Submission tidak ditemukan", submission_id=submission_id)
        return submission

    async def _get_period(self, period_id: str) -> AssessmentPeriod:
        period = await self.period_repo.get_by_id(period_id)
        if not period:
            raise NotFound("Periode tidak ditemukan", period_id=period_id)
        return period

    async def _hold_mutable_period(self, period_id: str) -> None:
        """Re-check the period inside the write transaction, keeping it share-locked until commit."""
        status = await self.period_repo.get_status_for_share(period_id)
        if status is None:
            raise NotFound("Periode tidak ditemukan", period_id=period_id)
        if PeriodStatus(status) not in PeriodStatus.mutable_statuses():
            logger.warning(f"Period {period_id} became {PeriodStatus(status).value} before the write landed")
            raise PeriodNotMutable(
                f"Period was {PeriodStatus(status).value} before the write landed",
                period_id=period_id,
            )

    def _resolve_revision(self, submission: Submission, expected_revision: Optional[int]) -> int:
        """Caller's revision when given, otherwise the one just read."""
        if expected_revision is None:
            return submission.revision
        if expected_revision != submission.revision:
            logger.warning(
                f"Stale revision on submission {submission.id}: "
                f"expected {expected_revision}, found {submission.revision}"
            )
            raise ConcurrentModification(
                "Submission was modified by another request, reload and retry",
                submission_id=submission.id,
                expected_revision=expected_revision,
                current_revision=submission.revision,
            )
        return expected_revision

    async def _validate_entries(self, submission: Submission, entries: List[Dict[str, Any]]) -> None:
        seen = set()
        assignment_ids = []
        for item in entries:
            key = (item["assignment_id"], item["employee_id"])
            if key in seen:
                raise InvalidTransition(
                    f"Duplicate entry for assignment {key[0]} and employee {key[1]}",
                    submission_id=submission.id,
                )
            seen.add(key)
            assignment_ids.append(item["assignment_id"])

        found = await self.kpi_repo.get_assignments_with_definitions(assignment_ids)
        for item in entries:
            assignment_id = item["assignment_id"]
            pair = found.get(assignment_id)
            if pair is None or pair[0].period_id != submission.period_id or not pair[0].is_active:
                raise NotFound(
                    f"Active assignment {assignment_id} not found in period",
                    assignment_id=assignment_id,
                )
            self._check_entry_scope(submission, pair[0], item["employee_id"])

    def _check_entry_scope(self, submission: Submission, assignment, employee_id: str) -> None:
        """An entry must belong to both its assignment and the submission."""
        if assignment.employee_id and assignment.employee_id != employee_id:
            reason = f"assignment {assignment.id} belongs to employee {assignment.employee_id}"
        elif submission.employee_id and submission.employee_id != employee_id:
            reason = f"submission {submission.id} covers employee {submission.employee_id}"
        elif (
            assignment.department_id
            and submission.department_id
            and assignment.department_id != submission.department_id
        ):
            reason = f"assignment {assignment.id} belongs to department {assignment.department_id}"
        else:
            return

        raise EntryScopeMismatch(
            f"Entry for employee {employee_id} rejected: {reason}",
            submission_id=submission.id,
            assignment_id=assignment.id,
            employee_id=employee_id,
        )

    async def _score(self, submission: Submission, entries: List[DataEntry]) -> ScoringOutcome:
        """Evaluate every entry that has an actual value and aggregate."""
        scored = [entry for entry in entries if entry.actual_value is not None]
        pairs = await self.kpi_repo.get_assignments_with_definitions(e.assignment_id for e in scored)

        triples = []
        for entry in scored:
            assignment, definition = pairs[entry.assignment_id]
            score = self.evaluator.evaluate_definition(definition, assignment, entry.actual_value)
            triples.append((entry.employee_id, assignment, score))

        outcome = ScoringOutcome(by_employee=self.aggregator.aggregate_by_employee(triples))
        for employee_id, aggregate in outcome.by_employee.items():
            for assignment_id, contribution in aggregate.contributions.items():
                outcome.results.append(
                    ScoreResult(
                        submission_id=submission.id,
                        assignment_id=assignment_id,
                        employee_id=employee_id,
                        raw_score=aggregate.raw_scores[assignment_id],
                        weighted_contribution=contribution,
                    )
                )

        if len(outcome.by_employee) == 1:
            only = next(iter(outcome.by_employee.values()))
            outcome.total_score = only.total_score
            outcome.weight_sum = only.weight_sum
        elif outcome.by_employee:
            members = await self._department_members(submission, list(outcome.by_employee))
            scores = []
            for employee_id, result in outcome.by_employee.items():
                member = members.get(employee_id)
                scores.append(
                    IndividualScore(
                        employee_id,
                        result.total_score,
                        is_leader=member.is_leader if member else False,
                        weight=member.weight if member else None,
                    )
                )
            if self.rollup_method == RollupMethod.LEADER_SCORE and not any(s.is_leader for s in scores):
                logger.warning(f"No leader among scored employees of submission {submission.id}, averaging")
            outcome.total_score = self.rollup.department_score(scores, self.rollup_method)
            # Least complete employee
            outcome.weight_sum = min(r.weight_sum for r in outcome.by_employee.values())

        return outcome

    async def _department_members(self, submission: Submission, employee_ids: List[str]):
        if self.department_directory is None or not submission.department_id:
            return {}
        return await self.department_directory.get_members(submission.department_id, employee_ids)

    async def _swap(self, submission: Submission, expected_revision: int) -> None:
        """Run the CAS write; classify a miss."""
        if await self.submission_repo.compare_and_swap(submission, expected_revision):
            return

        status = await self.period_repo.get_status(submission.period_id)
        if status is not None and PeriodStatus(status) not in PeriodStatus.mutable_statuses():
            raise PeriodNotMutable(
                f"Period was {PeriodStatus(status).value} before the write landed",
                period_id=submission.period_id,
            )

        current = await self.submission_repo.get_current_revision(submission.id)
        logger.warning(
            f"Concurrent modification on submission {submission.id}: "
            f"expected revision {expected_revision}, found {current}"
        )
        raise ConcurrentModification(
            "Submission was modified by another request, reload and retry",
            submission_id=submission.id,
            expected_revision=expected_revision,
            current_revision=current,
        )

    async def _transition(
        self,
        submission_id: str,
        event: SnapshotEvent,
        actor_id: Optional[str],
        expected_revision: Optional[int],
        mutate: Callable[[Submission, List[DataEntry]], Awaitable[None]],
    ) -> Submission:
        submission = await self._get_submission(submission_id)
        period = await self._get_period(submission.period_id)
        self.period_guard.assert_mutable(period)

        revision = self._resolve_revision(submission, expected_revision)
        try:
            entries = await self.submission_repo.get_entries(submission_id)
            await mutate(submission, entries)

            outcome = await self._score(submission, entries)
            submission.total_score = outcome.total_score
            submission.weight_sum = outcome.weight_sum
            await self._swap(submission, revision)

            await self.submission_repo.add_snapshot(self._snapshot(submission, outcome, event, actor_id))
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        self._audit(submission, event.value, actor_id)
        await self._notify(submission, event.value, actor_id)
        return submission

    def _snapshot(
        self,
        submission: Submission,
        outcome: ScoringOutcome,
        event: SnapshotEvent,
        actor_id: Optional[str],
    ) -> ScoreSnapshot:
        return ScoreSnapshot(
            submission_id=submission.id,
            event=event,
            status=submission.status,
            approval_stage=submission.approval_stage,
            revision=submission.revision,
            total_score=outcome.total_score,
            weight_sum=outcome.weight_sum,
            grade=determine_grade(outcome.total_score).value,
            employee_scores=outcome.employee_scores(),
            actor_id=actor_id,
        )

    async def _notify(self, submission: Submission, event: str, actor_id: Optional[str]) -> None:
        """Fire after commit; delivery failures never undo the transition."""
        if self.dispatcher is None:
            return
        try:
            await self.dispatcher.dispatch(
                SubmissionEvent(
                    submission_id=submission.id,
                    event=event,
                    status=SubmissionStatus(submission.status).value,
                    approval_stage=submission.approval_stage.value if submission.approval_stage else None,
                    version=submission.version,
                    revision=submission.revision,
                    actor_id=actor_id,
                )
            )
        except Exception as e:
            logger.error(f"Notification for submission {submission.id} ({event}) failed: {e}")

    def _audit(self, submission: Submission, event: str, actor_id: Optional[str]) -> None:
        stage = submission.approval_stage.value if submission.approval_stage else None
        audit_logger.info(
            f"Submission {submission.id} {event}: status={SubmissionStatus(submission.status).value} "
            f"stage={stage} rev={submission.revision}",
            extra={
                "submission_id": submission.id,
                "period_id": submission.period_id,
                "event": event,
                "status": SubmissionStatus(submission.status).value,
                "approval_stage": stage,
                "revision": submission.revision,
                "actor_id": actor_id,
                "total_score": submission.total_score,
            },
        )
