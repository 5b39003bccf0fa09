# ===== kpi_engine/repositories/submission.py =====
"""Repository untuk submission, data entry, score cache dan snapshots."""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, and_, func, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from kpi_engine.models.enums import PeriodStatus
from kpi_engine.models.period import AssessmentPeriod
from kpi_engine.models.submission import Submission, DataEntry, ScoreResult, ScoreSnapshot

# Columns written through compare_and_swap
STATE_FIELDS = (
    "status",
    "approval_stage",
    "reject_reason",
    "submitted_by",
    "submitted_at",
    "approved_by",
    "approved_at",
    "total_score",
    "weight_sum",
    "updated_by",
)


class SubmissionRepository:
    """Repository untuk operasi submission."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ===== CREATE OPERATIONS =====

    async def create(self, submission: Submission) -> Submission:
        """Stage a new submission; the caller commits."""
        self.session.add(submission)
        await self.session.flush()
        return submission

    async def add_entries(self, entries: Iterable[DataEntry]) -> List[DataEntry]:
        entries = list(entries)
        self.session.add_all(entries)
        await self.session.flush()
        return entries

    async def add_snapshot(self, snapshot: ScoreSnapshot) -> ScoreSnapshot:
        self.session.add(snapshot)
        await self.session.flush()
        return snapshot

    # ===== READ OPERATIONS =====

    async def get_by_id(self, submission_id: str) -> Optional[Submission]:
        """Get submission by ID."""
        query = select(Submission).where(
            and_(Submission.id == submission_id, Submission.deleted_at.is_(None))
        ).execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_detached(self, submission_id: str) -> Optional[Submission]:
        """
        Load a submission outside the unit of work.

        State changes on the returned object are never autoflushed; they
        reach the database only through compare_and_swap().
        """
        submission = await self.get_by_id(submission_id)
        if submission is not None:
            self.session.expunge(submission)
        return submission

    async def latest_version_for_scope(
        self,
        period_id: str,
        employee_id: Optional[str],
        department_id: Optional[str],
    ) -> int:
        """Highest version number in the scope, 0 when none exists."""
        query = select(func.max(Submission.version)).where(
            and_(
                Submission.period_id == period_id,
                Submission.employee_id.is_(None) if employee_id is None else Submission.employee_id == employee_id,
                Submission.department_id.is_(None) if department_id is None else Submission.department_id == department_id,
            )
        )
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def get_entries(self, submission_id: str) -> List[DataEntry]:
        query = (
            select(DataEntry)
            .where(and_(DataEntry.submission_id == submission_id, DataEntry.deleted_at.is_(None)))
            .order_by(DataEntry.employee_id, DataEntry.assignment_id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_score_results(self, submission_id: str) -> List[ScoreResult]:
        query = (
            select(ScoreResult)
            .where(ScoreResult.submission_id == submission_id)
            .order_by(ScoreResult.employee_id, ScoreResult.assignment_id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_snapshots(self, submission_id: str) -> List[ScoreSnapshot]:
        """Snapshots oldest first."""
        query = (
            select(ScoreSnapshot)
            .where(ScoreSnapshot.submission_id == submission_id)
            .order_by(ScoreSnapshot.revision, ScoreSnapshot.taken_at)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_current_revision(self, submission_id: str) -> Optional[int]:
        result = await self.session.execute(
            select(Submission.revision).where(Submission.id == submission_id)
        )
        return result.scalar_one_or_none()

    # ===== UPDATE OPERATIONS =====

    async def upsert_entries(self, submission_id: str, entries: Iterable[Dict[str, Any]]) -> List[DataEntry]:
        """
        Insert or update entries keyed by (assignment_id, employee_id).

        Existing rows not named in `entries` are left as they are.
        """
        existing = {
            (entry.assignment_id, entry.employee_id): entry
            for entry in await self.get_entries(submission_id)
        }

        touched = []
        for item in entries:
            key = (item["assignment_id"], item["employee_id"])
            entry = existing.get(key)
            if entry is None:
                entry = DataEntry(
                    submission_id=submission_id,
                    assignment_id=item["assignment_id"],
                    employee_id=item["employee_id"],
                )
                self.session.add(entry)
                existing[key] = entry
            else:
                entry.updated_at = datetime.utcnow()
            entry.actual_value = item.get("actual_value")
            entry.remark = item.get("remark")
            touched.append(entry)

        await self.session.flush()
        return touched

    async def replace_score_results(self, submission_id: str, results: Iterable[ScoreResult]) -> None:
        """Drop the cached scores of a submission and store fresh ones."""
        await self.session.execute(
            delete(ScoreResult).where(ScoreResult.submission_id == submission_id)
        )
        self.session.add_all(list(results))
        await self.session.flush()

    async def compare_and_swap(
        self,
        submission: Submission,
        expected_revision: int,
    ) -> bool:
        """
        Write the submission's state columns and bump its revision.

        The UPDATE matches only when the stored revision still equals
        `expected_revision` and the owning period is DRAFT or ACTIVE, so the
        period check and the write are one statement. Returns False when no
        row matched; the caller decides which condition failed.
        """
        period_is_mutable = (
            select(AssessmentPeriod.id)
            .where(
                and_(
                    AssessmentPeriod.id == Submission.period_id,
                    AssessmentPeriod.status.in_(PeriodStatus.mutable_statuses()),
                    AssessmentPeriod.deleted_at.is_(None),
                )
            )
            .correlate(Submission)
            .exists()
        )
        values = {field: getattr(submission, field) for field in STATE_FIELDS}
        values["updated_at"] = datetime.utcnow()
        values["revision"] = Submission.revision + 1

        result = await self.session.execute(
            update(Submission)
            .where(
                and_(
                    Submission.id == submission.id,
                    Submission.revision == expected_revision,
                    period_is_mutable,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        submission.revision = expected_revision + 1
        submission.updated_at = values["updated_at"]
        return True
