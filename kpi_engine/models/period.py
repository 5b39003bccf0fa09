# ===== kpi_engine/models/period.py =====
"""Model untuk periode assessment."""

from datetime import datetime
from typing import Optional
import uuid as uuid_lib

from sqlalchemy import Column, Enum as SQLEnum
from sqlmodel import Field, SQLModel

from kpi_engine.models.base import BaseModel
from kpi_engine.models.enums import PeriodStatus


class AssessmentPeriod(BaseModel, SQLModel, table=True):
    """Assessment cycle that owns assignments and submissions."""

    __tablename__ = "assessment_periods"

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        primary_key=True,
        max_length=36
    )

    name: str = Field(max_length=200, description="Display name, e.g. 2025-Q1")

    start_date: datetime = Field(index=True)
    end_date: datetime = Field(index=True)
    lock_date: Optional[datetime] = Field(
        default=None,
        description="Planned lock date, informational"
    )

    status: PeriodStatus = Field(
        default=PeriodStatus.DRAFT,
        sa_column=Column(
            SQLEnum(PeriodStatus, name="period_status"),
            nullable=False,
            default=PeriodStatus.DRAFT,
            index=True,
        ),
        description="Lifecycle status periode"
    )

    def is_mutable(self) -> bool:
        """Submissions under this period may still change."""
        return self.status in PeriodStatus.mutable_statuses() and self.deleted_at is None

    def get_status_display(self) -> str:
        """Get display name untuk status."""
        return PeriodStatus.get_display_name(PeriodStatus(self.status).value)

    def __repr__(self) -> str:
        return f"<AssessmentPeriod(name={self.name}, status={self.status})>"
