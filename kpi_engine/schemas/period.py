# ===== kpi_engine/schemas/period.py =====
"""Schemas untuk assessment period."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from kpi_engine.models.enums import PeriodStatus


# ===== REQUEST SCHEMAS =====

class PeriodCreate(BaseModel):
    """Schema untuk create period."""

    name: str = Field(..., min_length=1, max_length=200, description="Display name, e.g. 2025-Q1")
    start_date: datetime
    end_date: datetime
    lock_date: Optional[datetime] = None
    created_by: Optional[str] = Field(None, max_length=36)

    @model_validator(mode="after")
    def validate_range(self) -> "PeriodCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class PeriodAction(BaseModel):
    """Body for activate / lock / archive."""

    actor_id: Optional[str] = Field(None, max_length=36)


# ===== RESPONSE SCHEMAS =====

class PeriodResponse(BaseModel):
    """Schema untuk response period."""

    id: str
    name: str
    start_date: datetime
    end_date: datetime
    lock_date: Optional[datetime] = None
    status: PeriodStatus

    created_at: datetime
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class WeightCheckResponse(BaseModel):
    """Advisory per-scope weight sums."""

    period_id: str
    scopes: Dict[str, Decimal]
    invalid_scopes: Dict[str, Decimal]
    is_valid: bool
