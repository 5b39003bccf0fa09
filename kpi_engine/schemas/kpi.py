# ===== kpi_engine/schemas/kpi.py =====
"""Schemas untuk KPI definitions dan assignments."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from kpi_engine.models.enums import FormulaType


class StepRule(BaseModel):
    threshold: Decimal
    score: Decimal


# ===== REQUEST SCHEMAS =====

class KPIDefinitionCreate(BaseModel):
    """Schema untuk create KPI definition."""

    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    unit: Optional[str] = Field(None, max_length=30)
    formula_type: FormulaType
    score_cap: Optional[Decimal] = Field(None, description="Defaults to DEFAULT_SCORE_CAP")
    score_floor: Optional[Decimal] = Field(None, description="Defaults to DEFAULT_SCORE_FLOOR")
    step_rules: Optional[List[StepRule]] = None
    custom_formula: Optional[str] = Field(None, max_length=100)
    created_by: Optional[str] = Field(None, max_length=36)

    def to_model_values(self) -> dict:
        values = self.model_dump(exclude={"created_by"})
        if self.step_rules is not None:
            values["step_rules"] = [
                {"threshold": str(rule.threshold), "score": str(rule.score)} for rule in self.step_rules
            ]
        return values


class KPIDefinitionUpdate(BaseModel):
    """Schema untuk update KPI definition. Only provided fields change."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    unit: Optional[str] = Field(None, max_length=30)
    formula_type: Optional[FormulaType] = None
    score_cap: Optional[Decimal] = None
    score_floor: Optional[Decimal] = None
    step_rules: Optional[List[StepRule]] = None
    custom_formula: Optional[str] = Field(None, max_length=100)
    updated_by: Optional[str] = Field(None, max_length=36)

    def to_model_values(self) -> dict:
        values = self.model_dump(exclude={"updated_by"}, exclude_none=True)
        if self.step_rules is not None:
            values["step_rules"] = [
                {"threshold": str(rule.threshold), "score": str(rule.score)} for rule in self.step_rules
            ]
        return values


class KPIAssignmentCreate(BaseModel):
    """Schema untuk create assignment dalam period."""

    kpi_definition_id: str = Field(..., max_length=36)
    employee_id: Optional[str] = Field(None, max_length=36)
    department_id: Optional[str] = Field(None, max_length=36)
    target_value: Decimal
    challenge_value: Optional[Decimal] = None
    weight: Decimal = Field(..., ge=0, le=100, description="Whole number percentage")
    is_active: bool = True
    created_by: Optional[str] = Field(None, max_length=36)


# ===== RESPONSE SCHEMAS =====

class KPIDefinitionResponse(BaseModel):
    id: str
    code: str
    name: str
    unit: Optional[str] = None
    formula_type: FormulaType
    score_cap: Decimal
    score_floor: Decimal
    step_rules: Optional[List[StepRule]] = None
    custom_formula: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class KPIAssignmentResponse(BaseModel):
    id: str
    period_id: str
    kpi_definition_id: str
    employee_id: Optional[str] = None
    department_id: Optional[str] = None
    target_value: Decimal
    challenge_value: Optional[Decimal] = None
    weight: Decimal
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
