# ===== kpi_engine/models/kpi.py =====
"""Models untuk KPI library dan assignment per periode."""

from decimal import Decimal
from typing import Optional, List, Dict, Any
import uuid as uuid_lib

from sqlalchemy import Column, Enum as SQLEnum, JSON
from sqlmodel import Field, SQLModel

from kpi_engine.models.base import BaseModel, decimal_column
from kpi_engine.models.enums import FormulaType


class KPIDefinition(BaseModel, SQLModel, table=True):
    """Indicator definition with its scoring formula."""

    __tablename__ = "kpi_definitions"

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        primary_key=True,
        max_length=36
    )

    code: str = Field(unique=True, index=True, max_length=50)
    name: str = Field(max_length=200)
    unit: Optional[str] = Field(default=None, max_length=30)

    formula_type: FormulaType = Field(
        sa_column=Column(SQLEnum(FormulaType, name="formula_type"), nullable=False),
    )

    score_cap: Decimal = Field(default=Decimal("120"), sa_column=decimal_column(nullable=False))
    score_floor: Decimal = Field(default=Decimal("0"), sa_column=decimal_column(nullable=False))

    step_rules: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="STEPPED only: list of {threshold, score}"
    )
    custom_formula: Optional[str] = Field(
        default=None,
        max_length=100,
        description="CUSTOM only: name of a registered formula plugin"
    )

    def get_steps(self) -> List[tuple]:
        """Step rules as (threshold, score) Decimal pairs."""
        return [
            (Decimal(str(rule["threshold"])), Decimal(str(rule["score"])))
            for rule in (self.step_rules or [])
        ]

    def __repr__(self) -> str:
        return f"<KPIDefinition(code={self.code}, formula={self.formula_type})>"


class KPIAssignment(BaseModel, SQLModel, table=True):
    """Binding of a KPI definition to an employee or department within a period."""

    __tablename__ = "kpi_assignments"

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        primary_key=True,
        max_length=36
    )

    period_id: str = Field(foreign_key="assessment_periods.id", index=True, max_length=36)
    kpi_definition_id: str = Field(foreign_key="kpi_definitions.id", index=True, max_length=36)

    employee_id: Optional[str] = Field(default=None, index=True, max_length=36)
    department_id: Optional[str] = Field(default=None, index=True, max_length=36)

    target_value: Decimal = Field(sa_column=decimal_column(nullable=False))
    challenge_value: Optional[Decimal] = Field(default=None, sa_column=decimal_column())

    weight: Decimal = Field(
        sa_column=decimal_column(nullable=False),
        description="Percentage weight 0-100, integer values only"
    )
    is_active: bool = Field(default=True)

    def scope_key(self) -> str:
        """Scope this assignment's weight counts towards."""
        if self.employee_id:
            return f"employee:{self.employee_id}"
        if self.department_id:
            return f"department:{self.department_id}"
        return "period"

    def __repr__(self) -> str:
        return f"<KPIAssignment(kpi={self.kpi_definition_id}, scope={self.scope_key()}, weight={self.weight})>"
