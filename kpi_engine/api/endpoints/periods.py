# ===== kpi_engine/api/endpoints/periods.py =====
"""API endpoints untuk assessment period dan assignments."""

from typing import List, Optional

from fastapi import APIRouter, Depends, status

from kpi_engine.api.dependencies import get_period_service, get_kpi_service
from kpi_engine.schemas.kpi import KPIAssignmentCreate, KPIAssignmentResponse
from kpi_engine.schemas.period import PeriodCreate, PeriodAction, PeriodResponse, WeightCheckResponse
from kpi_engine.services.kpi import KPIService
from kpi_engine.services.period import PeriodService

router = APIRouter()


# ===== CREATE OPERATIONS =====

@router.post("", response_model=PeriodResponse, status_code=status.HTTP_201_CREATED)
async def create_period(
    data: PeriodCreate,
    period_service: PeriodService = Depends(get_period_service),
):
    """
    Create DRAFT period.

    **Business Rules**:
    - Date range must not overlap another period
    """
    return await period_service.create_period(
        data.name, data.start_date, data.end_date, data.lock_date, data.created_by
    )


@router.post(
    "/{period_id}/assignments",
    response_model=KPIAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_assignment(
    period_id: str,
    data: KPIAssignmentCreate,
    kpi_service: KPIService = Depends(get_kpi_service),
):
    """Assign a KPI to an employee or department. Period must be DRAFT."""
    return await kpi_service.create_assignment(
        period_id, data.model_dump(exclude={"created_by"}), created_by=data.created_by
    )


# ===== READ OPERATIONS =====

@router.get("/{period_id}", response_model=PeriodResponse)
async def get_period(
    period_id: str,
    period_service: PeriodService = Depends(get_period_service),
):
    return await period_service.get_period_or_404(period_id)


@router.get("/{period_id}/assignments", response_model=List[KPIAssignmentResponse])
async def list_assignments(
    period_id: str,
    kpi_service: KPIService = Depends(get_kpi_service),
):
    return await kpi_service.list_assignments(period_id)


@router.get("/{period_id}/weight-check", response_model=WeightCheckResponse)
async def weight_check(
    period_id: str,
    period_service: PeriodService = Depends(get_period_service),
):
    """Advisory per-scope weight sums; activation requires every scope at 100."""
    return await period_service.weight_check(period_id)


# ===== LIFECYCLE =====

@router.post("/{period_id}/activate", response_model=PeriodResponse)
async def activate_period(
    period_id: str,
    data: Optional[PeriodAction] = None,
    period_service: PeriodService = Depends(get_period_service),
):
    """DRAFT → ACTIVE. Fails with 422 WEIGHT_SUM_INVALID unless every scope sums to 100."""
    return await period_service.activate(period_id, data.actor_id if data else None)


@router.post("/{period_id}/lock", response_model=PeriodResponse)
async def lock_period(
    period_id: str,
    data: Optional[PeriodAction] = None,
    period_service: PeriodService = Depends(get_period_service),
):
    """ACTIVE → LOCKED. Submissions under the period become read-only."""
    return await period_service.lock(period_id, data.actor_id if data else None)


@router.post("/{period_id}/archive", response_model=PeriodResponse)
async def archive_period(
    period_id: str,
    data: Optional[PeriodAction] = None,
    period_service: PeriodService = Depends(get_period_service),
):
    """LOCKED → ARCHIVED."""
    return await period_service.archive(period_id, data.actor_id if data else None)


# ===== DELETE OPERATIONS =====

@router.delete("/{period_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_period(
    period_id: str,
    period_service: PeriodService = Depends(get_period_service),
):
    """Delete an unreferenced DRAFT period."""
    await period_service.delete_period(period_id)
