# ===== kpi_engine/api/endpoints/kpis.py =====
"""API endpoints untuk KPI library."""

from typing import List

from fastapi import APIRouter, Depends, status

from kpi_engine.api.dependencies import get_kpi_service
from kpi_engine.schemas.kpi import KPIDefinitionCreate, KPIDefinitionUpdate, KPIDefinitionResponse
from kpi_engine.services.kpi import KPIService

router = APIRouter()


@router.post("", response_model=KPIDefinitionResponse, status_code=status.HTTP_201_CREATED)
async def create_definition(
    data: KPIDefinitionCreate,
    kpi_service: KPIService = Depends(get_kpi_service),
):
    """
    Create KPI definition.

    **Business Rules**:
    - code must be unique
    - STEPPED needs step_rules, CUSTOM needs a registered custom_formula
    - score_cap must not be below score_floor
    """
    return await kpi_service.create_definition(data.to_model_values(), created_by=data.created_by)


@router.get("", response_model=List[KPIDefinitionResponse])
async def list_definitions(kpi_service: KPIService = Depends(get_kpi_service)):
    return await kpi_service.list_definitions()


@router.get("/{definition_id}", response_model=KPIDefinitionResponse)
async def get_definition(
    definition_id: str,
    kpi_service: KPIService = Depends(get_kpi_service),
):
    return await kpi_service.get_definition_or_404(definition_id)


@router.patch("/{definition_id}", response_model=KPIDefinitionResponse)
async def update_definition(
    definition_id: str,
    data: KPIDefinitionUpdate,
    kpi_service: KPIService = Depends(get_kpi_service),
):
    """Scoring fields are frozen once the KPI is used outside a DRAFT period (409)."""
    return await kpi_service.update_definition(
        definition_id, data.to_model_values(), updated_by=data.updated_by
    )
