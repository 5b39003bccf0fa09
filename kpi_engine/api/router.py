"""API router configuration."""

from fastapi import APIRouter

from kpi_engine.api.endpoints import kpis, periods, submissions

# Create main API router
api_router = APIRouter()

api_router.include_router(
    periods.router,
    prefix="/periods",
    tags=["Assessment Periods"],
    responses={
        404: {"description": "Period not found"},
        409: {"description": "Invalid transition or overlap"},
        422: {"description": "Validation Error / weight sum invalid"},
    }
)

api_router.include_router(
    kpis.router,
    prefix="/kpis",
    tags=["KPI Library"],
    responses={
        404: {"description": "KPI definition not found"},
        409: {"description": "KPI definition immutable"},
        422: {"description": "Invalid formula configuration"},
    }
)

api_router.include_router(
    submissions.router,
    prefix="/submissions",
    tags=["Submissions"],
    responses={
        403: {"description": "Wrong approver for the current stage"},
        404: {"description": "Submission not found"},
        409: {"description": "Period locked, invalid transition or concurrent modification"},
        422: {"description": "Validation Error"},
    }
)
