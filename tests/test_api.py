"""End-to-end flow through the HTTP layer."""

from decimal import Decimal

import httpx
import pytest

from kpi_engine.api.dependencies import get_dispatcher, get_role_resolver
from kpi_engine.core.database import get_db
from main import create_application

API = "/api/v1"


@pytest.fixture
async def client(session_factory, role_resolver, dispatcher):
    app = create_application()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_role_resolver] = lambda: role_resolver
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create_kpi(client, code, **extra):
    response = await client.post(f"{API}/kpis", json={"code": code, "name": code, "formula_type": "POSITIVE", **extra})
    assert response.status_code == 201, response.text
    return response.json()


async def assign(client, period_id, kpi_id, weight, target):
    response = await client.post(f"{API}/periods/{period_id}/assignments", json={
        "kpi_definition_id": kpi_id,
        "employee_id": "emp-1",
        "target_value": str(target),
        "weight": str(weight),
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
async def active_period(client):
    response = await client.post(f"{API}/periods", json={
        "name": "2025-Q1",
        "start_date": "2025-01-01T00:00:00",
        "end_date": "2025-03-31T23:59:59",
    })
    assert response.status_code == 201, response.text
    period = response.json()
    assert period["status"] == "DRAFT"

    sales = await create_kpi(client, "SALES")
    quality = await create_kpi(client, "QUALITY")
    sales_assignment = await assign(client, period["id"], sales["id"], 30, 100)
    quality_assignment = await assign(client, period["id"], quality["id"], 69, 10)

    response = await client.post(f"{API}/periods/{period['id']}/activate")
    assert response.status_code == 422
    assert response.json()["error_code"] == "WEIGHT_SUM_INVALID"
    assert "employee:emp-1" in response.json()["invalid_scopes"]

    # Fill the missing percent with a third KPI
    extra = await create_kpi(client, "ATTENDANCE")
    await assign(client, period["id"], extra["id"], 1, 20)

    response = await client.post(f"{API}/periods/{period['id']}/activate", json={"actor_id": "admin"})
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "ACTIVE"

    return {"period": period, "sales": sales_assignment, "quality": quality_assignment}


@pytest.fixture
async def submission(client, active_period):
    response = await client.post(f"{API}/submissions", json={
        "period_id": active_period["period"]["id"],
        "employee_id": "emp-1",
        "data_source": "manual",
    })
    assert response.status_code == 201, response.text
    return response.json()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "ok"


async def test_entry_score_and_approval(client, dispatcher, active_period, submission):
    submission_id = submission["id"]
    assert submission["version"] == 1
    assert submission["revision"] == 0

    response = await client.put(f"{API}/submissions/{submission_id}/entries", json={
        "entries": [{
            "assignment_id": active_period["sales"]["id"],
            "employee_id": "emp-1",
            "actual_value": "120",
        }],
        "expected_revision": 0,
    })
    assert response.status_code == 200, response.text
    body = response.json()
    assert Decimal(body["total_score"]) == Decimal("36.0")
    assert Decimal(body["weight_sum"]) == Decimal("30")
    assert body["revision"] == 1

    response = await client.get(f"{API}/submissions/{submission_id}/score")
    assert response.status_code == 200
    score = response.json()
    assert score["is_complete"] is False
    assert len(score["results"]) == 1
    assert Decimal(score["results"][0]["raw_score"]) == Decimal("120")

    response = await client.post(f"{API}/submissions/{submission_id}/submit", json={"actor_id": "emp-1"})
    assert response.status_code == 200, response.text
    assert response.json()["approval_stage"] == "SELF_EVAL"
    revision = response.json()["revision"]

    response = await client.post(f"{API}/submissions/{submission_id}/approve", json={"actor_id": "mgr-1"})
    assert response.status_code == 403
    assert response.json()["error_code"] == "WRONG_APPROVER"

    response = await client.post(f"{API}/submissions/{submission_id}/approve", json={
        "actor_id": "emp-1", "expected_revision": revision,
    })
    assert response.status_code == 200
    assert response.json()["approval_stage"] == "MANAGER_REVIEW"

    response = await client.post(f"{API}/submissions/{submission_id}/approve", json={
        "actor_id": "mgr-1", "expected_revision": revision,
    })
    assert response.status_code == 409
    assert response.json()["error_code"] == "CONCURRENT_MODIFICATION"
    assert response.json()["retryable"] is True

    response = await client.post(f"{API}/submissions/{submission_id}/reject", json={"actor_id": "mgr-1"})
    assert response.status_code == 422
    assert response.json()["error_code"] == "MISSING_REASON"

    response = await client.post(f"{API}/submissions/{submission_id}/reject", json={
        "actor_id": "mgr-1", "reason": "attach the sales report",
    })
    assert response.status_code == 200
    assert response.json()["status"] == "REJECTED"

    response = await client.get(f"{API}/submissions/{submission_id}/snapshots")
    assert [s["event"] for s in response.json()] == ["SUBMIT", "APPROVE", "REJECT"]

    response = await client.post(f"{API}/submissions/{submission_id}/resubmit", json={"actor_id": "emp-1"})
    assert response.status_code == 201
    assert response.json()["version"] == 2
    assert response.json()["previous_submission_id"] == submission_id

    assert [e.event for e in dispatcher.events] == ["SUBMIT", "APPROVE", "REJECT", "RESUBMIT"]


async def test_locked_period_refuses_writes(client, active_period, submission):
    response = await client.post(f"{API}/periods/{active_period['period']['id']}/lock")
    assert response.status_code == 200
    assert response.json()["status"] == "LOCKED"

    response = await client.put(f"{API}/submissions/{submission['id']}/entries", json={
        "entries": [{
            "assignment_id": active_period["sales"]["id"],
            "employee_id": "emp-1",
            "actual_value": "90",
        }],
    })
    assert response.status_code == 409
    assert response.json()["error_code"] == "PERIOD_NOT_MUTABLE"

    response = await client.get(f"{API}/submissions/{submission['id']}")
    assert response.status_code == 200
    assert response.json()["revision"] == 0


async def test_validation_errors(client, submission):
    response = await client.get(f"{API}/submissions/missing")
    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"

    response = await client.put(f"{API}/submissions/{submission['id']}/entries", json={"entries": []})
    assert response.status_code == 422

    response = await client.post(f"{API}/periods", json={
        "name": "inverted",
        "start_date": "2025-05-01T00:00:00",
        "end_date": "2025-04-01T00:00:00",
    })
    assert response.status_code == 422


async def test_kpi_definition_update(client):
    kpi = await create_kpi(client, "CSAT")

    response = await client.patch(f"{API}/kpis/{kpi['id']}", json={"name": "Customer satisfaction"})
    assert response.status_code == 200
    assert response.json()["name"] == "Customer satisfaction"

    response = await client.post(f"{API}/kpis", json={"code": "TIER", "name": "Tier", "formula_type": "STEPPED"})
    assert response.status_code == 422
    assert response.json()["error_code"] == "INVALID_FORMULA_CONFIG"

    response = await client.get(f"{API}/kpis")
    assert [k["code"] for k in response.json()] == ["CSAT"]
