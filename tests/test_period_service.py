from datetime import datetime
from decimal import Decimal

import pytest

from conftest import seed_assignment, seed_definition, seed_period
from kpi_engine.core.exceptions import (
    InvalidFormulaConfig, InvalidTransition, KPIDefinitionImmutable, NotFound, PeriodOverlap,
    WeightSumInvalid
)
from kpi_engine.models.enums import FormulaType, PeriodStatus
from kpi_engine.repositories.kpi import KPIRepository
from kpi_engine.repositories.period import PeriodRepository
from kpi_engine.services.kpi import KPIService
from kpi_engine.services.period import PeriodService


@pytest.fixture
def period_service(session):
    return PeriodService(PeriodRepository(session))


@pytest.fixture
def kpi_service(session):
    return KPIService(KPIRepository(session), PeriodRepository(session))


@pytest.fixture
async def draft_period(period_service):
    return await period_service.create_period("2025-Q1", datetime(2025, 1, 1), datetime(2025, 3, 31))


async def assign(kpi_service, period, code, weight, employee_id="emp-1"):
    definition = await kpi_service.create_definition({"code": code, "name": code, "formula_type": FormulaType.POSITIVE})
    return await kpi_service.create_assignment(period.id, {
        "kpi_definition_id": definition.id,
        "employee_id": employee_id,
        "target_value": Decimal("100"),
        "weight": Decimal(str(weight)),
    })


class TestCreatePeriod:
    async def test_new_period_is_draft(self, draft_period):
        assert draft_period.status == PeriodStatus.DRAFT

    async def test_overlapping_range_rejected(self, period_service, draft_period):
        with pytest.raises(PeriodOverlap):
            await period_service.create_period("overlap", datetime(2025, 3, 1), datetime(2025, 4, 30))

    async def test_adjacent_range_allowed(self, period_service, draft_period):
        period = await period_service.create_period("2025-Q2", datetime(2025, 4, 1), datetime(2025, 6, 30))
        assert period.id != draft_period.id

    async def test_inverted_range_rejected(self, period_service):
        with pytest.raises(InvalidTransition):
            await period_service.create_period("bad", datetime(2025, 2, 1), datetime(2025, 1, 1))


class TestActivation:
    async def test_ninety_nine_percent_refused(self, period_service, kpi_service, draft_period):
        await assign(kpi_service, draft_period, "A", 30)
        await assign(kpi_service, draft_period, "B", 69)

        with pytest.raises(WeightSumInvalid) as exc_info:
            await period_service.activate(draft_period.id)
        assert exc_info.value.invalid_scopes == {"employee:emp-1": Decimal("99")}

        period = await period_service.get_period_or_404(draft_period.id)
        assert period.status == PeriodStatus.DRAFT

    async def test_hundred_percent_activates(self, period_service, kpi_service, draft_period):
        await assign(kpi_service, draft_period, "A", 30)
        await assign(kpi_service, draft_period, "B", 70)

        report = await period_service.weight_check(draft_period.id)
        assert report["is_valid"] is True

        period = await period_service.activate(draft_period.id, updated_by="admin")
        assert period.status == PeriodStatus.ACTIVE

        again = await period_service.activate(draft_period.id)
        assert again.status == PeriodStatus.ACTIVE

    async def test_weight_check_reports_bad_scopes(self, period_service, kpi_service, draft_period):
        await assign(kpi_service, draft_period, "A", 40)
        await assign(kpi_service, draft_period, "B", 100, employee_id="emp-2")

        report = await period_service.weight_check(draft_period.id)
        assert report["is_valid"] is False
        assert report["invalid_scopes"] == {"employee:emp-1": Decimal("40")}


class TestLifecycle:
    async def test_lock_then_archive(self, session, period_service):
        period = await seed_period(session)

        locked = await period_service.lock(period.id)
        assert locked.status == PeriodStatus.LOCKED
        archived = await period_service.archive(period.id)
        assert archived.status == PeriodStatus.ARCHIVED

    async def test_archive_requires_lock(self, session, period_service):
        period = await seed_period(session)
        with pytest.raises(InvalidTransition):
            await period_service.archive(period.id)

    async def test_locked_period_cannot_reopen(self, session, period_service):
        period = await seed_period(session, status=PeriodStatus.LOCKED)
        with pytest.raises(InvalidTransition):
            await period_service.activate(period.id)

    async def test_unknown_period(self, period_service):
        with pytest.raises(NotFound):
            await period_service.lock("missing")


class TestDelete:
    async def test_unreferenced_draft_deleted(self, period_service, draft_period):
        await period_service.delete_period(draft_period.id, deleted_by="admin")
        with pytest.raises(NotFound):
            await period_service.get_period_or_404(draft_period.id)

    async def test_referenced_period_kept(self, period_service, kpi_service, draft_period):
        await assign(kpi_service, draft_period, "A", 100)
        with pytest.raises(InvalidTransition):
            await period_service.delete_period(draft_period.id)

    async def test_active_period_kept(self, session, period_service):
        period = await seed_period(session)
        with pytest.raises(InvalidTransition):
            await period_service.delete_period(period.id)


class TestKPIDefinitions:
    async def test_defaults_from_settings(self, kpi_service):
        definition = await kpi_service.create_definition(
            {"code": "NPS", "name": "Net promoter", "formula_type": FormulaType.POSITIVE}
        )
        assert definition.score_cap == Decimal("120")
        assert definition.score_floor == Decimal("0")

    async def test_stepped_without_rules_rejected(self, kpi_service):
        with pytest.raises(InvalidFormulaConfig):
            await kpi_service.create_definition(
                {"code": "TIER", "name": "Tier", "formula_type": FormulaType.STEPPED}
            )

    async def test_duplicate_code_rejected(self, kpi_service):
        data = {"code": "DUP", "name": "Dup", "formula_type": FormulaType.POSITIVE}
        await kpi_service.create_definition(data)
        with pytest.raises(InvalidTransition):
            await kpi_service.create_definition(data)

    async def test_scoring_fields_frozen_once_in_use(self, session, kpi_service):
        period = await seed_period(session)
        definition = await seed_definition(session, "REV")
        await seed_assignment(session, period, definition, 100, 10, employee_id="emp-1")

        with pytest.raises(KPIDefinitionImmutable):
            await kpi_service.update_definition(definition.id, {"formula_type": FormulaType.NEGATIVE})

        updated = await kpi_service.update_definition(definition.id, {"name": "Revenue"}, updated_by="admin")
        assert updated.name == "Revenue"
        assert updated.formula_type == FormulaType.POSITIVE

    async def test_scoring_fields_editable_while_draft(self, session, kpi_service):
        period = await seed_period(session, status=PeriodStatus.DRAFT)
        definition = await seed_definition(session, "REV")
        await seed_assignment(session, period, definition, 100, 10, employee_id="emp-1")

        updated = await kpi_service.update_definition(definition.id, {"score_cap": Decimal("150")})
        assert updated.score_cap == Decimal("150")


class TestAssignments:
    async def test_fractional_weight_rejected(self, kpi_service, draft_period):
        with pytest.raises(WeightSumInvalid):
            await assign(kpi_service, draft_period, "A", "12.5")

    async def test_only_draft_periods_accept_assignments(self, session, kpi_service):
        period = await seed_period(session)
        with pytest.raises(InvalidTransition):
            await assign(kpi_service, period, "A", 50)
