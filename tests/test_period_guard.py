from datetime import datetime
from decimal import Decimal

import pytest

from kpi_engine.core.exceptions import PeriodNotMutable, InvalidTransition, WeightSumInvalid
from kpi_engine.models.enums import PeriodStatus
from kpi_engine.models.kpi import KPIAssignment
from kpi_engine.models.period import AssessmentPeriod
from kpi_engine.services.period_guard import PeriodGuard


def make_period(status):
    return AssessmentPeriod(
        name="2025-Q1",
        start_date=datetime(2025, 1, 1),
        end_date=datetime(2025, 3, 31),
        status=status,
    )


def make_assignment(weight, employee_id="emp-1", is_active=True):
    return KPIAssignment(
        period_id="p",
        kpi_definition_id="k",
        employee_id=employee_id,
        target_value=Decimal("100"),
        weight=Decimal(str(weight)),
        is_active=is_active,
    )


@pytest.fixture
def guard():
    return PeriodGuard()


@pytest.mark.parametrize("status", [PeriodStatus.DRAFT, PeriodStatus.ACTIVE])
def test_mutable_statuses_pass(guard, status):
    guard.assert_mutable(make_period(status))


@pytest.mark.parametrize("status", [PeriodStatus.LOCKED, PeriodStatus.ARCHIVED])
def test_frozen_statuses_raise(guard, status):
    with pytest.raises(PeriodNotMutable):
        guard.assert_mutable(make_period(status))


class TestActivation:
    def test_exactly_hundred_passes(self, guard):
        guard.assert_activatable(
            make_period(PeriodStatus.DRAFT),
            [make_assignment(30), make_assignment(70), make_assignment(100, employee_id="emp-2")],
        )

    @pytest.mark.parametrize("weights", [(30, 69), (30, 71)])
    def test_off_by_one_rejected(self, guard, weights):
        with pytest.raises(WeightSumInvalid) as exc_info:
            guard.assert_activatable(
                make_period(PeriodStatus.DRAFT),
                [make_assignment(w) for w in weights] + [make_assignment(100, employee_id="emp-2")],
            )
        assert list(exc_info.value.invalid_scopes) == ["employee:emp-1"]
        assert exc_info.value.to_dict()["error_code"] == "WEIGHT_SUM_INVALID"

    def test_fractional_weights_rejected(self, guard):
        with pytest.raises(WeightSumInvalid):
            guard.assert_activatable(
                make_period(PeriodStatus.DRAFT),
                [make_assignment("33.5"), make_assignment("66.5")],
            )

    def test_no_assignments_rejected(self, guard):
        with pytest.raises(WeightSumInvalid):
            guard.assert_activatable(make_period(PeriodStatus.DRAFT), [])

    def test_inactive_assignments_ignored(self, guard):
        guard.assert_activatable(
            make_period(PeriodStatus.DRAFT),
            [make_assignment(100), make_assignment(50, is_active=False)],
        )

    def test_weight_sum_report(self, guard):
        report = guard.weight_sum_report([
            make_assignment(30),
            make_assignment(60),
            make_assignment(40, employee_id=None),
        ])
        assert report == {"employee:emp-1": Decimal("90"), "period": Decimal("40")}


class TestTransitions:
    @pytest.mark.parametrize("current, target", [
        (PeriodStatus.DRAFT, PeriodStatus.ACTIVE),
        (PeriodStatus.ACTIVE, PeriodStatus.LOCKED),
        (PeriodStatus.LOCKED, PeriodStatus.ARCHIVED),
    ])
    def test_forward_steps_allowed(self, guard, current, target):
        assert guard.check_transition(make_period(current), target) is True

    def test_same_state_is_noop(self, guard):
        assert guard.check_transition(make_period(PeriodStatus.ACTIVE), PeriodStatus.ACTIVE) is False

    @pytest.mark.parametrize("current, target", [
        (PeriodStatus.DRAFT, PeriodStatus.LOCKED),
        (PeriodStatus.ACTIVE, PeriodStatus.ARCHIVED),
        (PeriodStatus.LOCKED, PeriodStatus.ACTIVE),
        (PeriodStatus.ARCHIVED, PeriodStatus.DRAFT),
    ])
    def test_skips_and_reversals_rejected(self, guard, current, target):
        with pytest.raises(InvalidTransition):
            guard.check_transition(make_period(current), target)
