from decimal import Decimal

import pytest

from kpi_engine.core.exceptions import InvalidFormulaConfig
from kpi_engine.models.enums import FormulaType
from kpi_engine.models.kpi import KPIDefinition, KPIAssignment
from kpi_engine.utils.formula_evaluator import FormulaEvaluator


@pytest.fixture
def evaluator():
    return FormulaEvaluator()


def D(value):
    return Decimal(str(value))


class TestPositive:
    def test_ratio_times_hundred(self, evaluator):
        assert evaluator.evaluate(FormulaType.POSITIVE, 80, 100) == D("80.0000")

    def test_overachievement_up_to_cap(self, evaluator):
        assert evaluator.evaluate(FormulaType.POSITIVE, 120, 100, cap=120, floor=0) == D("120")

    def test_clamped_at_cap(self, evaluator):
        assert evaluator.evaluate(FormulaType.POSITIVE, 150, 100, cap=120) == D("120")

    def test_below_challenge_limited_to_hundred(self, evaluator):
        assert evaluator.evaluate(FormulaType.POSITIVE, 105, 100, challenge=110) == D("100")

    def test_challenge_reached_may_exceed_hundred(self, evaluator):
        assert evaluator.evaluate(FormulaType.POSITIVE, 115, 100, challenge=110) == D("115")

    def test_zero_target_rejected(self, evaluator):
        with pytest.raises(InvalidFormulaConfig):
            evaluator.evaluate(FormulaType.POSITIVE, 10, 0)

    def test_quantized_to_four_places(self, evaluator):
        assert evaluator.evaluate(FormulaType.POSITIVE, 1, 3) == D("33.3333")


class TestNegative:
    @pytest.mark.parametrize("actual, expected", [
        (10, "100"),
        (15, "50"),
        (20, "0"),
        (25, "0"),
        (5, "120"),
        (0, "120"),
    ])
    def test_lower_is_better(self, evaluator, actual, expected):
        assert evaluator.evaluate(FormulaType.NEGATIVE, actual, 10, cap=120, floor=0) == D(expected)

    @pytest.mark.parametrize("actual, expected", [
        (19, "10"),
        (20, "-20"),
        (35, "-20"),
    ])
    def test_double_target_hits_negative_floor(self, evaluator, actual, expected):
        assert evaluator.evaluate(FormulaType.NEGATIVE, actual, 10, cap=120, floor=-20) == D(expected)

    @pytest.mark.parametrize("target", [0, -5])
    def test_non_positive_target_rejected(self, evaluator, target):
        with pytest.raises(InvalidFormulaConfig):
            evaluator.evaluate(FormulaType.NEGATIVE, 3, target)


@pytest.mark.parametrize("formula_type", [FormulaType.POSITIVE, FormulaType.NEGATIVE])
@pytest.mark.parametrize("actual", [-50, 0, 0.5, 7, 10, 99.99, 250, 10000])
def test_ratio_formulas_stay_within_bounds(evaluator, formula_type, actual):
    score = evaluator.evaluate(formula_type, actual, 10, cap=110, floor=20)
    assert D(20) <= score <= D(110)


class TestBinary:
    def test_met_target_scores_cap(self, evaluator):
        assert evaluator.evaluate(FormulaType.BINARY, 5, 5, cap=120, floor=0) == D("120")

    def test_one_below_scores_floor(self, evaluator):
        assert evaluator.evaluate(FormulaType.BINARY, 4, 5, cap=120, floor=0) == D("0")


class TestStepped:
    STEPS = [(80, 100), (0, 40), (50, 60)]

    @pytest.mark.parametrize("actual, expected", [
        (0, "40"),
        (49.99, "40"),
        (50, "60"),
        (79.99, "60"),
        (80, "100"),
        (1000, "100"),
    ])
    def test_closed_lower_open_upper(self, evaluator, actual, expected):
        assert evaluator.evaluate(FormulaType.STEPPED, actual, None, steps=self.STEPS) == D(expected)

    def test_below_lowest_threshold_scores_floor(self, evaluator):
        steps = [(10, 50), (20, 100)]
        assert evaluator.evaluate(FormulaType.STEPPED, 5, None, steps=steps, floor=5) == D("5")

    def test_empty_table_rejected(self, evaluator):
        with pytest.raises(InvalidFormulaConfig):
            evaluator.evaluate(FormulaType.STEPPED, 5, None, steps=[])

    def test_duplicate_thresholds_rejected(self, evaluator):
        with pytest.raises(InvalidFormulaConfig):
            evaluator.evaluate(FormulaType.STEPPED, 5, None, steps=[(10, 50), (10, 60)])

    def test_step_score_still_clamped(self, evaluator):
        assert evaluator.evaluate(FormulaType.STEPPED, 100, None, steps=[(0, 500)], cap=120) == D("120")


class TestCustom:
    def test_registered_plugin_result_is_clamped(self):
        evaluator = FormulaEvaluator({"double": lambda actual, target, challenge: actual * 2})
        assert evaluator.evaluate(FormulaType.CUSTOM, 40, 100, custom_formula="double") == D("80")
        assert evaluator.evaluate(FormulaType.CUSTOM, 90, 100, custom_formula="double") == D("120")

    def test_unknown_plugin_rejected(self, evaluator):
        with pytest.raises(InvalidFormulaConfig):
            evaluator.evaluate(FormulaType.CUSTOM, 1, 1, custom_formula="missing")

    def test_plugin_failure_wrapped(self):
        evaluator = FormulaEvaluator()
        evaluator.register_custom("broken", lambda actual, target, challenge: actual / 0)
        with pytest.raises(InvalidFormulaConfig):
            evaluator.evaluate(FormulaType.CUSTOM, 1, 1, custom_formula="broken")


def test_cap_below_floor_rejected(evaluator):
    with pytest.raises(InvalidFormulaConfig):
        evaluator.evaluate(FormulaType.POSITIVE, 50, 100, cap=10, floor=20)


def test_evaluate_definition_uses_assignment_targets(evaluator):
    definition = KPIDefinition(
        code="OTD",
        name="On-time delivery",
        formula_type=FormulaType.STEPPED,
        score_cap=Decimal("120"),
        score_floor=Decimal("0"),
        step_rules=[{"threshold": "0", "score": "50"}, {"threshold": "90", "score": "100"}],
    )
    assignment = KPIAssignment(
        period_id="p",
        kpi_definition_id=definition.id,
        target_value=Decimal("95"),
        weight=Decimal("40"),
    )
    assert evaluator.evaluate_definition(definition, assignment, Decimal("92")) == D("100")


def test_validate_definition_requires_steps(evaluator):
    definition = KPIDefinition(
        code="X",
        name="X",
        formula_type=FormulaType.STEPPED,
        score_cap=Decimal("120"),
        score_floor=Decimal("0"),
    )
    with pytest.raises(InvalidFormulaConfig):
        evaluator.validate_definition(definition)
