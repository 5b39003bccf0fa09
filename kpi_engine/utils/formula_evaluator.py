# ===== kpi_engine/utils/formula_evaluator.py =====
"""Evaluator untuk formula KPI: actual value → normalized score."""

import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple

from kpi_engine.core.exceptions import InvalidFormulaConfig
from kpi_engine.models.enums import FormulaType

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
TWO = Decimal("2")
SCORE_QUANT = Decimal("0.0001")

# name -> callable(actual, target, challenge) returning a number
CustomFormula = Callable[[Decimal, Decimal, Optional[Decimal]], Any]


def _d(x) -> Decimal:
    """Convert to Decimal safely."""
    if isinstance(x, Decimal):
        return x
    try:
        return Decimal(str(x))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidFormulaConfig(f"Not a numeric value: {x!r}")


def clamp(value: Decimal, floor: Decimal, cap: Decimal) -> Decimal:
    """Clamp value to [floor, cap]."""
    if value < floor:
        return floor
    if value > cap:
        return cap
    return value


class FormulaEvaluator:
    """Pure scoring rules per formula type. Holds only the custom plugin registry."""

    def __init__(self, custom_formulas: Optional[Dict[str, CustomFormula]] = None):
        self.custom_formulas: Dict[str, CustomFormula] = dict(custom_formulas or {})

    def register_custom(self, name: str, formula: CustomFormula) -> None:
        """Register a plugin used by CUSTOM definitions."""
        self.custom_formulas[name] = formula

    def evaluate(
        self,
        formula_type: FormulaType,
        actual,
        target,
        challenge=None,
        cap=Decimal("120"),
        floor=Decimal("0"),
        steps: Optional[Iterable[Tuple[Any, Any]]] = None,
        custom_formula: Optional[str] = None,
    ) -> Decimal:
        """
        Score one actual value.

        Every result is clamped to [floor, cap] as the final step and
        quantized to 4 decimal places.

        Raises:
            InvalidFormulaConfig: zero target for ratio formulas, empty step
                table, unknown custom plugin, or cap below floor.
        """
        formula_type = FormulaType(formula_type)
        actual = _d(actual)
        target = _d(target) if target is not None else None
        challenge = _d(challenge) if challenge is not None else None
        cap = _d(cap)
        floor = _d(floor)

        if cap < floor:
            raise InvalidFormulaConfig(f"Score cap {cap} is below floor {floor}")

        if formula_type == FormulaType.POSITIVE:
            raw = self._positive(actual, target, challenge)
        elif formula_type == FormulaType.NEGATIVE:
            raw = self._negative(actual, target, cap, floor)
        elif formula_type == FormulaType.BINARY:
            raw = self._binary(actual, target, cap, floor)
        elif formula_type == FormulaType.STEPPED:
            raw = self._stepped(actual, steps, floor)
        else:
            raw = self._custom(actual, target, challenge, custom_formula)

        return clamp(raw, floor, cap).quantize(SCORE_QUANT, rounding=ROUND_HALF_UP)

    def evaluate_definition(self, definition, assignment, actual) -> Decimal:
        """Score an actual value using a KPIDefinition and its KPIAssignment."""
        return self.evaluate(
            definition.formula_type,
            actual,
            assignment.target_value,
            challenge=assignment.challenge_value,
            cap=definition.score_cap,
            floor=definition.score_floor,
            steps=definition.get_steps(),
            custom_formula=definition.custom_formula,
        )

    def validate_definition(self, definition) -> None:
        """Check a definition's configuration without scoring anything."""
        cap = _d(definition.score_cap)
        floor = _d(definition.score_floor)
        if cap < floor:
            raise InvalidFormulaConfig(f"Score cap {cap} is below floor {floor}")

        formula_type = FormulaType(definition.formula_type)
        if formula_type == FormulaType.STEPPED:
            self._sorted_steps(definition.get_steps())
        elif formula_type == FormulaType.CUSTOM:
            self._get_custom(definition.custom_formula)

    # ===== FORMULAS =====

    def _positive(self, actual: Decimal, target: Optional[Decimal], challenge: Optional[Decimal]) -> Decimal:
        if target is None or target == 0:
            raise InvalidFormulaConfig("POSITIVE formula requires a non-zero target")

        score = actual / target * HUNDRED
        # Above 100 only once the stretch target is reached
        if challenge is not None and actual < challenge and score > HUNDRED:
            score = HUNDRED
        return score

    def _negative(self, actual: Decimal, target: Optional[Decimal], cap: Decimal, floor: Decimal) -> Decimal:
        if target is None or target <= 0:
            raise InvalidFormulaConfig("NEGATIVE formula requires a positive target")

        if actual == 0:
            return cap
        # Twice the target or worse is the floor, even a negative one
        if actual >= TWO * target:
            return floor
        return (TWO - actual / target) * HUNDRED

    def _binary(self, actual: Decimal, target: Optional[Decimal], cap: Decimal, floor: Decimal) -> Decimal:
        if target is None:
            raise InvalidFormulaConfig("BINARY formula requires a target")
        return cap if actual >= target else floor

    def _stepped(self, actual: Decimal, steps, floor: Decimal) -> Decimal:
        ordered = self._sorted_steps(steps)

        # Closed-lower / open-upper: highest threshold <= actual wins
        score = None
        for threshold, step_score in ordered:
            if actual >= threshold:
                score = step_score
            else:
                break

        if score is None:
            return floor
        return score

    def _custom(
        self,
        actual: Decimal,
        target: Optional[Decimal],
        challenge: Optional[Decimal],
        name: Optional[str],
    ) -> Decimal:
        formula = self._get_custom(name)
        try:
            result = formula(actual, target, challenge)
        except InvalidFormulaConfig:
            raise
        except Exception as e:
            logger.error(f"Custom formula '{name}' failed: {e}")
            raise InvalidFormulaConfig(f"Custom formula '{name}' failed: {e}") from e
        return _d(result)

    # ===== HELPERS =====

    def _sorted_steps(self, steps) -> Sequence[Tuple[Decimal, Decimal]]:
        if not steps:
            raise InvalidFormulaConfig("STEPPED formula requires at least one threshold")

        ordered = sorted(((_d(t), _d(s)) for t, s in steps), key=lambda pair: pair[0])
        thresholds = [t for t, _ in ordered]
        if len(set(thresholds)) != len(thresholds):
            raise InvalidFormulaConfig("STEPPED formula has duplicate thresholds")
        return ordered

    def _get_custom(self, name: Optional[str]) -> CustomFormula:
        if not name:
            raise InvalidFormulaConfig("CUSTOM formula requires a formula name")
        formula = self.custom_formulas.get(name)
        if formula is None:
            raise InvalidFormulaConfig(f"Custom formula '{name}' is not registered")
        return formula
