"""Typed failures raised by the scoring and approval core.

Every error is caller-visible and carries the HTTP status it maps to, so the
API layer can translate it without inspecting messages. None of them are
swallowed inside the core.
"""

from typing import Any, Dict, Optional

from fastapi import status


class ScoringError(Exception):
    """Base class for all core failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "SCORING_ERROR"
    retryable: bool = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "detail": self.message,
            "error_code": self.error_code,
            "retryable": self.retryable,
        }
        if self.context:
            payload["context"] = {k: str(v) for k, v in self.context.items()}
        return payload


class NotFound(ScoringError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class PeriodNotMutable(ScoringError):
    """Period is LOCKED or ARCHIVED."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "PERIOD_NOT_MUTABLE"


class PeriodOverlap(ScoringError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "PERIOD_OVERLAP"


class InvalidTransition(ScoringError):
    """Requested lifecycle move is out of order for the current state."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "INVALID_TRANSITION"


class WeightSumInvalid(ScoringError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "WEIGHT_SUM_INVALID"

    def __init__(self, message: str, invalid_scopes: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.invalid_scopes = invalid_scopes or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["invalid_scopes"] = {k: str(v) for k, v in self.invalid_scopes.items()}
        return payload


class InvalidFormulaConfig(ScoringError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "INVALID_FORMULA_CONFIG"


class KPIDefinitionImmutable(ScoringError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "KPI_DEFINITION_IMMUTABLE"


class EmptySubmission(ScoringError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "EMPTY_SUBMISSION"


class EntryScopeMismatch(ScoringError):
    """Entry names an employee or department the assignment/submission does not cover."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "ENTRY_SCOPE_MISMATCH"


class WrongApprover(ScoringError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "WRONG_APPROVER"


class MissingReason(ScoringError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "MISSING_REASON"


class CannotReturnFromFirstStage(ScoringError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CANNOT_RETURN_FROM_FIRST_STAGE"


class ConcurrentModification(ScoringError):
    """Another writer changed the submission first. Re-read and retry."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "CONCURRENT_MODIFICATION"
    retryable = True


class CollaboratorUnavailable(ScoringError):
    """An outbound dependency (role service) could not answer."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "COLLABORATOR_UNAVAILABLE"
    retryable = True
