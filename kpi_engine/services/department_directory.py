"""Department membership untuk rollup: leader flag dan personal weight."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional

from kpi_engine.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class DepartmentMember:
    employee_id: str
    is_leader: bool = False
    weight: Optional[Decimal] = None


class DepartmentDirectory(ABC):
    """Looks up how each employee counts in their department's score."""

    @abstractmethod
    async def get_members(self, department_id: str, employee_ids: Iterable[str]) -> Dict[str, DepartmentMember]:
        """Membership of the given employees; unknown employees may be omitted."""


class StaticDepartmentDirectory(DepartmentDirectory):
    """Leaders and weights from settings (DEPARTMENT_LEADERS, DEPARTMENT_MEMBER_WEIGHTS)."""

    def __init__(
        self,
        leaders: Optional[Dict[str, str]] = None,
        weights: Optional[Dict[str, Decimal]] = None,
    ):
        self.leaders = leaders if leaders is not None else settings.DEPARTMENT_LEADERS_MAP
        self.weights = weights if weights is not None else settings.DEPARTMENT_MEMBER_WEIGHTS_MAP

    async def get_members(self, department_id: str, employee_ids: Iterable[str]) -> Dict[str, DepartmentMember]:
        leader_id = self.leaders.get(department_id)
        if leader_id is None:
            logger.warning(f"No leader configured for department {department_id}")

        return {
            employee_id: DepartmentMember(
                employee_id=employee_id,
                is_leader=employee_id == leader_id,
                weight=self.weights.get(employee_id),
            )
            for employee_id in employee_ids
        }


def build_department_directory() -> Optional[DepartmentDirectory]:
    """Static directory when any membership setting is present."""
    if settings.DEPARTMENT_LEADERS or settings.DEPARTMENT_MEMBER_WEIGHTS:
        return StaticDepartmentDirectory()
    return None
