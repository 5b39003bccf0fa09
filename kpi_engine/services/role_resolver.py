"""Role gate untuk approval stages."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

import httpx

from kpi_engine.core.config import settings
from kpi_engine.core.exceptions import CollaboratorUnavailable
from kpi_engine.models.enums import ApprovalStage

logger = logging.getLogger(__name__)


class RoleResolver(ABC):
    """Answers whether a user may act on a submission at a given stage."""

    def __init__(self, stage_roles: Optional[Dict[str, str]] = None):
        self.stage_roles = stage_roles if stage_roles is not None else settings.STAGE_ROLES_MAP

    def required_role(self, stage) -> Optional[str]:
        return self.stage_roles.get(ApprovalStage(stage).value)

    @abstractmethod
    async def get_user_roles(self, user_id: str) -> Iterable[str]:
        """Roles held by a user; empty when the user is unknown."""

    async def has_stage_role(self, user_id: str, stage, submission) -> bool:
        """
        Check the stage's required role against the user's roles.

        The submission's own employee always passes SELF_EVAL.
        """
        stage = ApprovalStage(stage)
        if stage == ApprovalStage.SELF_EVAL and submission.employee_id and submission.employee_id == user_id:
            return True

        required = self.required_role(stage)
        if required is None:
            logger.warning(f"No role configured for stage {stage.value}, denying {user_id}")
            return False

        roles = {role.upper() for role in await self.get_user_roles(user_id)}
        return required in roles


class StaticRoleResolver(RoleResolver):
    """Roles from an in-process user → roles map (STATIC_USER_ROLES)."""

    def __init__(
        self,
        user_roles: Optional[Dict[str, Iterable[str]]] = None,
        stage_roles: Optional[Dict[str, str]] = None,
    ):
        super().__init__(stage_roles)
        self.user_roles = user_roles if user_roles is not None else settings.STATIC_USER_ROLES_MAP

    async def get_user_roles(self, user_id: str) -> Iterable[str]:
        return self.user_roles.get(user_id, [])


class HttpRoleResolver(RoleResolver):
    """Roles fetched from an external directory service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        stage_roles: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(stage_roles)
        self.base_url = (base_url or settings.ROLE_SERVICE_URL or "").rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.transport = transport

    async def get_user_roles(self, user_id: str) -> Iterable[str]:
        """GET {base_url}/users/{user_id}/roles → {"roles": [...]}."""
        url = f"{self.base_url}/users/{user_id}/roles"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
                if response.status_code == 404:
                    return []
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Role service timed out for user {user_id}")
            raise CollaboratorUnavailable("Role service timed out", user_id=user_id) from e
        except httpx.HTTPError as e:
            logger.error(f"Role service HTTP error for user {user_id}: {e}")
            raise CollaboratorUnavailable("Role service unavailable", user_id=user_id) from e

        return data.get("roles", [])


def build_role_resolver() -> RoleResolver:
    """Pick the resolver from settings."""
    if settings.ROLE_SERVICE_URL:
        return HttpRoleResolver()
    return StaticRoleResolver()
