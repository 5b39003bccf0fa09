"""Notification dispatch setelah transisi submission."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from kpi_engine.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class SubmissionEvent:
    """Committed status/stage change of a submission."""

    submission_id: str
    event: str
    status: str
    approval_stage: Optional[str]
    version: int
    revision: int
    actor_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["occurred_at"] = self.occurred_at.isoformat()
        return payload


class NotificationDispatcher(ABC):
    """Base dispatcher; subclasses deliver events somewhere."""

    @abstractmethod
    async def dispatch(self, event: SubmissionEvent) -> None:
        """Deliver one committed event."""


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Writes events to the application log. Keeps them for inspection."""

    def __init__(self):
        self.events: List[SubmissionEvent] = []

    async def dispatch(self, event: SubmissionEvent) -> None:
        self.events.append(event)
        logger.info(
            f"Notification: submission {event.submission_id} {event.event} "
            f"→ {event.status}/{event.approval_stage}"
        )


class WebhookNotificationDispatcher(NotificationDispatcher):
    """POSTs each event as JSON to NOTIFICATION_WEBHOOK_URL."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.NOTIFICATION_WEBHOOK_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.transport = transport

    async def dispatch(self, event: SubmissionEvent) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.url, json=event.to_dict())
            response.raise_for_status()
        logger.debug(f"Webhook delivered for submission {event.submission_id} ({event.event})")


def build_dispatcher() -> NotificationDispatcher:
    """Pick the dispatcher from settings."""
    if settings.NOTIFICATION_WEBHOOK_URL:
        return WebhookNotificationDispatcher()
    return LoggingNotificationDispatcher()
