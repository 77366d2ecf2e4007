"""Domain events and the fire-and-forget notification boundary.

Notification delivery (email, push, in-app) is owned by another service.
The core only emits events after a state change has committed; a failed
dispatch is logged and dropped, and never touches financial state.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from src.mk_common.datetime_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    event_type: str          # e.g. WITHDRAWAL_COMPLETED, LOW_CONFIDENCE
    subject_id: str          # creator_id / campaign_id the event is about
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utc_now)


class NotificationDispatcher(Protocol):
    async def dispatch(self, event: DomainEvent) -> None: ...


class LoggingNotificationDispatcher:
    """Default dispatcher: writes events to the log for the delivery service to tail."""

    async def dispatch(self, event: DomainEvent) -> None:
        logger.info(
            "event %s subject=%s payload=%s",
            event.event_type,
            event.subject_id,
            event.payload,
        )


async def notify_safely(dispatcher: NotificationDispatcher, event: DomainEvent) -> None:
    """Dispatch an event; any failure is logged and swallowed."""
    try:
        await dispatcher.dispatch(event)
    except Exception:
        logger.exception(
            "Notification dispatch failed for %s (subject=%s)", event.event_type, event.subject_id
        )
