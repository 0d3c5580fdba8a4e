"""
Booking and order event notifications

Every state transition publishes an event. Delivery is fire-and-forget:
the HTTP request runs after the response is sent and a failure is only
logged, because the state machine never depends on it.
"""

import logging
from datetime import date, datetime
from typing import Any, Optional, Protocol

import httpx
from fastapi import BackgroundTasks

from ..config import NOTIFICATION_TIMEOUT_SECONDS, NOTIFICATION_WEBHOOK_URL

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def publish(self, event: str, payload: dict[str, Any]) -> None: ...


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def deliver_notification(
    event: str, payload: dict[str, Any], webhook_url: Optional[str] = None
) -> bool:
    """Post one event to the notification collaborator. Returns True when delivered."""
    url = webhook_url or NOTIFICATION_WEBHOOK_URL
    if not url:
        logger.info(f"📣 {event} (no notification webhook configured): {payload}")
        return False

    try:
        response = httpx.post(
            url,
            json={"event": event, "payload": _jsonable(payload)},
            timeout=NOTIFICATION_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        logger.info(f"✅ {event} notification delivered")
        return True
    except httpx.HTTPError as e:
        logger.error(f"❌ Failed to deliver {event} notification: {e}")
        return False


class BackgroundNotifier:
    """Queues deliveries on the request's background tasks"""

    def __init__(self, background_tasks: BackgroundTasks):
        self.background_tasks = background_tasks

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        self.background_tasks.add_task(deliver_notification, event, payload)


class LoggingNotifier:
    """Used outside a request (scripts, reconciliation jobs)"""

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        logger.info(f"📣 {event}: {payload}")


def get_notifier(background_tasks: BackgroundTasks) -> Notifier:
    return BackgroundNotifier(background_tasks)
