"""Push transports for notifications.

The dispatcher only needs two capabilities from a transport: push to one
user and push to everyone holding a role. ``LoggingPublisher`` is the
default; a websocket bridge can be plugged in through the
``NOTIFICATIONS_PUBLISHER`` setting without touching the services.
"""

import logging
from typing import Any, Optional, Protocol, runtime_checkable

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger("hera.notifications")


@runtime_checkable
class Publisher(Protocol):
    """Best-effort delivery to live connections. Return values are ignored."""

    def publish(self, user_id: int, event: str, payload: dict[str, Any]) -> None: ...

    def publish_to_role(self, role: str, event: str, payload: dict[str, Any]) -> None: ...


class LoggingPublisher:
    """Writes each push to the notifications logger."""

    def publish(self, user_id: int, event: str, payload: dict[str, Any]) -> None:
        logger.info(
            "notification.published",
            extra={"event": event, "user_id": user_id, "notification_id": payload.get("id")},
        )

    def publish_to_role(self, role: str, event: str, payload: dict[str, Any]) -> None:
        logger.info(
            "notification.published_to_role",
            extra={"event": event, "role": role, "notification_id": payload.get("id")},
        )


class InMemoryPublisher:
    """Records pushes in a list; used by tests and local debugging."""

    def __init__(self):
        self.sent: list[tuple[str, Any, str, dict[str, Any]]] = []

    def publish(self, user_id: int, event: str, payload: dict[str, Any]) -> None:
        self.sent.append(("user", user_id, event, payload))

    def publish_to_role(self, role: str, event: str, payload: dict[str, Any]) -> None:
        self.sent.append(("role", role, event, payload))

    def events(self, kind: Optional[str] = None) -> list[str]:
        return [event for k, _, event, _ in self.sent if kind is None or k == kind]

    def clear(self) -> None:
        self.sent.clear()


_publisher: Optional[Publisher] = None


def build_publisher() -> Publisher:
    path = getattr(settings, "NOTIFICATIONS_PUBLISHER", "notifications.publishers.LoggingPublisher")
    return import_string(path)()


def set_publisher(publisher: Optional[Publisher]) -> None:
    """Install the process-wide publisher (``None`` resets to lazy build)."""
    global _publisher
    _publisher = publisher


def get_publisher() -> Publisher:
    global _publisher
    if _publisher is None:
        _publisher = build_publisher()
    return _publisher
