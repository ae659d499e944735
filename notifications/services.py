"""Notification dispatcher.

``notify`` persists first and pushes second. The row is the durable record:
a push that fails (or finds nobody connected) is logged and otherwise
ignored, and the notification stays listed until read or expired.
"""

import logging
from datetime import timedelta
from typing import Iterable, Optional

from common.choices import NotificationPriority, NotificationType, UserRole
from common.exceptions import NotFound
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from users.selectors import admin_user_ids

from .models import Notification
from .publishers import Publisher, get_publisher

logger = logging.getLogger("hera.notifications")

ADMIN_TYPES = frozenset(
    {
        NotificationType.ORDER_PLACED,
        NotificationType.STOCK_LOW,
        NotificationType.STOCK_OUT,
        NotificationType.NEW_USER,
        NotificationType.PAYMENT_FAILED,
        NotificationType.SYSTEM_ALERT,
    }
)


def _default_expiry():
    days = int(getattr(settings, "NOTIFICATIONS_DEFAULT_TTL_DAYS", 30) or 0)
    if days <= 0:
        return None
    return timezone.now() + timedelta(days=days)


def _push(publisher: Publisher, *, user_id=None, role=None, notification: Notification) -> None:
    event = f"notification.{notification.type}"
    try:
        if role is not None:
            publisher.publish_to_role(role, event, notification.as_payload())
        else:
            publisher.publish(user_id, event, notification.as_payload())
    except Exception:
        logger.exception(
            "notification.publish_failed",
            extra={
                "event": "notification.publish_failed",
                "notification_id": notification.id,
                "user_id": user_id,
                "role": role,
            },
        )


@transaction.atomic
def notify(
    *,
    user_id: Optional[int],
    type: str,
    title: str,
    message: str,
    priority: str = NotificationPriority.NORMAL,
    related_entity: str = "",
    related_entity_id="",
    expires_at=None,
    publisher: Optional[Publisher] = None,
) -> Optional[Notification]:
    """Persist a notification for ``user_id`` and push it.

    Admin-relevant types also get one row per administrator (the target
    excluded) and a single role-wide push. ``user_id=None`` only does the
    admin part. Returns the target user's row, if any.
    """

    publisher = publisher or get_publisher()
    expires_at = expires_at if expires_at is not None else _default_expiry()
    fields = {
        "type": type,
        "title": title,
        "message": message,
        "priority": priority,
        "related_entity": related_entity,
        "related_entity_id": str(related_entity_id or ""),
        "expires_at": expires_at,
    }

    notification = None
    if user_id is not None:
        notification = Notification.objects.create(user_id=user_id, **fields)
        _push(publisher, user_id=user_id, notification=notification)

    if type in ADMIN_TYPES:
        admin_rows = Notification.objects.bulk_create(
            [Notification(user_id=admin_id, **fields) for admin_id in admin_user_ids() if admin_id != user_id]
        )
        if admin_rows:
            _push(publisher, role=UserRole.ADMIN, notification=admin_rows[0])

    logger.info(
        "notification.created",
        extra={"event": "notification.created", "type": type, "user_id": user_id},
    )
    return notification


def notify_admins(
    *,
    type: str,
    title: str,
    message: str,
    priority: str = NotificationPriority.HIGH,
    related_entity: str = "",
    related_entity_id="",
    publisher: Optional[Publisher] = None,
) -> None:
    """Fan an event out to administrators only."""

    notify(
        user_id=None,
        type=type if type in ADMIN_TYPES else NotificationType.SYSTEM_ALERT,
        title=title,
        message=message,
        priority=priority,
        related_entity=related_entity,
        related_entity_id=related_entity_id,
        publisher=publisher,
    )


def mark_as_read(*, user, notification_ids: Iterable[int]) -> int:
    """Mark the given unread notifications as read. Already-read rows keep their ``read_at``."""

    return Notification.objects.filter(user=user, id__in=list(notification_ids), is_read=False).update(
        is_read=True, read_at=timezone.now()
    )


def mark_all_as_read(*, user) -> int:
    return Notification.objects.filter(user=user, is_read=False).update(is_read=True, read_at=timezone.now())


def delete_notification(*, user, notification_id: int) -> None:
    deleted, _ = Notification.objects.filter(user=user, id=notification_id).delete()
    if not deleted:
        raise NotFound("Notification not found.")


def purge_expired_notifications(*, now=None) -> int:
    """Delete expired rows and read rows past the retention window."""

    now = now or timezone.now()
    retention = int(getattr(settings, "NOTIFICATIONS_READ_RETENTION_DAYS", 30))
    expired, _ = Notification.objects.filter(expires_at__lte=now).delete()
    stale, _ = Notification.objects.filter(is_read=True, read_at__lt=now - timedelta(days=retention)).delete()
    logger.info(
        "notifications.purged",
        extra={"event": "notifications.purged", "expired": expired, "read": stale},
    )
    return expired + stale
