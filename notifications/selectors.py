"""Read-only notification queries. Expired rows are never returned."""

from django.db.models import QuerySet

from .models import Notification


def list_notifications(*, user, unread_only: bool = False, type: str | None = None) -> QuerySet[Notification]:
    qs = Notification.objects.live().filter(user=user)
    if unread_only:
        qs = qs.unread()
    if type:
        qs = qs.filter(type=type)
    return qs.order_by("-created_at", "-id")


def unread_count(*, user) -> int:
    return Notification.objects.live().unread().filter(user=user).count()
