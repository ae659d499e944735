"""Notification records delivered to users and administrators."""

from common.choices import NotificationPriority, NotificationType
from django.conf import settings
from django.db import models
from django.utils import timezone


class NotificationQuerySet(models.QuerySet):
    def live(self, now=None):
        """Exclude rows whose ``expires_at`` is in the past."""
        now = now or timezone.now()
        return self.filter(models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now))

    def unread(self):
        return self.filter(is_read=False)


class Notification(models.Model):
    TYPE_CHOICES = NotificationType.choices
    PRIORITY_CHOICES = NotificationPriority.choices

    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="notifications", on_delete=models.CASCADE)
    type = models.CharField(max_length=32, choices=TYPE_CHOICES, db_index=True)
    title = models.CharField(max_length=200)
    message = models.TextField()
    priority = models.CharField(max_length=16, choices=PRIORITY_CHOICES, default=NotificationPriority.NORMAL)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    related_entity = models.CharField(max_length=64, blank=True)
    related_entity_id = models.CharField(max_length=64, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user", "is_read", "created_at"], name="notif_user_read_created_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Notification#{self.id} {self.type} user={self.user_id}"

    def as_payload(self) -> dict:
        """Shape pushed to live connections."""
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "priority": self.priority,
            "related_entity": self.related_entity,
            "related_entity_id": self.related_entity_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
