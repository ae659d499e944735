"""Django app configuration for notifications."""

from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    """Builds the process-wide publisher once the registry is ready."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"

    def ready(self):
        from .publishers import build_publisher, set_publisher

        set_publisher(build_publisher())
