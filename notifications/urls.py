"""Notification routes (v1)."""

from django.urls import path

from .views import NotificationDeleteView, NotificationListView, NotificationMarkAllReadView, NotificationMarkReadView

app_name = "notifications"

urlpatterns = [
    path("", NotificationListView.as_view(), name="notification-list"),
    path("read/", NotificationMarkReadView.as_view(), name="notification-read"),
    path("read-all/", NotificationMarkAllReadView.as_view(), name="notification-read-all"),
    path("<int:notification_id>/", NotificationDeleteView.as_view(), name="notification-delete"),
]
