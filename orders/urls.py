"""URL routes for the orders app (v1)."""

from django.urls import path

from .views import (
    AdminOrderListCreateView,
    AdminOrderStatsView,
    AdminOrderStatusView,
    OrderCancelView,
    OrderDetailView,
    OrderListView,
    OrderPaymentWebhookView,
)

app_name = "orders"

urlpatterns = [
    path("", OrderListView.as_view(), name="order-list"),
    path("<int:order_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("<int:order_id>/cancel/", OrderCancelView.as_view(), name="order-cancel"),
    path("webhooks/payment/", OrderPaymentWebhookView.as_view(), name="order-webhook-payment"),
    # Administrator routes
    path("manage/", AdminOrderListCreateView.as_view(), name="admin-order-list"),
    path("manage/stats/", AdminOrderStatsView.as_view(), name="admin-order-stats"),
    path("manage/<int:order_id>/status/", AdminOrderStatusView.as_view(), name="admin-order-status"),
]
