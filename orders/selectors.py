"""Read-only order queries."""

from decimal import Decimal
from typing import Optional

from common.choices import OrderStatus
from common.exceptions import NotFound
from django.db.models import Count, QuerySet, Sum

from .models import Order

REVENUE_STATUSES = (OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.FULFILLED)


def orders_for_user(
    *,
    user,
    status: Optional[str] = None,
    number: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> QuerySet[Order]:
    qs = Order.objects.filter(user_id=user.id).order_by("-id").prefetch_related("items")
    if status:
        qs = qs.filter(status=status)
    if number:
        qs = qs.filter(number=number)
    if start:
        qs = qs.filter(created_at__gte=start)
    if end:
        qs = qs.filter(created_at__lte=end)
    return qs


def get_order(*, order_id: int, user=None) -> Order:
    """Fetch an order; with ``user`` only that buyer's orders are visible."""

    qs = Order.objects.prefetch_related("items")
    if user is not None:
        qs = qs.filter(user_id=user.id)
    try:
        return qs.get(id=order_id)
    except Order.DoesNotExist:
        raise NotFound(f"Order {order_id} not found.")


def order_stats() -> dict:
    """Order counts per status and revenue from paid-or-later orders."""

    counts = {row["status"]: row["n"] for row in Order.objects.values("status").annotate(n=Count("id"))}
    revenue = Order.objects.filter(status__in=REVENUE_STATUSES).aggregate(total=Sum("total"))["total"]
    return {
        "total_orders": sum(counts.values()),
        "by_status": {value: counts.get(value, 0) for value in OrderStatus.values},
        "revenue": revenue or Decimal("0.00"),
    }
