"""Stock alert monitor.

Per variant the alert moves between: no alert, watching, breached
(stock at/below threshold and announced) and resolved (stock recovered).
``check_stock_alert`` runs inside the ledger transaction after every
movement; the notification itself is sent after commit and may fail
without affecting the movement.
"""

import logging
from typing import Optional

from catalog.models import ProductVariant
from common.choices import NotificationPriority, NotificationType
from common.exceptions import InvalidQuantity, NotFound
from django.db import transaction
from django.utils import timezone

from .emails import send_low_stock_email
from .models import StockAlert

logger = logging.getLogger("hera.inventory")


def _announce_low_stock(*, variant_id: int, sku: str, title: str, current_stock: int, threshold: int) -> None:
    from notifications.services import notify_admins

    out = current_stock == 0
    notify_admins(
        type=NotificationType.STOCK_OUT if out else NotificationType.STOCK_LOW,
        title=f"{'Out of stock' if out else 'Low stock'}: {title} ({sku})",
        message=f"{title} ({sku}) has {current_stock} left; alert threshold is {threshold}.",
        priority=NotificationPriority.URGENT if out else NotificationPriority.HIGH,
        related_entity="variant",
        related_entity_id=variant_id,
    )
    try:
        send_low_stock_email(sku=sku, title=title, current_stock=current_stock, threshold=threshold)
    except Exception:
        logger.exception("stock.alert_email_failed", extra={"event": "stock.alert_email_failed", "sku": sku})


def check_stock_alert(*, variant: ProductVariant, current_stock: int) -> Optional[StockAlert]:
    """Evaluate the variant's alert against ``current_stock``.

    Calling it again with the same value is a no-op: an alert that is
    already breached and announced is left untouched.
    """

    alert = StockAlert.objects.select_for_update().filter(variant_id=variant.id).first()
    if alert is None or not alert.is_active:
        return alert

    now = timezone.now()
    if current_stock <= alert.threshold:
        if alert.notified_at is None:
            alert.notified_at = now
            alert.is_resolved = False
            alert.resolved_at = None
            alert.resolved_by = None
            alert.save(update_fields=["notified_at", "is_resolved", "resolved_at", "resolved_by", "updated_at"])
            logger.info(
                "stock.alert_triggered",
                extra={
                    "event": "stock.alert_triggered",
                    "variant_id": variant.id,
                    "stock": current_stock,
                    "threshold": alert.threshold,
                },
            )
            kwargs = {
                "variant_id": variant.id,
                "sku": variant.sku,
                "title": variant.product.title,
                "current_stock": int(current_stock),
                "threshold": int(alert.threshold),
            }
            transaction.on_commit(lambda: _announce_low_stock(**kwargs), robust=True)
    elif alert.notified_at is not None:
        # A manual resolve keeps its resolved_at and resolved_by.
        fields = ["notified_at", "updated_at"]
        alert.notified_at = None
        if not alert.is_resolved:
            alert.is_resolved = True
            alert.resolved_at = now
            fields += ["is_resolved", "resolved_at"]
        alert.save(update_fields=fields)
        logger.info(
            "stock.alert_resolved",
            extra={"event": "stock.alert_resolved", "variant_id": variant.id, "stock": current_stock},
        )
    return alert


@transaction.atomic
def set_stock_alert(*, variant_id: int, threshold: int) -> StockAlert:
    """Create or replace the variant's alert and evaluate it against current stock."""

    try:
        threshold = int(threshold)
    except (TypeError, ValueError):
        raise InvalidQuantity("Threshold must be a whole number.")
    if threshold < 0:
        raise InvalidQuantity("Threshold cannot be negative.")
    try:
        variant = ProductVariant.objects.select_for_update().select_related("product").get(id=variant_id)
    except ProductVariant.DoesNotExist:
        raise NotFound(f"Variant {variant_id} not found.")

    alert, _ = StockAlert.objects.update_or_create(
        variant=variant,
        defaults={
            "threshold": threshold,
            "is_active": True,
            "notified_at": None,
            "is_resolved": False,
            "resolved_at": None,
            "resolved_by": None,
        },
    )
    return check_stock_alert(variant=variant, current_stock=int(variant.stock))


def _get_alert(variant_id: int) -> StockAlert:
    try:
        return StockAlert.objects.select_for_update().get(variant_id=variant_id)
    except StockAlert.DoesNotExist:
        raise NotFound(f"No stock alert for variant {variant_id}.")


@transaction.atomic
def disable_stock_alert(*, variant_id: int) -> StockAlert:
    alert = _get_alert(variant_id)
    alert.is_active = False
    alert.save(update_fields=["is_active", "updated_at"])
    return alert


@transaction.atomic
def resolve_stock_alert(*, variant_id: int, user=None) -> StockAlert:
    """Acknowledge a breach by hand.

    The alert stays announced while stock is low; only a recovery above the
    threshold followed by a new breach announces again.
    """

    alert = _get_alert(variant_id)
    alert.is_resolved = True
    alert.resolved_at = timezone.now()
    alert.resolved_by = user if getattr(user, "pk", None) else None
    alert.save(update_fields=["is_resolved", "resolved_at", "resolved_by", "updated_at"])
    return alert
