"""Read-only inventory queries: ledger history, reconciliation and alert reporting."""

from typing import Optional

from catalog.models import ProductVariant
from django.conf import settings
from django.db.models import Case, F, IntegerField, QuerySet, Sum, Value, When
from django.db.models.functions import Coalesce

from .models import StockAlert, StockMovement


def default_low_stock_threshold() -> int:
    return int(getattr(settings, "INVENTORY_DEFAULT_LOW_STOCK_THRESHOLD", 10))


def movement_history() -> QuerySet[StockMovement]:
    """Ledger rows, newest first. The API narrows them with ``MovementFilterSet``."""
    return StockMovement.objects.select_related("created_by").order_by("-created_at", "-id")


def ledger_balance(*, variant_id: int) -> int:
    """Sum of all recorded movements for the variant."""
    total = StockMovement.objects.filter(variant_id=variant_id).aggregate(total=Sum("quantity"))["total"]
    return int(total or 0)


def verify_ledger(*, variant_id: int) -> dict:
    """Compare the variant's stock column with its ledger balance."""
    stock = int(ProductVariant.objects.values_list("stock", flat=True).get(id=variant_id))
    balance = ledger_balance(variant_id=variant_id)
    return {"variant_id": variant_id, "stock": stock, "ledger": balance, "ok": stock == balance}


def ledger_mismatches() -> list[dict]:
    """Variants whose stock differs from the sum of their movements."""
    rows = ProductVariant.objects.annotate(ledger=Coalesce(Sum("stock_movements__quantity"), 0)).exclude(
        stock=F("ledger")
    )
    return [{"variant_id": v.id, "sku": v.sku, "stock": v.stock, "ledger": v.ledger} for v in rows]


def active_stock_alerts() -> QuerySet[StockAlert]:
    """Enabled alerts that are currently breached and announced."""
    return (
        StockAlert.objects.filter(is_active=True, notified_at__isnull=False, is_resolved=False)
        .select_related("variant", "variant__product")
        .order_by("variant__stock", "id")
    )


def alert_history() -> QuerySet[StockAlert]:
    """Alerts that were breached and later resolved, most recent first."""
    return (
        StockAlert.objects.filter(is_resolved=True, resolved_at__isnull=False)
        .select_related("variant", "variant__product", "resolved_by")
        .order_by("-resolved_at", "-id")
    )


def low_stock_variants(*, threshold: Optional[int] = None) -> QuerySet[ProductVariant]:
    """Active variants at or below their effective threshold.

    The effective threshold is the variant's enabled alert threshold, or the
    configured default when no enabled alert exists. An explicit
    ``threshold`` overrides both.
    """

    qs = ProductVariant.objects.filter(status=ProductVariant.STATUS_ACTIVE).select_related("product")
    if threshold is not None:
        return qs.annotate(effective_threshold=Value(int(threshold), output_field=IntegerField())).filter(
            stock__lte=int(threshold)
        ).order_by("stock", "sku")
    effective = Coalesce(
        Case(
            When(stock_alert__is_active=True, then=F("stock_alert__threshold")),
            default=None,
            output_field=IntegerField(),
        ),
        Value(default_low_stock_threshold()),
        output_field=IntegerField(),
    )
    return qs.annotate(effective_threshold=effective).filter(stock__lte=F("effective_threshold")).order_by("stock", "sku")


def stock_alert_stats() -> dict:
    return {
        "configured": StockAlert.objects.count(),
        "enabled": StockAlert.objects.filter(is_active=True).count(),
        "breached": active_stock_alerts().count(),
        "low_stock": low_stock_variants().count(),
        "out_of_stock": ProductVariant.objects.filter(status=ProductVariant.STATUS_ACTIVE, stock=0).count(),
    }
