"""Stock take sessions: count shelves, then post the differences to the ledger."""

import logging
from typing import Iterable

from catalog.models import ProductVariant
from common.exceptions import InvalidQuantity, InvalidTransition, NotFound
from django.db import transaction
from django.utils import timezone

from .models import StockMovement, StockTake, StockTakeItem
from .services import set_stock_level

logger = logging.getLogger("hera.inventory")


def _get_stock_take(stock_take_id: int) -> StockTake:
    try:
        return StockTake.objects.select_for_update().get(id=stock_take_id)
    except StockTake.DoesNotExist:
        raise NotFound(f"Stock take {stock_take_id} not found.")


def _require_status(stock_take: StockTake, *allowed: str) -> None:
    if stock_take.status not in allowed:
        raise InvalidTransition(f"Stock take {stock_take.reference} is {stock_take.status}.")


@transaction.atomic
def create_stock_take(*, variant_ids: Iterable[int], notes: str = "", created_by=None) -> StockTake:
    """Open a draft count for the given variants (all active variants when empty)."""

    ids = list(variant_ids or [])
    variants = ProductVariant.objects.filter(status=ProductVariant.STATUS_ACTIVE)
    if ids:
        variants = ProductVariant.objects.filter(id__in=ids)
        missing = set(ids) - set(variants.values_list("id", flat=True))
        if missing:
            raise NotFound(f"Unknown variants: {sorted(missing)}.")

    stock_take = StockTake.objects.create(
        reference=f"ST-{timezone.now():%Y%m%d%H%M%S%f}",
        notes=notes,
        created_by=created_by if getattr(created_by, "pk", None) else None,
    )
    StockTakeItem.objects.bulk_create([StockTakeItem(stock_take=stock_take, variant=v) for v in variants])
    return stock_take


@transaction.atomic
def start_stock_take(*, stock_take_id: int) -> StockTake:
    """Snapshot expected stock for each line and move to in-progress."""

    stock_take = _get_stock_take(stock_take_id)
    _require_status(stock_take, StockTake.STATUS_DRAFT)
    for item in stock_take.items.select_related("variant"):
        item.expected_stock = int(item.variant.stock)
        item.save(update_fields=["expected_stock", "updated_at"])
    stock_take.status = StockTake.STATUS_IN_PROGRESS
    stock_take.started_at = timezone.now()
    stock_take.save(update_fields=["status", "started_at", "updated_at"])
    return stock_take


@transaction.atomic
def record_count(*, stock_take_id: int, counts: dict[int, int]) -> StockTake:
    """Store counted quantities keyed by variant id."""

    stock_take = _get_stock_take(stock_take_id)
    _require_status(stock_take, StockTake.STATUS_IN_PROGRESS)
    items = {item.variant_id: item for item in stock_take.items.all()}
    for variant_id, counted in counts.items():
        item = items.get(int(variant_id))
        if item is None:
            raise NotFound(f"Variant {variant_id} is not part of stock take {stock_take.reference}.")
        if counted is None or int(counted) < 0:
            raise InvalidQuantity("Counted stock cannot be negative.")
        item.counted_stock = int(counted)
        item.save(update_fields=["counted_stock", "updated_at"])
    return stock_take


@transaction.atomic
def complete_stock_take(*, stock_take_id: int, auto_adjust: bool = True, created_by=None) -> StockTake:
    """Close the count. With ``auto_adjust`` each counted line sets stock to the counted value."""

    stock_take = _get_stock_take(stock_take_id)
    _require_status(stock_take, StockTake.STATUS_IN_PROGRESS)
    adjusted = 0
    if auto_adjust:
        for item in stock_take.items.exclude(counted_stock__isnull=True):
            movement = set_stock_level(
                variant_id=item.variant_id,
                target=item.counted_stock,
                reason=f"Stock take {stock_take.reference}",
                reference_type=StockMovement.REFERENCE_STOCK_TAKE,
                reference_id=stock_take.id,
                created_by=created_by,
            )
            adjusted += 1 if movement else 0
    stock_take.status = StockTake.STATUS_COMPLETED
    stock_take.completed_at = timezone.now()
    stock_take.save(update_fields=["status", "completed_at", "updated_at"])
    logger.info(
        "stock_take.completed",
        extra={"event": "stock_take.completed", "stock_take_id": stock_take.id, "adjusted": adjusted},
    )
    return stock_take


@transaction.atomic
def cancel_stock_take(*, stock_take_id: int) -> StockTake:
    stock_take = _get_stock_take(stock_take_id)
    _require_status(stock_take, StockTake.STATUS_DRAFT, StockTake.STATUS_IN_PROGRESS)
    stock_take.status = StockTake.STATUS_CANCELLED
    stock_take.save(update_fields=["status", "updated_at"])
    return stock_take
