"""Inventory ledger: every stock change is a recorded, signed movement.

Each public function runs in one transaction that reads the variant's
stock, validates the new value, writes it, appends a StockMovement and
evaluates the variant's stock alert. A validation failure aborts the whole
unit, so a stock change without its ledger row is never visible.
"""

import logging
from typing import Iterable, Optional

from catalog.models import ProductVariant
from common.exceptions import CommerceError, InsufficientStock, InvalidQuantity, NotFound, TransactionAborted
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .alerts import check_stock_alert
from .models import StockMovement

logger = logging.getLogger("hera.inventory")


def _max_retries() -> int:
    return max(1, int(getattr(settings, "INVENTORY_MAX_CAS_RETRIES", 5)))


def _lock_variant(variant_id: int) -> ProductVariant:
    try:
        return ProductVariant.objects.select_for_update().select_related("product").get(id=variant_id)
    except ProductVariant.DoesNotExist:
        raise NotFound(f"Variant {variant_id} not found.")


@transaction.atomic
def apply_movement(
    *,
    variant_id: int,
    quantity: int,
    movement_type: str,
    reference_type: str = "",
    reference_id: Optional[int] = None,
    reason: str = "",
    created_by=None,
) -> StockMovement:
    """Apply a signed delta to a variant's stock and record it.

    The write is conditional on the stock value that was read
    (``UPDATE ... WHERE stock = <read>``); if another writer got there first
    the row is re-read and the delta re-validated against the fresh value.
    """

    quantity = int(quantity)
    if quantity == 0:
        raise InvalidQuantity("Movement quantity must not be zero.")

    for attempt in range(_max_retries()):
        variant = _lock_variant(variant_id)
        previous = int(variant.stock)
        new = previous + quantity
        if new < 0:
            raise InsufficientStock(
                product_id=variant.product_id,
                variant_id=variant.id,
                available=previous,
                requested=-quantity,
                title=variant.product.title,
                sku=variant.sku,
            )
        written = ProductVariant.objects.filter(id=variant.id, stock=previous).update(
            stock=new, updated_at=timezone.now()
        )
        if written:
            break
        logger.warning(
            "stock.write_conflict",
            extra={"event": "stock.write_conflict", "variant_id": variant.id, "attempt": attempt + 1},
        )
    else:
        raise TransactionAborted(f"Stock for {variant.sku} kept changing; try again.")

    movement = StockMovement.objects.create(
        variant=variant,
        sku=variant.sku,
        movement_type=movement_type,
        quantity=quantity,
        previous_stock=previous,
        new_stock=new,
        reference_type=reference_type,
        reference_id=reference_id,
        reason=reason,
        created_by=created_by if getattr(created_by, "pk", None) else None,
    )
    variant.stock = new
    check_stock_alert(variant=variant, current_stock=new)
    logger.info(
        "stock.movement_recorded",
        extra={
            "event": "stock.movement_recorded",
            "variant_id": variant.id,
            "movement_type": str(movement_type),
            "quantity": quantity,
            "previous_stock": previous,
            "new_stock": new,
            "reference_type": reference_type,
            "reference_id": reference_id,
        },
    )
    return movement


def _positive(quantity) -> int:
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise InvalidQuantity()
    if quantity <= 0:
        raise InvalidQuantity()
    return quantity


def add_stock(*, variant_id: int, quantity: int, reason: str = "", created_by=None) -> StockMovement:
    """Receive goods: ADDITION."""
    return apply_movement(
        variant_id=variant_id,
        quantity=_positive(quantity),
        movement_type=StockMovement.TYPE_ADDITION,
        reason=reason or "Stock added",
        created_by=created_by,
    )


def adjust_stock(*, variant_id: int, quantity: int, reason: str = "", created_by=None) -> StockMovement:
    """Manual signed adjustment: ADJUSTMENT when positive, CORRECTION when negative."""
    quantity = int(quantity)
    if quantity == 0:
        raise InvalidQuantity("Adjustment quantity must not be zero.")
    movement_type = StockMovement.TYPE_ADJUSTMENT if quantity > 0 else StockMovement.TYPE_CORRECTION
    return apply_movement(
        variant_id=variant_id,
        quantity=quantity,
        movement_type=movement_type,
        reason=reason or f"Stock {'increase' if quantity > 0 else 'decrease'} adjustment",
        created_by=created_by,
    )


def record_sale_movement(*, variant_id: int, quantity: int, order_id: int, created_by=None) -> StockMovement:
    return apply_movement(
        variant_id=variant_id,
        quantity=-_positive(quantity),
        movement_type=StockMovement.TYPE_SALE,
        reference_type=StockMovement.REFERENCE_ORDER,
        reference_id=order_id,
        reason="Sale",
        created_by=created_by,
    )


def record_return_movement(
    *, variant_id: int, quantity: int, order_id: Optional[int] = None, reason: str = "", created_by=None
) -> StockMovement:
    return apply_movement(
        variant_id=variant_id,
        quantity=_positive(quantity),
        movement_type=StockMovement.TYPE_RETURN,
        reference_type=StockMovement.REFERENCE_ORDER if order_id else "",
        reference_id=order_id,
        reason=reason or "Return",
        created_by=created_by,
    )


def record_damage_movement(*, variant_id: int, quantity: int, reason: str = "", created_by=None) -> StockMovement:
    return apply_movement(
        variant_id=variant_id,
        quantity=-_positive(quantity),
        movement_type=StockMovement.TYPE_DAMAGE,
        reason=reason or "Damaged stock",
        created_by=created_by,
    )


@transaction.atomic
def set_stock_level(
    *,
    variant_id: int,
    target: int,
    reason: str = "",
    reference_type: str = "",
    reference_id: Optional[int] = None,
    created_by=None,
) -> Optional[StockMovement]:
    """Bring stock to ``target`` with a single ADJUSTMENT/CORRECTION. No row when already there."""

    target = int(target)
    if target < 0:
        raise InvalidQuantity("Stock level cannot be negative.")
    variant = _lock_variant(variant_id)
    delta = target - int(variant.stock)
    if delta == 0:
        return None
    return apply_movement(
        variant_id=variant_id,
        quantity=delta,
        movement_type=StockMovement.TYPE_ADJUSTMENT if delta > 0 else StockMovement.TYPE_CORRECTION,
        reference_type=reference_type,
        reference_id=reference_id,
        reason=reason or "Stock level set",
        created_by=created_by,
    )


_BULK_HANDLERS = {
    "addition": add_stock,
    "adjustment": adjust_stock,
    "damage": record_damage_movement,
}


def bulk_stock_update(*, updates: Iterable[dict], created_by=None) -> dict:
    """Apply many updates, each in its own transaction.

    Entries look like ``{"variant_id": 1, "quantity": 5, "type": "addition", "reason": ""}``;
    ``type`` defaults to addition for positive and adjustment for negative
    quantities. A failing entry is reported under ``errors`` and does not
    undo the others.
    """

    results, errors = [], []
    for index, entry in enumerate(updates):
        variant_id = entry.get("variant_id")
        try:
            quantity = int(entry.get("quantity") or 0)
            kind = entry.get("type") or ("addition" if quantity > 0 else "adjustment")
            handler = _BULK_HANDLERS.get(kind)
            if handler is None:
                raise InvalidQuantity(f"Unsupported update type: {kind}.")
            movement = handler(
                variant_id=variant_id,
                quantity=quantity,
                reason=entry.get("reason", ""),
                created_by=created_by,
            )
            results.append({"index": index, "variant_id": variant_id, "movement_id": movement.id})
        except (CommerceError, ValueError, TypeError) as exc:
            errors.append({"index": index, "variant_id": variant_id, "error": getattr(exc, "detail", str(exc))})
    logger.info(
        "stock.bulk_update",
        extra={"event": "stock.bulk_update", "applied": len(results), "failed": len(errors)},
    )
    return {"results": results, "errors": errors}


# EOF
