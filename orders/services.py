"""Checkout orchestration and order lifecycle.

``checkout`` validates the cart against live catalog data, then in one
transaction creates the order, its frozen line items and one SALE ledger
movement per line. Anything that fails inside that block rolls everything
back. Cart clearing, notifications and emails run after commit and are
best-effort.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Iterable, Optional, Tuple

from cart.models import Cart, CartItem
from cart.selectors import cart_items
from catalog.models import Product, ProductVariant
from common.choices import NotificationPriority, NotificationType, OrderStatus
from common.exceptions import (
    CommerceError,
    EmptyCart,
    InsufficientStock,
    InvalidIdempotencyKey,
    InvalidQuantity,
    InvalidTransition,
    NotFound,
    TransactionAborted,
)
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from inventory.services import record_return_movement, record_sale_movement

from .emails import send_order_confirmation_email, send_order_status_email
from .models import IdempotencyKey, Order, OrderItem
from .payments import initial_status_for

logger = logging.getLogger("hera.orders")


@dataclass(frozen=True)
class CheckoutLine:
    """A validated line with its price frozen at checkout time."""

    product: Product
    variant: ProductVariant
    quantity: int
    unit_price: Decimal
    variant_name: str = ""
    variant_value: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def _unavailable(variant: ProductVariant, requested: int) -> InsufficientStock:
    return InsufficientStock(
        product_id=variant.product_id,
        variant_id=variant.id,
        available=0 if not (variant.is_active and variant.product.is_published) else int(variant.stock),
        requested=requested,
        title=variant.product.title,
        sku=variant.sku,
    )


def validate_lines(requested: Iterable[Tuple[int, int, str, str]]) -> list[CheckoutLine]:
    """Re-read each (variant_id, quantity, name, value) against the live catalog.

    Every line must be published, active and in stock; the first failing
    line aborts with ``InsufficientStock`` naming its product.
    """

    requested = list(requested)
    variants = ProductVariant.objects.select_related("product").in_bulk([r[0] for r in requested])
    lines = []
    for variant_id, quantity, name, value in requested:
        variant = variants.get(variant_id)
        if variant is None:
            raise NotFound(f"Variant {variant_id} not found.")
        quantity = int(quantity)
        if quantity < 1:
            raise InvalidQuantity()
        if not variant.product.is_published or not variant.is_active or int(variant.stock) < quantity:
            raise _unavailable(variant, quantity)
        lines.append(
            CheckoutLine(
                product=variant.product,
                variant=variant,
                quantity=quantity,
                unit_price=variant.price or Decimal("0.00"),
                variant_name=name or variant.name,
                variant_value=value or variant.value,
            )
        )
    return lines


def _order_number(order_id: int) -> str:
    prefix = getattr(settings, "ORDERS_NUMBER_PREFIX", "ORD")
    return f"{prefix}-{int(order_id):06d}"


def _place_order(
    *,
    lines: list[CheckoutLine],
    payment_method: str,
    user=None,
    customer: Optional[dict] = None,
    shipping: Optional[dict] = None,
    notes: str = "",
    created_by=None,
) -> Order:
    """Create the order, its items and the SALE movements in one transaction."""

    customer = customer or {}
    shipping = shipping or {}
    subtotal = sum((line.line_total for line in lines), Decimal("0.00"))
    status = initial_status_for(payment_method)
    buyer = user if getattr(user, "pk", None) else None
    try:
        with transaction.atomic():
            order = Order.objects.create(
                user=buyer,
                status=status,
                payment_method=payment_method,
                subtotal=subtotal,
                total=subtotal,
                email=customer.get("email") or getattr(buyer, "email", "") or "",
                customer_name=customer.get("name") or (buyer.get_full_name() if buyer else ""),
                customer_phone=customer.get("phone") or getattr(buyer, "phone", "") or "",
                shipping_address=shipping.get("address", ""),
                shipping_city=shipping.get("city", ""),
                shipping_postal_code=shipping.get("postal_code", ""),
                shipping_country=shipping.get("country", ""),
                notes=notes or "",
                paid_at=timezone.now() if status == OrderStatus.PAID else None,
            )
            order.number = _order_number(order.id)
            order.save(update_fields=["number"])
            for line in lines:
                OrderItem.objects.create(
                    order=order,
                    product=line.product,
                    variant=line.variant,
                    product_title=line.product.title,
                    variant_sku=line.variant.sku,
                    variant_name=line.variant_name,
                    variant_value=line.variant_value,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                record_sale_movement(
                    variant_id=line.variant.id,
                    quantity=line.quantity,
                    order_id=order.id,
                    created_by=created_by or buyer,
                )
    except CommerceError:
        raise
    except DatabaseError as exc:
        logger.exception("order.place_failed", extra={"event": "order.place_failed"})
        raise TransactionAborted("Checkout failed; nothing was charged or reserved.") from exc

    logger.info(
        "order.placed",
        extra={
            "event": "order.placed",
            "order_id": order.id,
            "number": order.number,
            "user_id": order.user_id,
            "status": order.status,
            "payment_method": payment_method,
            "lines": len(lines),
            "total": str(order.total),
        },
    )
    return order


def _announce_order(order_id: int) -> None:
    from notifications.services import notify

    order = Order.objects.prefetch_related("items").get(id=order_id)
    notify(
        user_id=order.user_id,
        type=NotificationType.ORDER_PLACED,
        title=f"Order {order.number} placed",
        message=f"Order {order.number} for {order.total} ({order.payment_method}) is {order.status}.",
        priority=NotificationPriority.NORMAL,
        related_entity="order",
        related_entity_id=order.id,
    )
    try:
        send_order_confirmation_email(order)
    except Exception:
        logger.exception("order.email_failed", extra={"event": "order.email_failed", "order_id": order.id})


def _clear_checked_out_lines(cart_id: int, item_ids: list[int]) -> None:
    # Only the lines that were ordered; items added meanwhile stay.
    deleted, _ = CartItem.objects.filter(cart_id=cart_id, id__in=item_ids).delete()
    logger.info("cart.cleared", extra={"event": "cart.cleared", "cart_id": cart_id, "items": deleted})


def checkout(
    *,
    cart: Cart,
    payment_method: str,
    customer: Optional[dict] = None,
    shipping: Optional[dict] = None,
    notes: str = "",
    created_by=None,
) -> Order:
    """Turn the cart into an order.

    Raises ``EmptyCart`` before touching the database for writes,
    ``InsufficientStock`` when any line cannot be fulfilled (no order is
    created), and ``TransactionAborted`` for storage failures inside the
    atomic block.
    """

    items = list(cart_items(cart=cart))
    if not items:
        raise EmptyCart()

    lines = validate_lines((item.variant_id, item.quantity, item.variant_name, item.variant_value) for item in items)
    with transaction.atomic():
        order = _place_order(
            lines=lines,
            payment_method=payment_method,
            user=cart.user,
            customer=customer,
            shipping=shipping,
            notes=notes,
            created_by=created_by,
        )
        item_ids = [item.id for item in items]
        transaction.on_commit(lambda: _clear_checked_out_lines(cart.id, item_ids), robust=True)
        transaction.on_commit(lambda: _announce_order(order.id), robust=True)
    return order


def create_order(
    *,
    lines: Iterable[dict],
    payment_method: str,
    user=None,
    customer: Optional[dict] = None,
    shipping: Optional[dict] = None,
    notes: str = "",
    created_by=None,
) -> Order:
    """Place an order from explicit ``{"variant_id", "quantity"}`` lines (point of sale)."""

    requested = [(int(line["variant_id"]), line.get("quantity", 1), "", "") for line in lines]
    if not requested:
        raise EmptyCart("An order needs at least one line.")
    checked = validate_lines(requested)
    with transaction.atomic():
        order = _place_order(
            lines=checked,
            payment_method=payment_method,
            user=user,
            customer=customer,
            shipping=shipping,
            notes=notes,
            created_by=created_by,
        )
        transaction.on_commit(lambda: _announce_order(order.id), robust=True)
    return order


def _lock_order(order_id: int) -> Order:
    try:
        return Order.objects.select_for_update().get(id=order_id)
    except Order.DoesNotExist:
        raise NotFound(f"Order {order_id} not found.")


def _announce_status(order_id: int) -> None:
    from notifications.services import notify

    order = Order.objects.get(id=order_id)
    if order.user_id:
        notify(
            user_id=order.user_id,
            type=NotificationType.ORDER_STATUS,
            title=f"Order {order.number} is {order.get_status_display().lower()}",
            message=order.cancel_reason or f"Your order {order.number} is now {order.status}.",
            related_entity="order",
            related_entity_id=order.id,
        )
    try:
        send_order_status_email(order)
    except Exception:
        logger.exception("order.email_failed", extra={"event": "order.email_failed", "order_id": order.id})


def _log_transition(order: Order, previous: str, actor=None) -> None:
    logger.info(
        "order_status_changed",
        extra={
            "event": "order_status_changed",
            "order_id": order.id,
            "user_id": order.user_id,
            "status_from": previous,
            "status_to": order.status,
            "actor_id": getattr(actor, "pk", None),
        },
    )


@transaction.atomic
def cancel_order(*, order_id: int, reason: str = "", actor=None) -> Order:
    """Cancel a non-terminal order and put its stock back.

    One RETURN movement per line references the order; the original SALE
    rows are left as they are.
    """

    order = _lock_order(order_id)
    if not order.can_transition_to(OrderStatus.CANCELLED):
        raise InvalidTransition(f"Order {order.number} is {order.status} and cannot be cancelled.")

    for item in order.items.all():
        if item.variant_id is None:
            logger.warning(
                "order.restock_skipped",
                extra={"event": "order.restock_skipped", "order_id": order.id, "sku": item.variant_sku},
            )
            continue
        record_return_movement(
            variant_id=item.variant_id,
            quantity=item.quantity,
            order_id=order.id,
            reason=f"Order {order.number} cancelled",
            created_by=actor,
        )

    previous = order.status
    order.status = OrderStatus.CANCELLED
    order.cancelled_at = timezone.now()
    order.cancel_reason = reason or ""
    order.save(update_fields=["status", "cancelled_at", "cancel_reason", "updated_at"])
    _log_transition(order, previous, actor)
    transaction.on_commit(lambda: _announce_status(order.id), robust=True)
    return order


@transaction.atomic
def update_order_status(*, order_id: int, status: str, actor=None, reason: str = "") -> Order:
    """Move an order along PENDING, PAID, SHIPPED, FULFILLED.

    CANCELLED goes through ``cancel_order`` so stock is restored.
    """

    if status == OrderStatus.CANCELLED:
        return cancel_order(order_id=order_id, reason=reason, actor=actor)
    order = _lock_order(order_id)
    if not order.can_transition_to(status):
        raise InvalidTransition(f"Cannot move order {order.number} from {order.status} to {status}.")

    previous = order.status
    order.status = status
    fields = ["status", "updated_at"]
    if status == OrderStatus.PAID:
        order.paid_at = timezone.now()
        fields.append("paid_at")
    order.save(update_fields=fields)
    _log_transition(order, previous, actor)
    transaction.on_commit(lambda: _announce_status(order.id), robust=True)
    return order


def _announce_payment_failure(order_id: int, reference: str) -> None:
    from notifications.services import notify_admins

    order = Order.objects.get(id=order_id)
    ref = f" {reference}" if reference else ""
    notify_admins(
        type=NotificationType.PAYMENT_FAILED,
        title=f"Payment failed for {order.number}",
        message=f"Payment{ref} for order {order.number} ({order.total}) failed; order cancelled.",
        priority=NotificationPriority.HIGH,
        related_entity="order",
        related_entity_id=order.id,
    )


@transaction.atomic
def record_payment_result(*, order_id: int, succeeded: bool, reference: str = "") -> Order:
    """Apply a payment provider callback.

    Success marks a pending order paid; repeats for an already-paid order
    are ignored. Failure cancels the order (restocking it) and alerts
    administrators.
    """

    order = _lock_order(order_id)
    if succeeded:
        if order.status in (OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.FULFILLED):
            return order
        return update_order_status(order_id=order.id, status=OrderStatus.PAID)

    if order.status == OrderStatus.CANCELLED:
        return order
    order = cancel_order(order_id=order.id, reason="Payment failed")
    transaction.on_commit(lambda: _announce_payment_failure(order.id, reference), robust=True)
    return order


def _idempotency_ttl() -> timedelta:
    return timedelta(hours=int(getattr(settings, "ORDERS_IDEMPOTENCY_TTL_HOURS", 24)))


def _json_safe(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def with_idempotency(
    *,
    key: str,
    user,
    path: str,
    method: str,
    handler: Callable[[], Tuple[dict, int]],
    request_hash: Optional[str] = None,
) -> Tuple[dict, int]:
    """Run handler idempotently and persist its response for the given key and scope.

    - Scope is derived from the caller: for authenticated users, "user:<id>"; otherwise "anon".
    - If a record exists and the stored `request_hash` differs from the provided one, returns 409.
    - If a record exists but response is not yet stored, returns 409 to indicate in-progress.
    - If the handler raises, the record is dropped so the client can retry with the same key.
    - A key longer than the stored column raises ``InvalidIdempotencyKey`` (400).
    """

    if len(key) > IdempotencyKey.KEY_MAX_LENGTH:
        raise InvalidIdempotencyKey(f"Idempotency-Key must be at most {IdempotencyKey.KEY_MAX_LENGTH} characters.")
    user_id = getattr(user, "id", None)
    scope = f"user:{user_id}" if user_id else "anon"
    method = str(method).upper()
    path = str(path)
    now = timezone.now()

    IdempotencyKey.objects.filter(key=key, scope=scope, path=path, method=method, expires_at__lt=now).delete()
    try:
        with transaction.atomic():
            idem = IdempotencyKey.objects.create(
                key=key,
                user=user if user_id else None,
                scope=scope,
                path=path,
                method=method,
                request_hash=request_hash,
                expires_at=now + _idempotency_ttl(),
            )
    except IntegrityError:
        idem = IdempotencyKey.objects.get(key=key, scope=scope, path=path, method=method)
        if idem.request_hash and request_hash and idem.request_hash != request_hash:
            return {"detail": "Idempotency key reused with different request payload"}, 409
        if idem.response_json is not None and idem.response_code is not None:
            logger.info("idempotency.replayed", extra={"event": "idempotency.replayed", "path": path, "scope": scope})
            return idem.response_json, int(idem.response_code)
        return {"detail": "Request in progress"}, 409

    try:
        body, code = handler()
    except Exception:
        IdempotencyKey.objects.filter(id=idem.id).delete()
        raise

    IdempotencyKey.objects.filter(id=idem.id).update(response_json=_json_safe(body), response_code=code)
    return body, code


def compute_request_hash(data: Optional[dict]) -> Optional[str]:
    """Compute a canonical SHA256 hash of the request body.

    Uses sorted keys JSON representation to stabilize the hash across equivalent payloads.
    Returns None when data is falsy.
    """
    if not data:
        return None
    try:
        payload = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return None
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def purge_expired_idempotency_keys(*, now=None) -> int:
    deleted, _ = IdempotencyKey.objects.filter(expires_at__lt=now or timezone.now()).delete()
    return deleted
