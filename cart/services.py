"""Cart services: identity resolution and line mutations.

Stock checks here are advisory (the cart never holds stock); the ledger
re-checks under lock at checkout.
"""

import logging
from datetime import timedelta
from typing import Optional

from catalog.models import Product, ProductVariant
from catalog.selectors import get_product, has_variants
from common.exceptions import InsufficientStock, InvalidQuantity, NotFound, VariantRequired
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .models import Cart, CartItem
from .selectors import find_cart

logger = logging.getLogger("hera.cart")


def _identity(cart: Cart) -> dict:
    return {"cart_id": cart.id, "user_id": cart.user_id, "guest": cart.is_guest}


def _touch(cart: Cart) -> None:
    Cart.objects.filter(id=cart.id).update(updated_at=timezone.now())


def get_or_create_cart(*, user=None, session_id: Optional[str] = None) -> Cart:
    """Return the cart for exactly one identity, creating it on first access.

    Two first requests for the same identity may both try to create the
    cart; the loser hits the unique constraint and re-reads the winner's row.
    """

    if (user is None) == (not session_id):
        raise ValueError("Provide exactly one of user or session_id.")
    cart = find_cart(user=user, session_id=session_id)
    if cart is not None:
        return cart

    lookup = {"user": user} if user is not None else {"session_id": session_id}
    try:
        with transaction.atomic():
            cart = Cart.objects.create(**lookup)
    except IntegrityError:
        cart = Cart.objects.get(**lookup)
        logger.info("cart.create_conflict", extra={"event": "cart.create_conflict", **_identity(cart)})
    else:
        logger.info("cart.created", extra={"event": "cart.created", **_identity(cart)})
    return cart


def _check_quantity(quantity) -> int:
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise InvalidQuantity()
    if quantity < 1:
        raise InvalidQuantity()
    return quantity


def _resolve_variant(product: Product, variant_id: Optional[int]) -> ProductVariant:
    if variant_id is None:
        if has_variants(product):
            raise VariantRequired(f'Choose an option for "{product.title}".')
        raise VariantRequired(f'"{product.title}" has no purchasable options.')
    variant = next((v for v in product.variants.all() if v.id == int(variant_id)), None)
    if variant is None:
        raise NotFound(f"Variant {variant_id} is not available for product {product.id}.")
    return variant


def _ensure_stock(variant: ProductVariant, product: Product, requested: int) -> None:
    if int(variant.stock) < requested:
        raise InsufficientStock(
            product_id=product.id,
            variant_id=variant.id,
            available=int(variant.stock),
            requested=requested,
            title=product.title,
            sku=variant.sku,
        )


@transaction.atomic
def add_item(*, cart: Cart, product_id: int, variant_id: Optional[int] = None, quantity: int) -> CartItem:
    """Add a line, or increment the existing (product, variant) line.

    The stock check covers the combined quantity of the line.
    """

    quantity = _check_quantity(quantity)
    product = get_product(product_id)
    if not product.is_published:
        raise NotFound(f"Product {product_id} not found.")
    variant = _resolve_variant(product, variant_id)

    item = CartItem.objects.select_for_update().filter(cart=cart, product=product, variant=variant).first()
    existing = int(item.quantity) if item else 0
    _ensure_stock(variant, product, existing + quantity)

    if item is None:
        try:
            with transaction.atomic():
                item = CartItem.objects.create(
                    cart=cart,
                    product=product,
                    variant=variant,
                    quantity=quantity,
                    variant_name=variant.name,
                    variant_value=variant.value,
                )
        except IntegrityError:
            # A concurrent add created the line first; fold into it.
            item = CartItem.objects.select_for_update().get(cart=cart, product=product, variant=variant)
            _ensure_stock(variant, product, int(item.quantity) + quantity)
            CartItem.objects.filter(id=item.id).update(quantity=F("quantity") + quantity)
            item.refresh_from_db()
        event = "cart.item_added"
    else:
        item.quantity = existing + quantity
        item.save(update_fields=["quantity", "updated_at"])
        event = "cart.item_updated"

    _touch(cart)
    logger.info(
        event,
        extra={"event": event, **_identity(cart), "variant_id": variant.id, "quantity": int(item.quantity)},
    )
    return item


def _get_item(cart: Cart, item_id: int) -> CartItem:
    try:
        return CartItem.objects.select_for_update().select_related("product", "variant").get(id=item_id, cart=cart)
    except CartItem.DoesNotExist:
        raise NotFound("Cart item not found.")


@transaction.atomic
def update_item_quantity(*, cart: Cart, item_id: int, quantity: int) -> Optional[CartItem]:
    """Set a line's quantity. Zero or less removes the line and returns None."""

    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise InvalidQuantity()
    item = _get_item(cart, item_id)
    if quantity <= 0:
        item.delete()
        logger.info(
            "cart.item_removed",
            extra={"event": "cart.item_removed", **_identity(cart), "item_id": item_id},
        )
        return None
    if quantity > item.quantity:
        if not item.product.is_published or not item.variant.is_active:
            raise NotFound(f"Product {item.product_id} is no longer available.")
        _ensure_stock(item.variant, item.product, quantity)
    item.quantity = quantity
    item.save(update_fields=["quantity", "updated_at"])
    _touch(cart)
    logger.info(
        "cart.item_updated",
        extra={"event": "cart.item_updated", **_identity(cart), "variant_id": item.variant_id, "quantity": quantity},
    )
    return item


@transaction.atomic
def remove_item(*, cart: Cart, item_id: int) -> None:
    item = _get_item(cart, item_id)
    item.delete()
    logger.info("cart.item_removed", extra={"event": "cart.item_removed", **_identity(cart), "item_id": item_id})


@transaction.atomic
def clear_cart(*, cart: Cart) -> int:
    """Delete every line; the cart row itself stays."""

    deleted, _ = CartItem.objects.filter(cart=cart).delete()
    logger.info("cart.cleared", extra={"event": "cart.cleared", **_identity(cart), "items": deleted})
    return deleted


@transaction.atomic
def merge_guest_cart(*, session_id: str, user) -> Cart:
    """Move a guest cart's lines into the user's cart, then drop the guest cart.

    Quantities of matching lines are summed and capped at live stock; lines
    whose product or variant is no longer available are discarded.
    """

    dest = get_or_create_cart(user=user)
    src = find_cart(session_id=session_id)
    if src is None:
        return dest

    moved = 0
    for line in CartItem.objects.select_related("product", "variant").filter(cart=src):
        variant = line.variant
        if not line.product.is_published or not variant.is_active or variant.stock <= 0:
            continue
        item = CartItem.objects.select_for_update().filter(cart=dest, product=line.product, variant=variant).first()
        combined = min(int(line.quantity) + (int(item.quantity) if item else 0), int(variant.stock))
        if item is None:
            CartItem.objects.create(
                cart=dest,
                product=line.product,
                variant=variant,
                quantity=combined,
                variant_name=line.variant_name,
                variant_value=line.variant_value,
            )
        else:
            item.quantity = combined
            item.save(update_fields=["quantity", "updated_at"])
        moved += 1

    src_id = src.id
    src.delete()
    logger.info(
        "cart.merged",
        extra={"event": "cart.merged", "src_cart_id": src_id, "dest_cart_id": dest.id, "user_id": user.id, "lines": moved},
    )
    return dest


def purge_stale_guest_carts(*, older_than_days: Optional[int] = None, now=None) -> int:
    """Delete guest carts (and their lines) untouched for the TTL."""

    days = older_than_days if older_than_days is not None else int(getattr(settings, "CART_GUEST_TTL_DAYS", 30))
    cutoff = (now or timezone.now()) - timedelta(days=days)
    stale = Cart.objects.filter(user__isnull=True, updated_at__lt=cutoff)
    count = stale.count()
    stale.delete()
    logger.info("cart.guest_purged", extra={"event": "cart.guest_purged", "carts": count, "days": days})
    return count
