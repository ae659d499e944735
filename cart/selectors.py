"""Selectors for read-only cart queries."""

from decimal import Decimal
from typing import Optional

from django.db.models import F, Sum

from .models import Cart


def find_cart(*, user=None, session_id: Optional[str] = None) -> Optional[Cart]:
    """Return the cart for the identity without creating one."""

    if user is not None:
        return Cart.objects.filter(user=user).first()
    if session_id:
        return Cart.objects.filter(session_id=session_id).first()
    return None


def cart_items(*, cart: Cart):
    return cart.items.select_related("product", "variant").order_by("id")


def cart_totals(*, cart: Cart) -> dict:
    """Compute totals from the live variant price.

    Carts always reflect current pricing; the order freezes it at checkout.
    """

    agg = cart.items.aggregate(
        subtotal=Sum(F("variant__price") * F("quantity")),
        quantity=Sum("quantity"),
    )
    subtotal = agg.get("subtotal") or Decimal("0.00")
    return {
        "item_count": int(agg.get("quantity") or 0),
        "subtotal": subtotal,
        "total": subtotal,
    }
