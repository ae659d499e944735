"""Cart app models.

A cart belongs to exactly one identity: an authenticated user or an
anonymous session id. Line prices are not stored; totals always read the
live variant price until checkout freezes it on the order.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Cart(TimeStampedModel):
    """Shopping cart bound to a user or a guest session."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="carts",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
    )
    session_id = models.CharField(max_length=64, null=True, blank=True)

    class Meta:
        ordering = ["-updated_at"]
        constraints = [
            models.CheckConstraint(
                name="cart_single_identity",
                condition=(Q(user__isnull=False, session_id__isnull=True) | Q(user__isnull=True, session_id__isnull=False)),
            ),
            models.UniqueConstraint(fields=["user"], condition=Q(user__isnull=False), name="unique_cart_per_user"),
            models.UniqueConstraint(
                fields=["session_id"], condition=Q(session_id__isnull=False), name="unique_cart_per_session"
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        owner = f"user={self.user_id}" if self.user_id else f"session={self.session_id}"
        return f"Cart#{self.id} ({owner})"

    @property
    def is_guest(self) -> bool:
        return self.user_id is None


class CartItem(TimeStampedModel):
    """One (product, variant) line in a cart."""

    cart = models.ForeignKey(Cart, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="cart_items", on_delete=models.CASCADE)
    variant = models.ForeignKey("catalog.ProductVariant", related_name="cart_items", on_delete=models.CASCADE)
    quantity = models.PositiveIntegerField(default=1)
    # Option label captured when the line was added (e.g. "Size" / "M").
    variant_name = models.CharField(max_length=64, blank=True)
    variant_value = models.CharField(max_length=64, blank=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["cart", "product", "variant"], name="unique_line_per_cart"),
            models.CheckConstraint(name="cart_item_quantity_positive", condition=Q(quantity__gte=1)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"CartItem#{self.id} cart={self.cart_id} variant={self.variant_id} qty={self.quantity}"

    @property
    def unit_price(self) -> Decimal:
        return self.variant.price or Decimal("0.00")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * Decimal(int(self.quantity))
