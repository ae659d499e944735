from decimal import Decimal

from common.choices import OrderStatus, PaymentMethod
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class OrderItemImmutable(Exception):
    """Raised when code tries to edit or delete a placed order line."""


class Order(TimeStampedModel):
    """Purchase order capturing a snapshot of a checkout.

    Totals and buyer/shipping details are copied at checkout so later catalog
    or profile edits never change a placed order.
    """

    STATUS_PENDING = OrderStatus.PENDING
    STATUS_PAID = OrderStatus.PAID
    STATUS_SHIPPED = OrderStatus.SHIPPED
    STATUS_FULFILLED = OrderStatus.FULFILLED
    STATUS_CANCELLED = OrderStatus.CANCELLED
    STATUS_CHOICES = OrderStatus.choices

    # Allowed next states; anything missing is terminal.
    TRANSITIONS = {
        OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
        OrderStatus.PAID: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
        OrderStatus.SHIPPED: {OrderStatus.FULFILLED, OrderStatus.CANCELLED},
    }

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="orders", on_delete=models.SET_NULL, null=True, blank=True
    )
    number = models.CharField(max_length=32, unique=True, null=True, blank=True, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    email = models.EmailField(blank=True)
    customer_name = models.CharField(max_length=150, blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)
    shipping_address = models.CharField(max_length=255, blank=True)
    shipping_city = models.CharField(max_length=100, blank=True)
    shipping_postal_code = models.CharField(max_length=20, blank=True)
    shipping_country = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["user", "status", "created_at"], name="order_user_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="order_total_non_negative", condition=models.Q(total__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.id} {self.number} status={self.status}"

    def can_transition_to(self, status: str) -> bool:
        return status in self.TRANSITIONS.get(self.status, set())

    @property
    def is_terminal(self) -> bool:
        return not self.TRANSITIONS.get(self.status)


class OrderItem(models.Model):
    """Line item within an order.

    Snapshots product title, SKU, option and unit price. Rows are written
    once at checkout and never changed.
    """

    order = models.ForeignKey(Order, related_name="items", on_delete=models.PROTECT)
    product = models.ForeignKey(
        "catalog.Product", related_name="order_items", on_delete=models.SET_NULL, null=True, blank=True
    )
    variant = models.ForeignKey(
        "catalog.ProductVariant", related_name="order_items", on_delete=models.SET_NULL, null=True, blank=True
    )
    product_title = models.CharField(max_length=200)
    variant_sku = models.CharField(max_length=64)
    variant_name = models.CharField(max_length=64, blank=True)
    variant_value = models.CharField(max_length=64, blank=True)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["order", "variant"], name="orderitem_order_variant_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="orderitem_price_non_negative", condition=models.Q(unit_price__gte=0)),
            models.CheckConstraint(name="orderitem_quantity_positive", condition=models.Q(quantity__gte=1)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderItem#{self.id} order={self.order_id} sku={self.variant_sku} qty={self.quantity}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise OrderItemImmutable("Order items cannot be modified once placed.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise OrderItemImmutable("Order items cannot be deleted.")

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price or Decimal("0.00")) * Decimal(int(self.quantity))


class IdempotencyKey(TimeStampedModel):
    """Stores idempotent request results to prevent duplicate processing."""

    KEY_MAX_LENGTH = 128

    key = models.CharField(max_length=KEY_MAX_LENGTH)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.CASCADE)
    scope = models.CharField(max_length=128)
    path = models.CharField(max_length=255)
    method = models.CharField(max_length=16)
    request_hash = models.CharField(max_length=64, null=True, blank=True)
    response_code = models.IntegerField(null=True, blank=True)
    response_json = models.JSONField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["key", "scope", "path", "method"], name="uniq_idem_scope_path_method"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.method} {self.path} [{self.key}]"
