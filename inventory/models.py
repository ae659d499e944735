"""Inventory models: the stock ledger, per-variant alerts and stock takes.

A variant's current stock lives on ``catalog.ProductVariant.stock``; every
change to it is explained by exactly one ``StockMovement`` row.
"""

from common.choices import MovementType, StockTakeStatus
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class LedgerImmutable(Exception):
    """Raised when code tries to edit or delete a recorded movement."""


class StockMovement(models.Model):
    """Append-only, signed stock delta for a variant."""

    TYPE_ADDITION = MovementType.ADDITION
    TYPE_SALE = MovementType.SALE
    TYPE_RETURN = MovementType.RETURN
    TYPE_DAMAGE = MovementType.DAMAGE
    TYPE_ADJUSTMENT = MovementType.ADJUSTMENT
    TYPE_CORRECTION = MovementType.CORRECTION
    TYPE_CHOICES = MovementType.choices

    REFERENCE_ORDER = "order"
    REFERENCE_STOCK_TAKE = "stock_take"

    # Rows outlive the variant as an audit trail
    variant = models.ForeignKey(
        "catalog.ProductVariant", null=True, on_delete=models.SET_NULL, related_name="stock_movements"
    )
    sku = models.CharField(max_length=64)
    movement_type = models.CharField(max_length=16, choices=TYPE_CHOICES, db_index=True)
    quantity = models.IntegerField()  # signed
    previous_stock = models.IntegerField()
    new_stock = models.IntegerField()
    reference_type = models.CharField(max_length=32, blank=True)
    reference_id = models.BigIntegerField(null=True, blank=True)
    reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(name="movement_non_zero", condition=~models.Q(quantity=0)),
            models.CheckConstraint(
                name="movement_balances",
                condition=models.Q(new_stock=models.F("previous_stock") + models.F("quantity")),
            ),
            models.CheckConstraint(name="movement_new_stock_non_negative", condition=models.Q(new_stock__gte=0)),
        ]
        indexes = [
            models.Index(fields=["variant", "created_at"], name="movement_variant_created_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="movement_reference_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.movement_type} {self.quantity:+d} {self.sku} ({self.previous_stock}->{self.new_stock})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LedgerImmutable("Stock movements cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LedgerImmutable("Stock movements cannot be deleted.")


class StockAlert(TimeStampedModel):
    """Low-stock watch for one variant.

    ``notified_at`` is set while an announced breach lasts and cleared when
    stock recovers above the threshold. ``is_resolved`` false with
    ``notified_at`` set means nobody has resolved the breach yet.
    """

    variant = models.OneToOneField("catalog.ProductVariant", on_delete=models.CASCADE, related_name="stock_alert")
    threshold = models.PositiveIntegerField()
    is_active = models.BooleanField(default=True)
    notified_at = models.DateTimeField(null=True, blank=True)
    is_resolved = models.BooleanField(default=False)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )

    class Meta:
        ordering = ["-updated_at", "id"]
        indexes = [
            models.Index(fields=["is_active", "is_resolved"], name="stockalert_active_resolved_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"StockAlert<{self.variant_id}> threshold={self.threshold}"

    @property
    def is_breached(self) -> bool:
        return self.notified_at is not None and not self.is_resolved


class StockTake(TimeStampedModel):
    """A physical count session. Completing it can post corrections to the ledger."""

    STATUS_DRAFT = StockTakeStatus.DRAFT
    STATUS_IN_PROGRESS = StockTakeStatus.IN_PROGRESS
    STATUS_COMPLETED = StockTakeStatus.COMPLETED
    STATUS_CANCELLED = StockTakeStatus.CANCELLED
    STATUS_CHOICES = StockTakeStatus.choices

    reference = models.CharField(max_length=32, unique=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"StockTake {self.reference} ({self.status})"


class StockTakeItem(TimeStampedModel):
    stock_take = models.ForeignKey(StockTake, on_delete=models.CASCADE, related_name="items")
    variant = models.ForeignKey("catalog.ProductVariant", on_delete=models.PROTECT, related_name="+")
    expected_stock = models.IntegerField(null=True, blank=True)
    counted_stock = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["stock_take", "variant"], name="unique_variant_per_stock_take"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"StockTakeItem<{self.stock_take_id}:{self.variant_id}>"

    @property
    def variance(self):
        if self.counted_stock is None or self.expected_stock is None:
            return None
        return int(self.counted_stock) - int(self.expected_stock)


# EOF
