"""Catalog app models.

Products and their purchasable variants. A variant carries its own price
and the stock counter owned by the inventory ledger.
"""

from decimal import Decimal

from common.choices import ActiveInactive, DraftPublished
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Product(TimeStampedModel):
    """Core product entity."""

    STATUS_DRAFT = DraftPublished.DRAFT
    STATUS_PUBLISHED = DraftPublished.PUBLISHED
    STATUS_CHOICES = DraftPublished.choices

    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=220, unique=True)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)

    class Meta:
        ordering = ["title"]

    def __str__(self) -> str:  # pragma: no cover
        return self.title

    @property
    def is_published(self) -> bool:
        return self.status == self.STATUS_PUBLISHED


class ProductVariant(TimeStampedModel):
    """Variant SKU under a product (e.g., size/color).

    ``stock`` is only written by ``inventory.services``; every change there
    appends a StockMovement row.
    """

    STATUS_ACTIVE = ActiveInactive.ACTIVE
    STATUS_INACTIVE = ActiveInactive.INACTIVE
    STATUS_CHOICES = ActiveInactive.choices

    product = models.ForeignKey(Product, related_name="variants", on_delete=models.CASCADE)
    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=64, blank=True, help_text="Option name, e.g. Size")
    value = models.CharField(max_length=64, blank=True, help_text="Option value, e.g. XL")
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    stock = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE)

    class Meta:
        ordering = ["sku"]
        constraints = [
            models.CheckConstraint(name="variant_price_non_negative", condition=models.Q(price__gte=0)),
            models.CheckConstraint(name="variant_stock_non_negative", condition=models.Q(stock__gte=0)),
        ]
        indexes = [
            models.Index(fields=["product", "status"], name="variant_product_status_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.product.title} [{self.sku}]"

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE


# EOF
