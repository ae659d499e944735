"""Selectors for the catalog domain.

Read-only lookups the cart and checkout use to validate lines against
live product data. Nothing here mutates.
"""

from typing import Optional

from common.exceptions import NotFound
from django.db.models import Prefetch, Q, QuerySet

from .models import Product, ProductVariant


def get_product(product_id: int) -> Product:
    """Return a product with its active variants prefetched.

    Raises ``NotFound`` when the id is unknown.
    """

    qs = Product.objects.prefetch_related(
        Prefetch("variants", queryset=ProductVariant.objects.filter(status=ProductVariant.STATUS_ACTIVE))
    )
    try:
        return qs.get(id=product_id)
    except Product.DoesNotExist:
        raise NotFound(f"Product {product_id} not found.")


def has_variants(product: Product) -> bool:
    return product.variants.exists()


def get_variant(variant_id: int) -> ProductVariant:
    try:
        return ProductVariant.objects.select_related("product").get(id=variant_id)
    except ProductVariant.DoesNotExist:
        raise NotFound(f"Variant {variant_id} not found.")


def list_products(*, search: Optional[str] = None) -> QuerySet[Product]:
    """Return published products with active variants prefetched."""

    qs = Product.objects.filter(status=Product.STATUS_PUBLISHED).prefetch_related(
        Prefetch("variants", queryset=ProductVariant.objects.filter(status=ProductVariant.STATUS_ACTIVE))
    )
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(variants__sku__iexact=search))
    return qs.order_by("title").distinct()
