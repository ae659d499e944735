"""Seed a small catalog for development.

Creates a few products with variants and books opening stock through the
inventory ledger. Re-running is idempotent; existing items are reused by
slug/sku and stock is only seeded for new variants.
"""

from decimal import Decimal

from catalog.models import Product, ProductVariant
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify
from inventory.services import add_stock

PRODUCTS = [
    {
        "title": "Linen Shirt",
        "description": "Breathable linen shirt with a relaxed fit.",
        "variants": [
            ("LS-S", "Size", "S", "49.99", 12),
            ("LS-M", "Size", "M", "49.99", 20),
            ("LS-L", "Size", "L", "49.99", 4),
        ],
    },
    {
        "title": "Denim Jacket",
        "description": "Vintage wash denim jacket.",
        "variants": [("DJ-BLU", "Colour", "Blue", "89.00", 6), ("DJ-BLK", "Colour", "Black", "92.00", 0)],
    },
    {
        "title": "Canvas Tote",
        "description": "Heavy canvas tote bag.",
        "variants": [("CT-ONE", "Size", "One size", "15.00", 50)],
    },
]


class Command(BaseCommand):
    help = "Seed products, variants and opening stock"

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding catalog data...")
        created_variants = 0
        for entry in PRODUCTS:
            product, _ = Product.objects.get_or_create(
                slug=slugify(entry["title"]),
                defaults={
                    "title": entry["title"],
                    "description": entry["description"],
                    "status": Product.STATUS_PUBLISHED,
                },
            )
            for sku, name, value, price, stock in entry["variants"]:
                variant, created = ProductVariant.objects.get_or_create(
                    sku=sku,
                    defaults={"product": product, "name": name, "value": value, "price": Decimal(price)},
                )
                if not created:
                    continue
                created_variants += 1
                if stock:
                    add_stock(variant_id=variant.id, quantity=stock, reason="Opening stock")

        self.stdout.write(self.style.SUCCESS(f"Seeded {created_variants} new variants."))
