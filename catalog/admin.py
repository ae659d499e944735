"""Admin registration for catalog models."""

from django.contrib import admin

from .models import Product, ProductVariant


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    fields = ("sku", "name", "value", "price", "cost_price", "stock", "status")
    # Stock changes go through the inventory ledger
    readonly_fields = ("stock",)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("title", "slug", "status")
    search_fields = ("title", "slug")
    list_filter = ("status",)
    prepopulated_fields = {"slug": ("title",)}
    inlines = [ProductVariantInline]


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ("product", "sku", "status", "price", "stock")
    search_fields = ("sku",)
    list_filter = ("status",)
    readonly_fields = ("stock",)
