"""Admin registrations for inventory app.

Movements are read-only here: the ledger is only written through
``inventory.services``.
"""

from django.contrib import admin

from .models import StockAlert, StockMovement, StockTake, StockTakeItem


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ("id", "sku", "movement_type", "quantity", "previous_stock", "new_stock", "reference_type", "reference_id", "created_at")
    list_filter = ("movement_type", "reference_type")
    search_fields = ("sku", "reason")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockAlert)
class StockAlertAdmin(admin.ModelAdmin):
    list_display = ("id", "variant", "threshold", "is_active", "notified_at", "is_resolved", "resolved_at")
    list_filter = ("is_active", "is_resolved")
    search_fields = ("variant__sku",)
    readonly_fields = ("notified_at", "is_resolved", "resolved_at", "resolved_by")


class StockTakeItemInline(admin.TabularInline):
    model = StockTakeItem
    extra = 0
    readonly_fields = ("expected_stock",)


@admin.register(StockTake)
class StockTakeAdmin(admin.ModelAdmin):
    list_display = ("reference", "status", "started_at", "completed_at", "created_at")
    list_filter = ("status",)
    search_fields = ("reference",)
    inlines = [StockTakeItemInline]


# EOF
