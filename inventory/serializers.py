"""Serializers for the inventory domain.

Read serializers for movements, alerts and stock takes, plus small input
serializers for the admin mutation endpoints.
"""

from catalog.models import ProductVariant
from rest_framework import serializers

from .models import StockAlert, StockMovement, StockTake, StockTakeItem


class StockMovementSerializer(serializers.ModelSerializer):
    created_by = serializers.IntegerField(source="created_by_id", read_only=True, allow_null=True)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "variant",
            "sku",
            "movement_type",
            "quantity",
            "previous_stock",
            "new_stock",
            "reference_type",
            "reference_id",
            "reason",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class StockAlertSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source="variant.sku", read_only=True)
    product_title = serializers.CharField(source="variant.product.title", read_only=True)
    stock = serializers.IntegerField(source="variant.stock", read_only=True)

    class Meta:
        model = StockAlert
        fields = [
            "id",
            "variant",
            "sku",
            "product_title",
            "stock",
            "threshold",
            "is_active",
            "notified_at",
            "is_resolved",
            "resolved_at",
        ]
        read_only_fields = fields


class LowStockVariantSerializer(serializers.ModelSerializer):
    product_title = serializers.CharField(source="product.title", read_only=True)
    threshold = serializers.IntegerField(source="effective_threshold", read_only=True)

    class Meta:
        model = ProductVariant
        fields = ["id", "sku", "product_title", "stock", "threshold"]
        read_only_fields = fields


class StockTakeItemSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source="variant.sku", read_only=True)
    variance = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = StockTakeItem
        fields = ["id", "variant", "sku", "expected_stock", "counted_stock", "variance"]
        read_only_fields = fields


class StockTakeSerializer(serializers.ModelSerializer):
    items = StockTakeItemSerializer(many=True, read_only=True)

    class Meta:
        model = StockTake
        fields = ["id", "reference", "status", "notes", "started_at", "completed_at", "created_at", "items"]
        read_only_fields = fields


class StockChangeSerializer(serializers.Serializer):
    quantity = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BulkStockEntrySerializer(serializers.Serializer):
    variant_id = serializers.IntegerField()
    quantity = serializers.IntegerField()
    type = serializers.ChoiceField(choices=["addition", "adjustment", "damage"], required=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BulkStockUpdateSerializer(serializers.Serializer):
    updates = BulkStockEntrySerializer(many=True, allow_empty=False)


class StockAlertInputSerializer(serializers.Serializer):
    threshold = serializers.IntegerField(min_value=0)


class StockTakeCreateSerializer(serializers.Serializer):
    variant_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class StockCountSerializer(serializers.Serializer):
    counts = serializers.DictField(child=serializers.IntegerField(min_value=0), allow_empty=False)

    def validate_counts(self, value):
        try:
            return {int(k): v for k, v in value.items()}
        except (TypeError, ValueError):
            raise serializers.ValidationError("Keys must be variant ids.")


class StockTakeCompleteSerializer(serializers.Serializer):
    auto_adjust = serializers.BooleanField(required=False, default=True)


# EOF
