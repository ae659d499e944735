"""DRF serializers for Orders.

Orders are read-only through the API; every amount shown is the value
frozen at checkout.
"""

from common.choices import OrderStatus, PaymentMethod
from rest_framework import serializers

from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    """API representation of an order line item with computed line_total."""

    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "variant",
            "product_title",
            "variant_sku",
            "variant_name",
            "variant_value",
            "quantity",
            "unit_price",
            "line_total",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "status",
            "payment_method",
            "email",
            "customer_name",
            "customer_phone",
            "shipping_address",
            "shipping_city",
            "shipping_postal_code",
            "shipping_country",
            "notes",
            "subtotal",
            "total",
            "paid_at",
            "cancelled_at",
            "cancel_reason",
            "created_at",
            "items",
        ]
        read_only_fields = fields


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class OrderLineInputSerializer(serializers.Serializer):
    variant_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class AdminOrderCreateSerializer(serializers.Serializer):
    """Point-of-sale order: explicit lines, optional buyer details."""

    lines = OrderLineInputSerializer(many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    customer_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentWebhookSerializer(serializers.Serializer):
    SUCCESS_EVENTS = {"payment_succeeded", "payment.succeeded"}
    FAILURE_EVENTS = {"payment_failed", "payment.failed"}

    order_id = serializers.IntegerField()
    event = serializers.CharField()
    reference = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_event(self, value):
        value = str(value).lower()
        if value not in self.SUCCESS_EVENTS | self.FAILURE_EVENTS:
            raise serializers.ValidationError("Unsupported event")
        return value

    @property
    def succeeded(self) -> bool:
        return self.validated_data["event"] in self.SUCCESS_EVENTS
