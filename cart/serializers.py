"""Cart serializers for read and write operations."""

from common.choices import PaymentMethod
from rest_framework import serializers

from .selectors import cart_items, cart_totals


class CartItemReadSerializer(serializers.Serializer):
    """Read serializer for a cart line priced from the live variant."""

    id = serializers.IntegerField()
    product_id = serializers.IntegerField()
    product_title = serializers.CharField(source="product.title")
    variant_id = serializers.IntegerField()
    sku = serializers.CharField(source="variant.sku")
    variant_name = serializers.CharField()
    variant_value = serializers.CharField()
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2)
    available = serializers.IntegerField(source="variant.stock")


class CartReadSerializer(serializers.Serializer):
    """Read serializer for the cart summary and items."""

    id = serializers.IntegerField()
    items = CartItemReadSerializer(many=True)
    item_count = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)

    @classmethod
    def from_cart(cls, *, cart):
        totals = cart_totals(cart=cart)
        return cls(
            {
                "id": cart.id,
                "items": list(cart_items(cart=cart)),
                "item_count": totals["item_count"],
                "subtotal": totals["subtotal"],
                "total": totals["total"],
            }
        )


class AddItemSerializer(serializers.Serializer):
    """Write serializer for adding a line to the cart."""

    product_id = serializers.IntegerField()
    variant_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    quantity = serializers.IntegerField(min_value=1, default=1)


class UpdateItemQuantitySerializer(serializers.Serializer):
    """Quantity of zero or less removes the line."""

    quantity = serializers.IntegerField()


class CustomerInfoSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")


class ShippingInfoSerializer(serializers.Serializer):
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    city = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    postal_code = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    country = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")


class CheckoutSerializer(serializers.Serializer):
    """Checkout input: payment method plus optional customer and shipping snapshots."""

    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    customer = CustomerInfoSerializer(required=False, default=dict)
    shipping = ShippingInfoSerializer(required=False, default=dict)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
