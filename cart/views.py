"""DRF views for cart operations.

Authenticated routes act on the user's cart; the ``guest/`` routes act on
the cart of the session named by the ``X-Session-Id`` header. Both share
the same view classes, switched by the ``guest`` flag.
"""

from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from orders.selectors import get_order
from orders.serializers import OrderSerializer
from orders.services import checkout, compute_request_hash, with_idempotency
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.exceptions import ParseError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import AddItemSerializer, CartReadSerializer, CheckoutSerializer, UpdateItemQuantitySerializer
from .services import add_item, clear_cart, get_or_create_cart, merge_guest_cart, remove_item, update_item_quantity

SESSION_HEADER = OpenApiParameter(
    name="X-Session-Id",
    location=OpenApiParameter.HEADER,
    required=True,
    description="Guest session identifier",
    type=str,
)

CART_EXAMPLE = OpenApiExample(
    "Cart",
    value={
        "id": 1,
        "items": [
            {
                "id": 10,
                "product_id": 7,
                "product_title": "Linen Shirt",
                "variant_id": 100,
                "sku": "LS-M",
                "variant_name": "Size",
                "variant_value": "M",
                "quantity": 2,
                "unit_price": "49.99",
                "line_total": "99.98",
                "available": 12,
            }
        ],
        "item_count": 2,
        "subtotal": "99.98",
        "total": "99.98",
    },
    response_only=True,
)

CART_ERROR = inline_serializer(
    name="CartMutationError",
    fields={"detail": rf_serializers.CharField(), "code": rf_serializers.CharField()},
)


def session_id_from(request) -> str:
    session_id = (request.headers.get("X-Session-Id") or "").strip()
    if not session_id:
        raise ParseError("Missing X-Session-Id.")
    if len(session_id) > 64:
        raise ParseError("X-Session-Id is too long.")
    return session_id


class CartViewMixin:
    """Resolves the cart for the caller's identity."""

    guest = False
    permission_classes = [IsAuthenticated]

    def get_cart(self, request):
        if self.guest:
            return get_or_create_cart(session_id=session_id_from(request))
        return get_or_create_cart(user=request.user)

    def cart_response(self, cart, code=status.HTTP_200_OK):
        return Response(CartReadSerializer.from_cart(cart=cart).data, status=code)


class CartDetailView(CartViewMixin, APIView):
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Get cart",
        description="Returns the cart with items priced at the current variant price.",
        responses={200: CartReadSerializer},
        examples=[CART_EXAMPLE],
    )
    def get(self, request):
        return self.cart_response(self.get_cart(request))


class CartAddItemView(CartViewMixin, APIView):
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Add item to cart",
        description=(
            "Adds a product variant to the cart. Adding the same product and variant again increases the "
            "line quantity. Fails with 409 when the combined quantity exceeds stock."
        ),
        request=AddItemSerializer,
        responses={201: CartReadSerializer, 400: CART_ERROR, 404: CART_ERROR, 409: CART_ERROR},
        examples=[
            OpenApiExample("Add", value={"product_id": 7, "variant_id": 100, "quantity": 2}, request_only=True),
            OpenApiExample(
                "Out of stock",
                value={
                    "detail": 'Not enough stock for "Linen Shirt" (LS-M). Available: 1, Requested: 2',
                    "code": "insufficient_stock",
                    "product_id": 7,
                    "variant_id": 100,
                    "available": 1,
                    "requested": 2,
                },
                response_only=True,
            ),
        ],
    )
    def post(self, request):
        serializer = AddItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = self.get_cart(request)
        add_item(cart=cart, **serializer.validated_data)
        return self.cart_response(cart, status.HTTP_201_CREATED)


class CartItemView(CartViewMixin, APIView):
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Update cart item quantity",
        description="Sets the line quantity; zero or less removes the line. Increases re-check stock.",
        request=UpdateItemQuantitySerializer,
        responses={200: CartReadSerializer, 404: CART_ERROR, 409: CART_ERROR},
    )
    def patch(self, request, item_id: int):
        serializer = UpdateItemQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = self.get_cart(request)
        update_item_quantity(cart=cart, item_id=item_id, quantity=serializer.validated_data["quantity"])
        return self.cart_response(cart)

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Delete cart item",
        responses={204: None, 404: CART_ERROR},
    )
    def delete(self, request, item_id: int):
        remove_item(cart=self.get_cart(request), item_id=item_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CartClearView(CartViewMixin, APIView):
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Clear cart",
        description="Deletes every item; the cart itself remains.",
        request=None,
        responses={200: CartReadSerializer},
    )
    def post(self, request):
        cart = self.get_cart(request)
        clear_cart(cart=cart)
        return self.cart_response(cart)


class CartCheckoutView(CartViewMixin, APIView):
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Checkout cart",
        description=(
            "Creates an order from the cart and decrements stock in one transaction. Cash and COD orders start "
            "paid; other methods stay pending until the payment webhook reports back. The cart is emptied after "
            "the order is committed."
        ),
        parameters=[
            OpenApiParameter(
                name="Idempotency-Key",
                location=OpenApiParameter.HEADER,
                required=False,
                description="When provided, repeating the request returns the first order instead of a new one",
                type=str,
            )
        ],
        request=CheckoutSerializer,
        responses={201: OrderSerializer, 400: CART_ERROR, 409: CART_ERROR},
        examples=[
            OpenApiExample(
                "Checkout",
                value={
                    "payment_method": "cod",
                    "customer": {"name": "Ada Buyer", "email": "ada@example.com", "phone": "+254700000000"},
                    "shipping": {"address": "1 Market St", "city": "Nairobi", "postal_code": "00100", "country": "KE"},
                },
                request_only=True,
            ),
            OpenApiExample("Empty cart", value={"detail": "Cart is empty.", "code": "empty_cart"}, response_only=True),
        ],
    )
    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = self.get_cart(request)
        user = None if self.guest else request.user

        def _handler():
            order = checkout(cart=cart, created_by=user, **serializer.validated_data)
            return OrderSerializer(get_order(order_id=order.id)).data, status.HTTP_201_CREATED

        idem_key = request.headers.get("Idempotency-Key")
        if idem_key:
            body, code = with_idempotency(
                key=f"{cart.session_id}:{idem_key}" if self.guest else idem_key,
                user=user,
                path=str(request.path),
                method=str(request.method),
                request_hash=compute_request_hash(getattr(request, "data", None)),
                handler=_handler,
            )
            return Response(body, status=code)

        body, code = _handler()
        return Response(body, status=code)


class MergeGuestCartView(APIView):
    """Authenticated endpoint to merge a guest cart into the user's cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Merge guest cart into user cart",
        description="Moves the guest cart's items into the user's cart (quantities summed, capped at stock).",
        parameters=[SESSION_HEADER],
        request=None,
        responses={200: CartReadSerializer},
    )
    def post(self, request):
        cart = merge_guest_cart(session_id=session_id_from(request), user=request.user)
        return Response(CartReadSerializer.from_cart(cart=cart).data, status=status.HTTP_200_OK)


class GuestViewMixin:
    guest = True
    permission_classes = [AllowAny]


@extend_schema(parameters=[SESSION_HEADER])
class GuestCartDetailView(GuestViewMixin, CartDetailView):
    pass


@extend_schema(parameters=[SESSION_HEADER])
class GuestCartAddItemView(GuestViewMixin, CartAddItemView):
    pass


@extend_schema(parameters=[SESSION_HEADER])
class GuestCartItemView(GuestViewMixin, CartItemView):
    pass


@extend_schema(parameters=[SESSION_HEADER])
class GuestCartClearView(GuestViewMixin, CartClearView):
    pass


@extend_schema(parameters=[SESSION_HEADER])
class GuestCartCheckoutView(GuestViewMixin, CartCheckoutView):
    pass
