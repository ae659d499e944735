"""Orders API endpoints.

Buyers list, view and cancel their own orders. Administrators move orders
through the status machine and ring up point-of-sale orders. The payment
provider reports results through the webhook.
"""

import hmac

from common.permissions import IsStoreAdmin
from django.conf import settings
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics, status
from rest_framework import serializers as rf_serializers
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import selectors
from .models import Order
from .serializers import (
    AdminOrderCreateSerializer,
    OrderCancelSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    PaymentWebhookSerializer,
)
from .services import (
    cancel_order,
    compute_request_hash,
    create_order,
    record_payment_result,
    update_order_status,
    with_idempotency,
)

IDEMPOTENCY_HEADER = OpenApiParameter(
    name="Idempotency-Key",
    location=OpenApiParameter.HEADER,
    required=False,
    description="Makes the request idempotent within scope+path+method",
    type=str,
)

ORDER_EXAMPLE = OpenApiExample(
    "Order",
    value={
        "id": 123,
        "number": "ORD-000123",
        "status": "pending",
        "payment_method": "card",
        "email": "user@example.com",
        "subtotal": "50.00",
        "total": "50.00",
        "created_at": "2025-01-01T12:00:00Z",
        "items": [
            {
                "id": 10,
                "product": 7,
                "variant": 555,
                "product_title": "Vintage Jacket",
                "variant_sku": "JCK-001-M",
                "variant_name": "Size",
                "variant_value": "M",
                "quantity": 2,
                "unit_price": "25.00",
                "line_total": "50.00",
            }
        ],
    },
    response_only=True,
)


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"


class OrderListView(generics.ListAPIView):
    """List authenticated user's orders with basic filters.

    Filters:
    - `status`: one of the OrderStatus values
    - `number`: exact match of order number
    - `start`: ISO date/time string; filters `created_at >= start`
    - `end`: ISO date/time string; filters `created_at <= end`
    """

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    pagination_class = DefaultPagination
    throttle_scope = "orders"

    def get_queryset(self):
        params = self.request.query_params
        return selectors.orders_for_user(
            user=self.request.user,
            status=params.get("status"),
            number=params.get("number"),
            start=params.get("start"),
            end=params.get("end"),
        )

    @extend_schema(
        tags=["Orders"],
        summary="List orders",
        description="List current user's orders with optional filters and pagination.",
        parameters=[
            OpenApiParameter(name="status", description="Order status filter", required=False, type=str),
            OpenApiParameter(name="number", description="Order number exact match", required=False, type=str),
            OpenApiParameter(name="start", description="Created at >= start (ISO)", required=False, type=str),
            OpenApiParameter(name="end", description="Created at <= end (ISO)", required=False, type=str),
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
            OpenApiParameter(name="page_size", description="Items per page", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(APIView):
    """Retrieve a single order for the authenticated user."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders"],
        summary="Get order detail",
        responses={200: OrderSerializer},
        examples=[ORDER_EXAMPLE],
    )
    def get(self, request, order_id: int):
        order = selectors.get_order(order_id=order_id, user=request.user)
        return Response(OrderSerializer(order).data)


class OrderCancelView(APIView):
    """Cancel an order for the authenticated owner.

    Stock for every line is returned to inventory. Idempotent when
    `Idempotency-Key` is provided.
    """

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Cancel order",
        description="Cancels a pending, paid or shipped order and restocks its lines.",
        parameters=[IDEMPOTENCY_HEADER],
        request=OrderCancelSerializer,
        responses={
            200: OrderSerializer,
            409: inline_serializer(
                name="OrderTransitionError",
                fields={"detail": rf_serializers.CharField(), "code": rf_serializers.CharField()},
            ),
        },
        examples=[
            OpenApiExample("Cancelled", value={"id": 1, "status": "cancelled"}, response_only=True),
            OpenApiExample(
                "Not cancellable",
                value={"detail": "Order ORD-000001 is fulfilled and cannot be cancelled.", "code": "invalid_transition"},
                response_only=True,
            ),
        ],
    )
    def post(self, request, order_id: int):
        order = selectors.get_order(order_id=order_id, user=request.user)
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        def _handler():
            updated = cancel_order(order_id=order.id, reason=serializer.validated_data["reason"], actor=request.user)
            return OrderSerializer(selectors.get_order(order_id=updated.id)).data, 200

        idem_key = request.headers.get("Idempotency-Key")
        if idem_key:
            body, code = with_idempotency(
                key=idem_key,
                user=request.user,
                path=str(request.path),
                method=str(request.method),
                request_hash=compute_request_hash(getattr(request, "data", None)),
                handler=_handler,
            )
            return Response(body, status=code)

        body, code = _handler()
        return Response(body, status=code)


class AdminOrderListCreateView(generics.ListAPIView):
    """All orders for administrators; POST rings up a point-of-sale order."""

    permission_classes = [IsStoreAdmin]
    serializer_class = OrderSerializer
    pagination_class = DefaultPagination
    throttle_scope = "orders"
    filterset_fields = ["status", "payment_method"]
    search_fields = ["number", "email", "customer_name"]
    ordering_fields = ["created_at", "total"]

    def get_queryset(self):
        return Order.objects.prefetch_related("items").order_by("-id")

    @extend_schema(
        tags=["Orders Admin"],
        summary="List all orders",
        description="Filter with `status` and `payment_method`, search with `search`, sort with `ordering`.",
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(
        tags=["Orders Admin"],
        summary="Create point-of-sale order",
        request=AdminOrderCreateSerializer,
        responses={201: OrderSerializer},
        examples=[
            OpenApiExample(
                "Cash sale",
                value={"lines": [{"variant_id": 555, "quantity": 1}], "payment_method": "cash"},
                request_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = AdminOrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = create_order(
            lines=data["lines"],
            payment_method=data["payment_method"],
            customer={"name": data["customer_name"], "email": data["email"], "phone": data["phone"]},
            notes=data["notes"],
            created_by=request.user,
        )
        return Response(OrderSerializer(selectors.get_order(order_id=order.id)).data, status=status.HTTP_201_CREATED)


class AdminOrderStatusView(APIView):
    permission_classes = [IsStoreAdmin]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders Admin"],
        summary="Update order status",
        description=(
            "Moves an order along pending → paid → shipped → fulfilled. `cancelled` restocks the lines. "
            "Fulfilled and cancelled orders are final."
        ),
        request=OrderStatusUpdateSerializer,
        responses={200: OrderSerializer},
        examples=[OpenApiExample("Ship", value={"status": "shipped"}, request_only=True)],
    )
    def post(self, request, order_id: int):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = update_order_status(
            order_id=order_id,
            status=serializer.validated_data["status"],
            reason=serializer.validated_data["reason"],
            actor=request.user,
        )
        return Response(OrderSerializer(selectors.get_order(order_id=order.id)).data)


class AdminOrderStatsView(APIView):
    permission_classes = [IsStoreAdmin]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders Admin"],
        summary="Order statistics",
        examples=[
            OpenApiExample(
                "Stats",
                value={
                    "total_orders": 12,
                    "by_status": {"pending": 2, "paid": 5, "shipped": 1, "fulfilled": 3, "cancelled": 1},
                    "revenue": "1520.00",
                },
            )
        ],
    )
    def get(self, request):
        return Response(selectors.order_stats())


class OrderPaymentWebhookView(APIView):
    """Webhook endpoint for payment provider results.

    When ``ORDERS_WEBHOOK_SECRET`` is configured the request must carry it
    in ``X-Webhook-Secret``. Idempotent when `Idempotency-Key` header is
    provided.
    """

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Payment webhook",
        description=(
            "Consumes a payment provider webhook.\n"
            "`payment_succeeded` marks a pending order paid; `payment_failed` cancels it and restocks.\n"
            "Idempotent when Idempotency-Key header is provided."
        ),
        parameters=[
            IDEMPOTENCY_HEADER,
            OpenApiParameter(
                name="X-Webhook-Secret",
                location=OpenApiParameter.HEADER,
                required=False,
                description="Shared secret, required when configured",
                type=str,
            ),
        ],
        request=PaymentWebhookSerializer,
        responses={200: OrderSerializer},
        examples=[
            OpenApiExample(
                "Webhook Success",
                value={"order_id": 123, "event": "payment_succeeded", "reference": "pi_123"},
                request_only=True,
            ),
            OpenApiExample("Paid", value={"id": 123, "status": "paid"}, response_only=True),
        ],
    )
    def post(self, request):
        secret = getattr(settings, "ORDERS_WEBHOOK_SECRET", "")
        if secret and not hmac.compare_digest(request.headers.get("X-Webhook-Secret", ""), secret):
            return Response({"detail": "Invalid webhook signature."}, status=status.HTTP_403_FORBIDDEN)

        serializer = PaymentWebhookSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        def _handler():
            order = record_payment_result(
                order_id=data["order_id"], succeeded=serializer.succeeded, reference=data["reference"]
            )
            return OrderSerializer(selectors.get_order(order_id=order.id)).data, 200

        idem_key = request.headers.get("Idempotency-Key")
        if idem_key:
            body, code = with_idempotency(
                key=idem_key,
                user=None,
                path=str(request.path),
                method=str(request.method),
                request_hash=compute_request_hash(getattr(request, "data", None)),
                handler=_handler,
            )
            return Response(body, status=code)

        body, code = _handler()
        return Response(body, status=code)
