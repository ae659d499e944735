"""Inventory admin endpoints: ledger, stock changes, alerts and stock takes.

All routes require an administrator. Domain errors (insufficient stock,
unknown variant, bad transitions) are rendered by the project exception
handler as ``{"detail", "code"}`` bodies.
"""

from common.choices import MovementType
from common.permissions import IsStoreAdmin
from django_filters import rest_framework as filters
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics, status
from rest_framework import serializers as rf_serializers
from rest_framework.response import Response
from rest_framework.views import APIView

from . import selectors
from .alerts import disable_stock_alert, resolve_stock_alert, set_stock_alert
from .models import StockMovement, StockTake
from .serializers import (
    BulkStockUpdateSerializer,
    LowStockVariantSerializer,
    StockAlertInputSerializer,
    StockAlertSerializer,
    StockChangeSerializer,
    StockCountSerializer,
    StockMovementSerializer,
    StockTakeCompleteSerializer,
    StockTakeCreateSerializer,
    StockTakeSerializer,
)
from .services import add_stock, adjust_stock, bulk_stock_update, record_damage_movement
from .stocktakes import cancel_stock_take, complete_stock_take, create_stock_take, record_count, start_stock_take


class InventoryAdminMixin:
    permission_classes = [IsStoreAdmin]
    throttle_scope = "inventory"


class MovementFilterSet(filters.FilterSet):
    variant_id = filters.NumberFilter(field_name="variant_id")
    movement_type = filters.ChoiceFilter(choices=MovementType.choices)
    reference_type = filters.CharFilter()
    reference_id = filters.NumberFilter()
    created_after = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = StockMovement
        fields = ["variant_id", "movement_type", "reference_type", "reference_id"]


class MovementListView(InventoryAdminMixin, generics.ListAPIView):
    serializer_class = StockMovementSerializer
    filterset_class = MovementFilterSet

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock movements",
        description=(
            "Ledger rows, newest first. Filters: variant_id, movement_type, reference_type, reference_id, "
            "created_after, created_before (ISO)."
        ),
        examples=[
            OpenApiExample(
                "Sale movement",
                value={
                    "id": 31,
                    "variant": 7,
                    "sku": "LD-M",
                    "movement_type": "sale",
                    "quantity": -5,
                    "previous_stock": 10,
                    "new_stock": 5,
                    "reference_type": "order",
                    "reference_id": 12,
                    "reason": "Sale",
                    "created_by": 3,
                    "created_at": "2025-01-01T12:00:00Z",
                },
                response_only=True,
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return selectors.movement_history()


class _StockChangeView(InventoryAdminMixin, APIView):
    throttle_scope = "inventory_write"
    stock_operation = None

    def post(self, request, variant_id: int):
        serializer = StockChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        movement = self.stock_operation(
            variant_id=variant_id,
            quantity=serializer.validated_data["quantity"],
            reason=serializer.validated_data["reason"],
            created_by=request.user,
        )
        return Response(StockMovementSerializer(movement).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=["Inventory Endpoints"],
    summary="Add stock",
    description="Records an ADDITION. Quantity must be positive.",
    request=StockChangeSerializer,
    responses={201: StockMovementSerializer},
)
class StockAddView(_StockChangeView):
    stock_operation = staticmethod(add_stock)


@extend_schema(
    tags=["Inventory Endpoints"],
    summary="Adjust stock",
    description="Signed adjustment: positive records ADJUSTMENT, negative records CORRECTION.",
    request=StockChangeSerializer,
    responses={201: StockMovementSerializer},
)
class StockAdjustView(_StockChangeView):
    stock_operation = staticmethod(adjust_stock)


@extend_schema(
    tags=["Inventory Endpoints"],
    summary="Record damaged stock",
    description="Records a DAMAGE movement removing the given positive quantity.",
    request=StockChangeSerializer,
    responses={201: StockMovementSerializer},
)
class StockDamageView(_StockChangeView):
    stock_operation = staticmethod(record_damage_movement)


class BulkStockUpdateView(InventoryAdminMixin, APIView):
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Bulk stock update",
        description="Applies each entry in its own transaction and reports per-entry results and errors.",
        request=BulkStockUpdateSerializer,
        examples=[
            OpenApiExample(
                "Bulk",
                value={"updates": [{"variant_id": 7, "quantity": 20}, {"variant_id": 8, "quantity": -2}]},
                request_only=True,
            ),
            OpenApiExample(
                "Partial failure",
                value={
                    "results": [{"index": 0, "variant_id": 7, "movement_id": 40}],
                    "errors": [
                        {"index": 1, "variant_id": 8, "error": 'Not enough stock for "Tee" (T-S). Available: 1, Requested: 2'}
                    ],
                },
                response_only=True,
            ),
        ],
    )
    def post(self, request):
        serializer = BulkStockUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = bulk_stock_update(updates=serializer.validated_data["updates"], created_by=request.user)
        code = status.HTTP_200_OK if not result["errors"] else status.HTTP_207_MULTI_STATUS
        return Response(result, status=code)


class LedgerCheckView(InventoryAdminMixin, APIView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Verify ledger for a variant",
        responses={
            200: inline_serializer(
                name="LedgerCheck",
                fields={
                    "variant_id": rf_serializers.IntegerField(),
                    "stock": rf_serializers.IntegerField(),
                    "ledger": rf_serializers.IntegerField(),
                    "ok": rf_serializers.BooleanField(),
                },
            )
        },
    )
    def get(self, request, variant_id: int):
        from catalog.selectors import get_variant

        get_variant(variant_id)
        return Response(selectors.verify_ledger(variant_id=variant_id))


class StockAlertView(InventoryAdminMixin, APIView):
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Set stock alert",
        description="Creates or replaces the variant's alert threshold and evaluates it immediately.",
        request=StockAlertInputSerializer,
        responses={200: StockAlertSerializer},
    )
    def put(self, request, variant_id: int):
        serializer = StockAlertInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        alert = set_stock_alert(variant_id=variant_id, threshold=serializer.validated_data["threshold"])
        return Response(StockAlertSerializer(alert).data)

    @extend_schema(tags=["Inventory Endpoints"], summary="Disable stock alert", responses={200: StockAlertSerializer})
    def delete(self, request, variant_id: int):
        alert = disable_stock_alert(variant_id=variant_id)
        return Response(StockAlertSerializer(alert).data)


class StockAlertResolveView(InventoryAdminMixin, APIView):
    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"], summary="Resolve stock alert", request=None, responses={200: StockAlertSerializer}
    )
    def post(self, request, variant_id: int):
        alert = resolve_stock_alert(variant_id=variant_id, user=request.user)
        return Response(StockAlertSerializer(alert).data)


class ActiveAlertListView(InventoryAdminMixin, generics.ListAPIView):
    serializer_class = StockAlertSerializer

    @extend_schema(tags=["Inventory Endpoints"], summary="List breached stock alerts")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return selectors.active_stock_alerts()


class AlertHistoryView(InventoryAdminMixin, generics.ListAPIView):
    serializer_class = StockAlertSerializer

    @extend_schema(tags=["Inventory Endpoints"], summary="List resolved stock alerts")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return selectors.alert_history()


class LowStockListView(InventoryAdminMixin, generics.ListAPIView):
    serializer_class = LowStockVariantSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List low-stock variants",
        description="Uses each variant's alert threshold, or the default threshold when none is set.",
        parameters=[OpenApiParameter(name="threshold", description="Override threshold", required=False, type=int)],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        raw = self.request.query_params.get("threshold")
        try:
            threshold = int(raw) if raw not in (None, "") else None
        except ValueError:
            threshold = None
        return selectors.low_stock_variants(threshold=threshold)


class AlertStatsView(InventoryAdminMixin, APIView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Stock alert statistics",
        examples=[
            OpenApiExample(
                "Stats",
                value={"configured": 12, "enabled": 10, "breached": 2, "low_stock": 5, "out_of_stock": 1},
            )
        ],
    )
    def get(self, request):
        return Response(selectors.stock_alert_stats())


class StockTakeListCreateView(InventoryAdminMixin, generics.ListAPIView):
    serializer_class = StockTakeSerializer

    def get_queryset(self):
        qs = StockTake.objects.prefetch_related("items", "items__variant").order_by("-created_at", "id")
        status_param = self.request.query_params.get("status")
        if status_param:
            qs = qs.filter(status=status_param)
        return qs

    @extend_schema(tags=["Inventory Endpoints"], summary="List stock takes")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Create stock take",
        request=StockTakeCreateSerializer,
        responses={201: StockTakeSerializer},
    )
    def post(self, request):
        serializer = StockTakeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stock_take = create_stock_take(created_by=request.user, **serializer.validated_data)
        return Response(StockTakeSerializer(stock_take).data, status=status.HTTP_201_CREATED)


class StockTakeDetailView(InventoryAdminMixin, generics.RetrieveAPIView):
    serializer_class = StockTakeSerializer
    lookup_url_kwarg = "stock_take_id"
    queryset = StockTake.objects.prefetch_related("items", "items__variant")

    @extend_schema(tags=["Inventory Endpoints"], summary="Get stock take")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class StockTakeActionView(InventoryAdminMixin, APIView):
    """POST /stock-takes/<id>/<action>/ for start, counts, complete and cancel."""

    throttle_scope = "inventory_write"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Stock take action",
        description=(
            "`start` snapshots expected stock; `counts` stores counted quantities (`{\"counts\": {\"7\": 4}}`); "
            "`complete` posts differences to the ledger when `auto_adjust` is true; `cancel` abandons the count."
        ),
        request=None,
        responses={200: StockTakeSerializer},
    )
    def post(self, request, stock_take_id: int, action: str):
        if action == "start":
            stock_take = start_stock_take(stock_take_id=stock_take_id)
        elif action == "counts":
            serializer = StockCountSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            stock_take = record_count(stock_take_id=stock_take_id, counts=serializer.validated_data["counts"])
        elif action == "complete":
            serializer = StockTakeCompleteSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            stock_take = complete_stock_take(
                stock_take_id=stock_take_id,
                auto_adjust=serializer.validated_data["auto_adjust"],
                created_by=request.user,
            )
        elif action == "cancel":
            stock_take = cancel_stock_take(stock_take_id=stock_take_id)
        else:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)
        stock_take = StockTake.objects.prefetch_related("items", "items__variant").get(id=stock_take.id)
        return Response(StockTakeSerializer(stock_take).data)


# EOF
