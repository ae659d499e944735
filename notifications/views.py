"""Notification inbox endpoints for the authenticated user."""

from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics, status
from rest_framework import serializers as rf_serializers
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .selectors import list_notifications, unread_count
from .serializers import MarkReadSerializer, NotificationSerializer
from .services import delete_notification, mark_all_as_read, mark_as_read


class NotificationPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"

    def get_paginated_response(self, data):
        response = super().get_paginated_response(data)
        response.data["unread_count"] = unread_count(user=self.request.user)
        return response


class NotificationListView(generics.ListAPIView):
    """List the caller's live notifications, newest first, with the unread count."""

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer
    pagination_class = NotificationPagination
    throttle_scope = "notifications"

    def get_queryset(self):
        unread_only = self.request.query_params.get("unread") in {"1", "true", "yes"}
        return list_notifications(
            user=self.request.user,
            unread_only=unread_only,
            type=self.request.query_params.get("type"),
        )

    @extend_schema(
        tags=["Notifications"],
        summary="List notifications",
        parameters=[
            OpenApiParameter(name="unread", description="Only unread when true", required=False, type=bool),
            OpenApiParameter(name="type", description="Notification type filter", required=False, type=str),
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
        ],
        examples=[
            OpenApiExample(
                "Inbox",
                value={
                    "count": 1,
                    "next": None,
                    "previous": None,
                    "unread_count": 1,
                    "results": [
                        {
                            "id": 4,
                            "type": "order_placed",
                            "title": "Order ORD-000012 placed",
                            "message": "We received your order.",
                            "priority": "normal",
                            "is_read": False,
                            "read_at": None,
                            "related_entity": "order",
                            "related_entity_id": "12",
                            "expires_at": "2025-02-01T12:00:00Z",
                            "created_at": "2025-01-01T12:00:00Z",
                        }
                    ],
                },
                response_only=True,
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class NotificationMarkReadView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "notifications"

    @extend_schema(
        tags=["Notifications"],
        summary="Mark notifications as read",
        request=MarkReadSerializer,
        responses={200: inline_serializer(name="MarkedRead", fields={"updated": rf_serializers.IntegerField()})},
        examples=[OpenApiExample("Mark", value={"ids": [4, 5]}, request_only=True)],
    )
    def post(self, request):
        serializer = MarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = mark_as_read(user=request.user, notification_ids=serializer.validated_data["ids"])
        return Response({"updated": updated}, status=status.HTTP_200_OK)


class NotificationMarkAllReadView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "notifications"

    @extend_schema(
        tags=["Notifications"],
        summary="Mark all notifications as read",
        request=None,
        responses={200: inline_serializer(name="MarkedAllRead", fields={"updated": rf_serializers.IntegerField()})},
    )
    def post(self, request):
        return Response({"updated": mark_all_as_read(user=request.user)}, status=status.HTTP_200_OK)


class NotificationDeleteView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "notifications"

    @extend_schema(tags=["Notifications"], summary="Delete notification", responses={204: None})
    def delete(self, request, notification_id: int):
        delete_notification(user=request.user, notification_id=notification_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
