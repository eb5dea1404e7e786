"""
Core app views — **Thin Views**.

Each view delegates all business logic to the corresponding service in
``core.services``.  Views are responsible only for:

1. Extracting and validating query parameters from the request.
2. Calling the service with the authenticated user and parameters.
3. Serialising the result and returning an HTTP ``Response``.
"""

from __future__ import annotations

from django.http import StreamingHttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.renderers import JSONRenderer
from rest_framework.request import Request
from rest_framework.response import Response

from .realtime import sse_frames
from .renderers import EventStreamRenderer
from .serializers import (
    MarkAllReadResponseSerializer,
    NotificationSerializer,
    UnreadCountSerializer,
)
from .services import NotificationInboxService


def event_stream_response(subscription) -> StreamingHttpResponse:
    """Wrap a realtime subscription in an SSE streaming response."""
    response = StreamingHttpResponse(
        sse_frames(subscription),
        content_type="text/event-stream",
    )
    response["Cache-Control"] = "no-cache"
    response["X-Accel-Buffering"] = "no"
    return response


class NotificationViewSet(viewsets.ViewSet):
    """
    **Notification API** — the authenticated user's inbox.

    Endpoints
    ---------
    GET  /api/core/notifications/               → list notifications
    GET  /api/core/notifications/unread-count/  → unread badge counter
    POST /api/core/notifications/{id}/read/     → mark one as read
    POST /api/core/notifications/{id}/click/    → mark one as clicked
    POST /api/core/notifications/read-all/      → mark every unread as read
    GET  /api/core/notifications/stream/        → server-sent events

    **Authentication**: Required (``IsAuthenticated``).
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List notifications",
        description="Return the authenticated user's notifications, newest first.",
        parameters=[
            OpenApiParameter("unread", OpenApiTypes.BOOL, description="Only unread notifications."),
        ],
        responses={200: OpenApiResponse(response=NotificationSerializer(many=True), description="Notification list.")},
        tags=["Notifications"],
    )
    def list(self, request: Request) -> Response:
        unread_only = request.query_params.get("unread", "").lower() in ("1", "true", "yes")
        service = NotificationInboxService(user=request.user)
        notifications = service.list_notifications(unread_only=unread_only)
        serializer = NotificationSerializer(notifications, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="unread-count")
    @extend_schema(
        summary="Unread notification count",
        responses={200: UnreadCountSerializer},
        tags=["Notifications"],
    )
    def unread_count(self, request: Request) -> Response:
        service = NotificationInboxService(user=request.user)
        return Response({"unread": service.unread_count()}, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="read")
    @extend_schema(
        summary="Mark notification as read",
        description="Mark a single notification as read by ID. Repeating the call changes nothing.",
        request=None,
        responses={200: OpenApiResponse(response=NotificationSerializer, description="Updated notification.")},
        tags=["Notifications"],
    )
    def mark_as_read(self, request: Request, pk: str = None) -> Response:
        """
        Mark a single notification as read.

        **POST /api/core/notifications/{id}/read/**
        """
        service = NotificationInboxService(user=request.user)
        notification = service.mark_as_read(notification_id=pk)
        return Response(NotificationSerializer(notification).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="click")
    @extend_schema(
        summary="Mark notification as clicked",
        description="Record that the notification was opened. Also marks it read.",
        request=None,
        responses={200: OpenApiResponse(response=NotificationSerializer, description="Updated notification.")},
        tags=["Notifications"],
    )
    def mark_as_clicked(self, request: Request, pk: str = None) -> Response:
        service = NotificationInboxService(user=request.user)
        notification = service.mark_as_clicked(notification_id=pk)
        return Response(NotificationSerializer(notification).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="read-all")
    @extend_schema(
        summary="Mark all notifications as read",
        request=None,
        responses={200: MarkAllReadResponseSerializer},
        tags=["Notifications"],
    )
    def mark_all_as_read(self, request: Request) -> Response:
        service = NotificationInboxService(user=request.user)
        updated = service.mark_all_as_read()
        return Response({"updated": updated}, status=status.HTTP_200_OK)

    @action(
        detail=False,
        methods=["get"],
        url_path="stream",
        renderer_classes=[EventStreamRenderer, JSONRenderer],
    )
    @extend_schema(
        summary="Notification stream",
        description=(
            "Server-sent events. Each `snapshot` event carries the full "
            "state of one notification; current notifications are sent first."
        ),
        responses={200: OpenApiResponse(description="text/event-stream")},
        tags=["Notifications"],
    )
    def stream(self, request: Request) -> StreamingHttpResponse:
        subscription = NotificationInboxService(user=request.user).subscribe()
        return event_stream_response(subscription)
