"""
Complaints app views — **Thin Views**.

Each handler validates the request shape with a serializer, delegates to
a service in ``complaints.services`` and returns the service result.
Domain exceptions raised by services are translated to HTTP responses by
``core.domain.exception_handler``.
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

from core.renderers import EventStreamRenderer
from core.views import event_stream_response

from .serializers import (
    AssignSerializer,
    ComplaintCreateSerializer,
    ComplaintDetailSerializer,
    ComplaintFilterSerializer,
    ComplaintListSerializer,
    ComplaintMetaSerializer,
    ComplaintUpdateSerializer,
    ConversationEntrySerializer,
    RemarkCreateSerializer,
    SetStatusSerializer,
)
from .services import (
    ComplaintCreationService,
    ComplaintLifecycleService,
    ComplaintQueryService,
    ComplaintSyncService,
    ConversationService,
)


class ComplaintViewSet(viewsets.ViewSet):
    """
    **Complaint API** — submission and lifecycle.

    Endpoints
    ---------
    GET    /api/complaints/                   → list (role-scoped, filterable)
    POST   /api/complaints/                   → create (students)
    GET    /api/complaints/{id}/              → retrieve with conversation
    PATCH  /api/complaints/{id}/              → combined status + assignment update
    POST   /api/complaints/{id}/status/       → set status (staff, wardens)
    POST   /api/complaints/{id}/assign/       → assign / unassign (wardens)
    GET    /api/complaints/stream/            → server-sent events
    GET    /api/complaints/meta/              → enumerations and campus catalog
    """

    permission_classes = [IsAuthenticated]

    def _detail_response(self, complaint_id, http_status=status.HTTP_200_OK) -> Response:
        complaint = ComplaintQueryService.get_detail(complaint_id)
        return Response(ComplaintDetailSerializer(complaint).data, status=http_status)

    @extend_schema(
        summary="List complaints",
        description=(
            "Students see their own complaints, staff the complaints assigned "
            "to them, wardens every complaint. Newest first."
        ),
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, enum=["pending", "in_progress", "resolved"]),
            OpenApiParameter("priority", OpenApiTypes.STR, enum=["low", "medium", "high", "urgent"]),
            OpenApiParameter("category", OpenApiTypes.STR),
            OpenApiParameter("campus", OpenApiTypes.STR),
            OpenApiParameter("hostel", OpenApiTypes.STR),
            OpenApiParameter("search", OpenApiTypes.STR, description="Free-text search."),
        ],
        responses={200: ComplaintListSerializer(many=True)},
        tags=["Complaints"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = ComplaintFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        qs = ComplaintQueryService.get_filtered_queryset(
            requesting_user=request.user,
            filters=filter_serializer.validated_data,
        )
        return Response(ComplaintListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Submit a complaint",
        request=ComplaintCreateSerializer,
        responses={
            201: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint created."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Only students may submit complaints."),
        },
        tags=["Complaints"],
    )
    def create(self, request: Request) -> Response:
        serializer = ComplaintCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintCreationService.create_complaint(
            requesting_user=request.user,
            validated_data=serializer.validated_data,
        )
        return self._detail_response(complaint.pk, http_status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve a complaint",
        responses={200: ComplaintDetailSerializer, 404: OpenApiResponse(description="Not found.")},
        tags=["Complaints"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        complaint = ComplaintQueryService.get_visible(request.user, pk)
        return self._detail_response(complaint.pk)

    @extend_schema(
        summary="Update status and/or assignee",
        description=(
            "Applies `status` (with optional `resolution_images`) and "
            "`assigned_to` as one write. Each part is authorized separately."
        ),
        request=ComplaintUpdateSerializer,
        responses={200: ComplaintDetailSerializer},
        tags=["Complaints"],
    )
    def partial_update(self, request: Request, pk: str = None) -> Response:
        serializer = ComplaintUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = ComplaintLifecycleService.update(request.user, pk, serializer.validated_data)
        return self._detail_response(event.complaint_id)

    @action(detail=True, methods=["post"], url_path="status")
    @extend_schema(
        summary="Set complaint status",
        description=(
            "Staff resolving a complaint must provide at least one resolution "
            "image unless proof is already attached."
        ),
        request=SetStatusSerializer,
        responses={200: ComplaintDetailSerializer},
        tags=["Complaints"],
    )
    def set_status(self, request: Request, pk: str = None) -> Response:
        serializer = SetStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = ComplaintLifecycleService.set_status(
            request.user,
            pk,
            serializer.validated_data["status"],
            serializer.validated_data.get("resolution_images", []),
        )
        return self._detail_response(event.complaint_id)

    @action(detail=True, methods=["post"], url_path="assign")
    @extend_schema(
        summary="Assign complaint to staff",
        request=AssignSerializer,
        responses={200: ComplaintDetailSerializer},
        tags=["Complaints"],
    )
    def assign(self, request: Request, pk: str = None) -> Response:
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = ComplaintLifecycleService.assign_to(
            request.user,
            pk,
            serializer.validated_data["assigned_to"],
        )
        return self._detail_response(event.complaint_id)

    @action(
        detail=False,
        methods=["get"],
        url_path="stream",
        renderer_classes=[EventStreamRenderer, JSONRenderer],
    )
    @extend_schema(
        summary="Complaint stream",
        description=(
            "Server-sent events. Every visible complaint is sent once on "
            "connect, then again after each committed change."
        ),
        responses={200: OpenApiResponse(description="text/event-stream")},
        tags=["Complaints"],
    )
    def stream(self, request: Request) -> StreamingHttpResponse:
        subscription = ComplaintSyncService.subscribe(request.user)
        return event_stream_response(subscription)

    @action(detail=False, methods=["get"], url_path="meta")
    @extend_schema(
        summary="Complaint form metadata",
        responses={200: ComplaintMetaSerializer},
        tags=["Complaints"],
    )
    def meta(self, request: Request) -> Response:
        return Response(ComplaintQueryService.catalog(), status=status.HTTP_200_OK)


class RemarkViewSet(viewsets.ViewSet):
    """
    **Conversation API** — the append-only remark thread of one complaint.

    Nested under ``/api/complaints/{complaint_pk}/remarks/``.  Entries
    cannot be edited or deleted, so only ``list`` and ``create`` exist.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List complaint remarks",
        description="Returns the thread in insertion order.",
        responses={200: ConversationEntrySerializer(many=True)},
        tags=["Complaints"],
    )
    def list(self, request: Request, complaint_pk: str = None) -> Response:
        entries = ConversationService.list_remarks(request.user, complaint_pk)
        return Response(ConversationEntrySerializer(entries, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Append a remark",
        description=(
            "Students and staff cannot write on a resolved complaint; "
            "wardens always can."
        ),
        request=RemarkCreateSerializer,
        responses={
            201: ConversationEntrySerializer,
            400: OpenApiResponse(description="Empty or overlong text."),
            403: OpenApiResponse(description="Thread closed for this role."),
        },
        tags=["Complaints"],
    )
    def create(self, request: Request, complaint_pk: str = None) -> Response:
        serializer = RemarkCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = ConversationService.append_remark(
            request.user,
            complaint_pk,
            serializer.validated_data["text"],
        )
        entry = ConversationService.get_entry(event.entry_id)
        return Response(ConversationEntrySerializer(entry).data, status=status.HTTP_201_CREATED)
