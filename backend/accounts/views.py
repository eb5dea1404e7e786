"""
Accounts app views.

All views follow the **Thin View** pattern: validate input via
serializers, delegate to the service layer, and return the result
wrapped in a DRF ``Response``.  **No business logic** resides here.

View Map
--------
- ``LoginView``          — POST /auth/login/
- ``MeView``             — GET /me/
- ``StaffDirectoryView`` — GET /staff/
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    CustomTokenObtainPairSerializer,
    TokenResponseSerializer,
    UserDetailSerializer,
    UserSummarySerializer,
)
from .services import CurrentUserService, StaffDirectoryService


# ═══════════════════════════════════════════════════════════════════
#  Authentication Views
# ═══════════════════════════════════════════════════════════════════


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Authenticates a user via username or email plus
    password.

    Request body  → ``CustomTokenObtainPairSerializer``
    Response body → ``TokenResponseSerializer`` (200 OK)
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        request=CustomTokenObtainPairSerializer,
        responses={200: TokenResponseSerializer},
        tags=["Auth"],
    )
    def post(self, request: Request) -> Response:
        serializer = CustomTokenObtainPairSerializer(
            data=request.data,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)

        payload = dict(serializer.validated_data)
        payload["user"] = UserDetailSerializer(serializer.user).data

        return Response(payload, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Current User ("Me") View
# ═══════════════════════════════════════════════════════════════════


class MeView(APIView):
    """
    GET /api/accounts/me/ → the authenticated actor's profile and role.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: UserDetailSerializer}, tags=["Auth"])
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Staff Directory View
# ═══════════════════════════════════════════════════════════════════


class StaffDirectoryView(APIView):
    """
    GET /api/accounts/staff/

    Warden-only list of active staff accounts, used to pick the
    assignee of a complaint.  Other roles receive 403.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        parameters=[
            OpenApiParameter("search", str, description="Match on username or name."),
        ],
        responses={200: UserSummarySerializer(many=True)},
        tags=["Accounts"],
    )
    def get(self, request: Request) -> Response:
        staff = StaffDirectoryService.list_staff(
            request.user,
            search=request.query_params.get("search"),
        )
        return Response(
            UserSummarySerializer(staff, many=True).data,
            status=status.HTTP_200_OK,
        )
