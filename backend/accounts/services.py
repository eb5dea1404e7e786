"""
Accounts app service layer.

Contains the business logic behind the accounts endpoints.  Views stay
thin and delegate here.

Identity is the only thing the complaint core consumes from this app:
the authenticated ``User`` with a stable id, a display name, and one of
the roles in ``UserRole``.
"""

from __future__ import annotations

import logging

from django.db.models import Q, QuerySet

from core.domain.access import require_role

from .models import User, UserRole

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Current User Service
# ═══════════════════════════════════════════════════════════════════


class CurrentUserService:
    """
    Operations the authenticated user performs on their own account.
    """

    @staticmethod
    def get_profile(user: User) -> User:
        """
        Return the authenticated user's profile.

        Parameters
        ----------
        user : User
            ``request.user``.

        Returns
        -------
        User
        """
        return user


# ═══════════════════════════════════════════════════════════════════
#  Staff Directory Service
# ═══════════════════════════════════════════════════════════════════


class StaffDirectoryService:
    """
    Read-only lookups over staff accounts, used by wardens when choosing
    an assignee for a complaint.
    """

    @staticmethod
    def list_staff(requesting_user: User, *, search: str | None = None) -> QuerySet[User]:
        """
        Return active staff accounts ordered by name.

        Parameters
        ----------
        requesting_user : User
            Must be a warden.
        search : str, optional
            Case-insensitive match on username, first or last name.

        Raises
        ------
        AuthorizationError
            If ``requesting_user`` is not a warden.
        """
        require_role(requesting_user, UserRole.WARDEN)

        qs = User.objects.filter(role=UserRole.STAFF, is_active=True)
        if search:
            qs = qs.filter(
                Q(username__icontains=search)
                | Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
            )
        logger.debug("Staff directory requested by %s (search=%r)", requesting_user.pk, search)
        return qs.order_by("first_name", "last_name", "username")

    @staticmethod
    def wardens() -> QuerySet[User]:
        """All active warden accounts (notification fan-out targets)."""
        return User.objects.filter(role=UserRole.WARDEN, is_active=True).order_by("pk")
