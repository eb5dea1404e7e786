"""
core.domain.access — Role-based authorization and queryset scoping.

This module provides the shared utilities that each app's service layer
calls to decide *who may do what* and *who may see what*.

╔══════════════════════════════════════════════════════════════════╗
║  IMPORTANT — Per-app rule tables do NOT live here.              ║
║  Each app's ``services.py`` owns its own tables.                ║
║  This module provides:                                          ║
║    1) ``authorize`` — one lookup in an intent × role table.     ║
║       ``authorize_role`` is its state-free half.                ║
║    2) ``apply_role_filter`` — role-keyed queryset scoping.      ║
║    3) ``require_role`` — guard for single-role operations.      ║
║    4) ``get_user_role_name`` — normalised role of an actor.     ║
╚══════════════════════════════════════════════════════════════════╝

Usage in an app's service layer::

    from core.domain.access import Grant, authorize

    COMPLAINT_AUTHORIZATION = {
        "assign_to": {"warden": Grant.ALWAYS},
        "append_remark": {
            "student": Grant.UNLESS_RESOLVED,
            "staff": Grant.UNLESS_RESOLVED,
            "warden": Grant.ALWAYS,
        },
    }

    authorize(COMPLAINT_AUTHORIZATION, intent="assign_to", user=actor)

Roles absent from a table row are denied.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Callable

from django.db.models import QuerySet

from core.domain.exceptions import AuthorizationError

if TYPE_CHECKING:
    from accounts.models import User


class Grant(enum.Enum):
    """Outcome of one cell of an authorization table."""

    ALWAYS = "always"
    UNLESS_RESOLVED = "unless_resolved"
    NEVER = "never"


# intent name -> role name -> grant
AuthorizationTable = dict[str, dict[str, Grant]]

# Type alias for a scope filter function.
# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]

# role name -> scope filter
ScopeConfig = dict[str, ScopeFilter]


def get_user_role_name(user: User) -> str | None:
    """
    Return the lowercased role name for a user, or ``None`` if unassigned.

    Args:
        user: Authenticated User instance.

    Returns:
        ``"student"``, ``"staff"``, ``"warden"`` or ``None``.
    """
    role = getattr(user, "role", None)
    if not role:
        return None
    return str(role).lower()


def authorize_role(
    table: AuthorizationTable,
    *,
    intent: str,
    user: User,
) -> Grant:
    """
    Role-only half of ``authorize``.

    Refuses a role that has no grant for ``intent`` whatever the record's
    state, so it can run before the record is loaded.  State-dependent
    grants (``UNLESS_RESOLVED``) pass here and must still go through
    ``authorize`` once the record is known.

    Raises:
        AuthorizationError: If the cell is missing or ``NEVER``.
    """
    role = get_user_role_name(user)
    grant = table.get(intent, {}).get(role, Grant.NEVER)
    if grant is Grant.NEVER:
        raise AuthorizationError(role=role, intent=intent)
    return grant


def authorize(
    table: AuthorizationTable,
    *,
    intent: str,
    user: User,
    resolved: bool = False,
) -> Grant:
    """
    Consult ``table`` once for ``(intent, role of user)``.

    Args:
        table:    Intent × role grant table owned by the calling app.
        intent:   Intent name (row key).
        user:     The acting user; its ``role`` selects the column.
        resolved: Whether the target record is currently in its terminal
                  state.  Only matters for ``Grant.UNLESS_RESOLVED`` cells.

    Returns:
        The grant that allowed the call.

    Raises:
        AuthorizationError: If the cell is missing, ``NEVER``, or
            ``UNLESS_RESOLVED`` while ``resolved`` is true.
    """
    grant = authorize_role(table, intent=intent, user=user)
    if grant is Grant.UNLESS_RESOLVED and resolved:
        role = get_user_role_name(user)
        raise AuthorizationError(
            f"Role '{role}' may not perform '{intent}' on a resolved complaint.",
            role=role,
            intent=intent,
        )
    return grant


def apply_role_filter(
    queryset: QuerySet,
    user: User,
    *,
    scope_config: ScopeConfig,
    default: str = "none",
) -> QuerySet:
    """
    Apply role-based filtering to a queryset using the provided config.

    Args:
        queryset:     Base (unfiltered) queryset.
        user:         The authenticated user.
        scope_config: ``{role_name: filter_fn}`` mapping.
        default:      What to do when the role has no entry.
                      ``"none"`` (default) → empty queryset.
                      ``"all"`` → return unfiltered.

    Returns:
        The (possibly filtered) queryset.
    """
    role_name = get_user_role_name(user)

    if role_name and role_name in scope_config:
        return scope_config[role_name](queryset, user)

    if default == "none":
        return queryset.none()
    return queryset


def require_role(user: User, *allowed_roles: str) -> None:
    """
    Guard that raises ``AuthorizationError`` if the user's role is not
    among ``allowed_roles``.

    Example::

        require_role(user, "warden")
    """
    role_name = get_user_role_name(user)
    if role_name not in allowed_roles:
        raise AuthorizationError(
            f"Role '{role_name}' is not permitted for this operation. "
            f"Required: {', '.join(allowed_roles)}."
        )
