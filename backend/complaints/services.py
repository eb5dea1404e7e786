"""
Complaints app Service Layer.

This module is the **single source of truth** for all business logic
in the ``complaints`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``ComplaintQueryService``     — Role-scoped querysets and point reads.
- ``ComplaintCreationService``  — Student submission.
- ``ComplaintLifecycleService`` — Status / assignment transitions.
- ``ConversationService``       — Append-only remark thread.
- ``ComplaintSyncService``      — Real-time subscriptions.

Lifecycle Overview
------------------
States: PENDING, IN_PROGRESS, RESOLVED.  Every state may move to every
other state; reopening a resolved complaint is legal.

  * entering RESOLVED  → ``date_resolved`` stamped; staff must supply
                         (or already have) at least one resolution image
  * leaving RESOLVED   → ``resolution_images`` and ``date_resolved``
                         cleared

Every call takes the acting ``User`` explicitly.  The order of checks is
always: role grant (``AuthorizationError``) → visibility (``NotFound``)
→ state-dependent grant (``AuthorizationError``) → validation
(``ValidationError``) → write (``PersistenceError``).  A role the table
never permits is refused even for complaints it cannot see.  Only
after the write lands is an event built and notification dispatch
scheduled for commit.
"""

from __future__ import annotations

import logging
from typing import Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Prefetch, Q, QuerySet
from django.utils import timezone

from accounts.models import UserRole
from core.domain.access import (
    AuthorizationTable,
    Grant,
    ScopeConfig,
    apply_role_filter,
    authorize,
    authorize_role,
    get_user_role_name,
)
from core.domain.exceptions import (
    AuthorizationError,
    NotFound,
    ValidationError,
)
from core.domain.transactions import store_write
from core.realtime import COMPLAINTS_CHANNEL, Subscription, hub

from .events import (
    ActorRef,
    AssignmentChange,
    ComplaintCreatedEvent,
    ComplaintSnapshot,
    Fact,
    MessageEvent,
    StatusChange,
    TransitionEvent,
)
from .intents import AppendRemark, AssignTo, Intent, SetStatus, UpdateComplaint
from .models import (
    SUGGESTED_CATEGORIES,
    Complaint,
    ComplaintPriority,
    ComplaintStatus,
    ConversationEntry,
)
from .notifications import NotificationDispatcher

User = get_user_model()
logger = logging.getLogger(__name__)

#: Longest accepted remark, after stripping.
MAX_REMARK_LENGTH: int = 2000


# ═══════════════════════════════════════════════════════════════════
#  Authorization and scope tables
# ═══════════════════════════════════════════════════════════════════

#: intent → role → grant.  Roles missing from a row are denied.
COMPLAINT_AUTHORIZATION: AuthorizationTable = {
    "create": {
        UserRole.STUDENT.value: Grant.ALWAYS,
    },
    SetStatus.INTENT_NAME: {
        UserRole.STAFF.value: Grant.ALWAYS,
        UserRole.WARDEN.value: Grant.ALWAYS,
    },
    AssignTo.INTENT_NAME: {
        UserRole.WARDEN.value: Grant.ALWAYS,
    },
    AppendRemark.INTENT_NAME: {
        UserRole.STUDENT.value: Grant.UNLESS_RESOLVED,
        UserRole.STAFF.value: Grant.UNLESS_RESOLVED,
        UserRole.WARDEN.value: Grant.ALWAYS,
    },
}

#: Which complaints each role can see.
COMPLAINT_SCOPE: ScopeConfig = {
    UserRole.STUDENT.value: lambda qs, user: qs.filter(reporter=user),
    UserRole.STAFF.value: lambda qs, user: qs.filter(assigned_to=user),
    UserRole.WARDEN.value: lambda qs, user: qs,
}


def _setting(name: str, default: Any) -> Any:
    return getattr(settings, name, default)


def can_see_snapshot(user: Any):
    """
    Build a predicate over serialized complaint snapshots that mirrors
    ``COMPLAINT_SCOPE`` for ``user``.
    """
    role = get_user_role_name(user)
    user_id = user.pk
    if role == UserRole.WARDEN:
        return lambda snapshot: True
    if role == UserRole.STUDENT:
        return lambda snapshot: snapshot.get("reporter_id") == user_id
    if role == UserRole.STAFF:
        return lambda snapshot: snapshot.get("assigned_to_id") == user_id
    return lambda snapshot: False


# ═══════════════════════════════════════════════════════════════════
#  Complaint Query Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintQueryService:
    """
    Constructs role-scoped, filtered querysets of complaints.
    """

    @staticmethod
    def base_queryset() -> QuerySet[Complaint]:
        return Complaint.objects.select_related("reporter", "assigned_to")

    @staticmethod
    def get_filtered_queryset(
        requesting_user: Any,
        filters: dict[str, Any] | None = None,
    ) -> QuerySet[Complaint]:
        """
        Build a role-scoped, filtered queryset of ``Complaint`` objects.

        Parameters
        ----------
        requesting_user : User
            Students see their own complaints, staff the complaints
            assigned to them, wardens every complaint.
        filters : dict
            Cleaned query parameters.  Supported keys: ``status``,
            ``priority``, ``category``, ``campus``, ``hostel``,
            ``search``.

        Returns
        -------
        QuerySet[Complaint]
        """
        filters = filters or {}
        qs = apply_role_filter(
            ComplaintQueryService.base_queryset(),
            requesting_user,
            scope_config=COMPLAINT_SCOPE,
        )

        if filters.get("status"):
            qs = qs.filter(status=filters["status"])
        if filters.get("priority"):
            qs = qs.filter(priority=filters["priority"])
        if filters.get("category"):
            qs = qs.filter(category__iexact=filters["category"])
        if filters.get("campus"):
            qs = qs.filter(campus__iexact=filters["campus"])
        if filters.get("hostel"):
            qs = qs.filter(hostel__iexact=filters["hostel"])
        if filters.get("search"):
            term = filters["search"]
            qs = qs.filter(
                Q(description__icontains=term)
                | Q(category__icontains=term)
                | Q(hostel__icontains=term)
                | Q(reporter_name__icontains=term)
            )
        return qs.order_by("-date_submitted", "-id")

    @staticmethod
    def get_visible(requesting_user: Any, complaint_id: Any) -> Complaint:
        """
        Point-read a complaint the user is allowed to see.

        Raises
        ------
        NotFound
            If the complaint does not exist or lies outside the user's
            scope.
        """
        qs = ComplaintQueryService.get_filtered_queryset(requesting_user)
        try:
            return qs.get(pk=complaint_id)
        except (Complaint.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Complaint {complaint_id} not found.")

    @staticmethod
    def get_detail(complaint_id: Any) -> Complaint:
        """Unscoped read with the conversation prefetched, for responses and snapshots."""
        qs = ComplaintQueryService.base_queryset().prefetch_related(
            Prefetch("remarks", queryset=ConversationEntry.objects.order_by("id")),
        )
        try:
            return qs.get(pk=complaint_id)
        except (Complaint.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Complaint {complaint_id} not found.")

    @staticmethod
    def catalog() -> dict[str, Any]:
        """Enumerations and the campus → hostel catalog for client forms."""
        return {
            "statuses": [{"value": v, "label": l} for v, l in ComplaintStatus.choices],
            "priorities": [{"value": v, "label": l} for v, l in ComplaintPriority.choices],
            "categories": list(SUGGESTED_CATEGORIES),
            "campuses": {
                campus: list(hostels)
                for campus, hostels in _setting("HOSTELFIX_CAMPUS_HOSTELS", {}).items()
            },
            "max_attachments": _setting("HOSTELFIX_MAX_ATTACHMENTS", 5),
            "max_resolution_images": _setting("HOSTELFIX_MAX_RESOLUTION_IMAGES", 5),
        }


# ═══════════════════════════════════════════════════════════════════
#  Shared validation helpers
# ═══════════════════════════════════════════════════════════════════


def _clean_images(images: Any, *, field: str, limit: int) -> list[str]:
    if images is None:
        return []
    if isinstance(images, str) or not isinstance(images, (list, tuple)):
        raise ValidationError("Images must be a list.", field=field)
    cleaned = []
    for image in images:
        if not isinstance(image, str) or not image.strip():
            raise ValidationError("Each image must be a non-empty reference.", field=field)
        cleaned.append(image.strip())
    if len(cleaned) > limit:
        raise ValidationError(f"At most {limit} images are allowed.", field=field)
    return cleaned


def _required_text(data: dict[str, Any], field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field}' is required.", field=field)
    return value.strip()


# ═══════════════════════════════════════════════════════════════════
#  Complaint Creation Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintCreationService:
    """
    Handles submission of a new complaint by a student.
    """

    @staticmethod
    def create_complaint(
        requesting_user: Any,
        validated_data: dict[str, Any],
    ) -> Complaint:
        """
        Create a complaint in ``PENDING`` status and notify every warden.

        Parameters
        ----------
        requesting_user : User
            Must be a student; becomes the reporter.
        validated_data : dict
            ``campus``, ``hostel``, ``category``, ``description``
            (required), ``priority`` (default ``medium``) and
            ``attachments`` (optional list of image references).

        Returns
        -------
        Complaint

        Raises
        ------
        AuthorizationError
            If the user is not a student.
        ValidationError
            Missing field, unknown campus, hostel outside the campus,
            unknown priority or too many attachments.
        PersistenceError
            If the insert fails.
        """
        try:
            authorize(COMPLAINT_AUTHORIZATION, intent="create", user=requesting_user)

            campus = _required_text(validated_data, "campus")
            hostel = _required_text(validated_data, "hostel")
            category = _required_text(validated_data, "category")
            description = _required_text(validated_data, "description")

            catalog = _setting("HOSTELFIX_CAMPUS_HOSTELS", {})
            if campus not in catalog:
                raise ValidationError(f"Unknown campus '{campus}'.", field="campus")
            if hostel not in catalog[campus]:
                raise ValidationError(
                    f"Hostel '{hostel}' does not belong to {campus}.",
                    field="hostel",
                )

            priority = validated_data.get("priority") or ComplaintPriority.MEDIUM
            if priority not in ComplaintPriority.values:
                raise ValidationError(f"Unknown priority '{priority}'.", field="priority")

            attachments = _clean_images(
                validated_data.get("attachments"),
                field="attachments",
                limit=_setting("HOSTELFIX_MAX_ATTACHMENTS", 5),
            )
        except (AuthorizationError, ValidationError) as exc:
            logger.warning("Complaint creation rejected for user %s: %s", requesting_user.pk, exc)
            raise

        with store_write("create the complaint"):
            complaint = Complaint.objects.create(
                reporter=requesting_user,
                reporter_name=requesting_user.display_name,
                campus=campus,
                hostel=hostel,
                category=category,
                description=description,
                priority=priority,
                status=ComplaintStatus.PENDING,
                attachments=attachments,
            )
            event = ComplaintCreatedEvent(
                actor=ActorRef.of(requesting_user),
                complaint=ComplaintSnapshot.of(complaint),
            )
            NotificationDispatcher.schedule(event)

        logger.info(
            "Complaint %s created by user %s (%s, %s)",
            complaint.pk,
            requesting_user.pk,
            category,
            priority,
        )
        return complaint


# ═══════════════════════════════════════════════════════════════════
#  Complaint Lifecycle Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintLifecycleService:
    """
    The validated gateway through which every complaint mutation passes.

    ``apply`` consults ``COMPLAINT_AUTHORIZATION`` once per intent part,
    plans the field changes, writes only the changed fields and returns
    the resulting event.  Notification dispatch is scheduled for commit
    and never affects the outcome of the call.
    """

    @classmethod
    def apply(
        cls,
        requesting_user: Any,
        complaint_id: Any,
        intent: Intent,
    ) -> TransitionEvent | MessageEvent:
        """
        Apply ``intent`` to a complaint on behalf of ``requesting_user``.

        Returns
        -------
        TransitionEvent | MessageEvent

        Raises
        ------
        AuthorizationError
            The user's role may not issue the intent.
        NotFound
            The complaint is not visible to the user.
        ValidationError
            The intent is malformed or would change nothing.
        PersistenceError
            The write failed; nothing was changed.
        """
        parts = intent.parts() if isinstance(intent, UpdateComplaint) else (intent,)
        cls._check_roles(requesting_user, complaint_id, intent, [part.INTENT_NAME for part in parts])

        complaint = ComplaintQueryService.get_visible(requesting_user, complaint_id)

        if isinstance(intent, AppendRemark):
            return ConversationService.append(requesting_user, complaint, intent)

        try:
            if not parts:
                raise ValidationError("Nothing to update.")
            for part in parts:
                authorize(
                    COMPLAINT_AUTHORIZATION,
                    intent=part.INTENT_NAME,
                    user=requesting_user,
                    resolved=complaint.is_resolved,
                )

            changes: dict[str, Any] = {}
            facts: list[Fact] = []
            for part in parts:
                if isinstance(part, SetStatus):
                    fact, part_changes = cls._plan_status(requesting_user, complaint, part)
                else:
                    fact, part_changes = cls._plan_assignment(complaint, part)
                if fact is not None:
                    facts.append(fact)
                    changes.update(part_changes)

            if not facts:
                raise ValidationError("Nothing to update.")
        except (AuthorizationError, ValidationError) as exc:
            cls._log_rejection(requesting_user, complaint.pk, intent, exc)
            raise

        before = ComplaintSnapshot.of(complaint)
        for field, value in changes.items():
            setattr(complaint, field, value)

        with store_write(f"update complaint {complaint.pk}"):
            complaint.save(update_fields=[*changes, "updated_at"])
            event = TransitionEvent(
                actor=ActorRef.of(requesting_user),
                before=before,
                after=ComplaintSnapshot.of(complaint),
                facts=tuple(facts),
            )
            NotificationDispatcher.schedule(event)

        logger.info(
            "Complaint %s updated by user %s (%s): %s",
            complaint.pk,
            requesting_user.pk,
            get_user_role_name(requesting_user),
            ", ".join(repr(f) for f in facts),
        )
        return event

    # ── Convenience entry points ─────────────────────────────────────

    @classmethod
    def set_status(
        cls,
        requesting_user: Any,
        complaint_id: Any,
        status: str,
        resolution_images: Any = (),
    ) -> TransitionEvent:
        return cls.apply(
            requesting_user,
            complaint_id,
            SetStatus(status=status, resolution_images=tuple(resolution_images or ())),
        )

    @classmethod
    def assign_to(
        cls,
        requesting_user: Any,
        complaint_id: Any,
        staff_id: int | None,
    ) -> TransitionEvent:
        return cls.apply(requesting_user, complaint_id, AssignTo(staff_id=staff_id))

    @classmethod
    def update(
        cls,
        requesting_user: Any,
        complaint_id: Any,
        validated_data: dict[str, Any],
    ) -> TransitionEvent:
        """
        Combined status + assignment update.

        ``validated_data`` may hold ``status`` (with optional
        ``resolution_images``) and/or ``assigned_to``; an explicit
        ``assigned_to: None`` unassigns.
        """
        set_status = None
        if validated_data.get("status"):
            set_status = SetStatus(
                status=validated_data["status"],
                resolution_images=tuple(validated_data.get("resolution_images") or ()),
            )
        assign_to = None
        if "assigned_to" in validated_data:
            assign_to = AssignTo(staff_id=validated_data["assigned_to"])
        intent = UpdateComplaint(set_status=set_status, assign_to=assign_to)

        if set_status is None and validated_data.get("resolution_images"):
            names = [part.INTENT_NAME for part in intent.parts()]
            cls._check_roles(requesting_user, complaint_id, intent, [SetStatus.INTENT_NAME, *names])
            ComplaintQueryService.get_visible(requesting_user, complaint_id)
            exc = ValidationError(
                "Resolution images can only be attached when resolving.",
                field="resolution_images",
            )
            cls._log_rejection(requesting_user, complaint_id, intent, exc)
            raise exc
        return cls.apply(requesting_user, complaint_id, intent)

    @classmethod
    def _check_roles(
        cls,
        requesting_user: Any,
        complaint_id: Any,
        intent: Intent,
        intent_names: list[str],
    ) -> None:
        """Refuse roles with no grant for any part, before the complaint is read."""
        try:
            for name in intent_names:
                authorize_role(COMPLAINT_AUTHORIZATION, intent=name, user=requesting_user)
        except AuthorizationError as exc:
            cls._log_rejection(requesting_user, complaint_id, intent, exc)
            raise

    @staticmethod
    def _log_rejection(requesting_user: Any, complaint_id: Any, intent: Intent, exc: Exception) -> None:
        logger.warning(
            "Rejected %s on complaint %s by user %s: %s",
            type(intent).__name__,
            complaint_id,
            requesting_user.pk,
            exc,
        )

    # ── Planning ─────────────────────────────────────────────────────

    @staticmethod
    def _plan_status(
        requesting_user: Any,
        complaint: Complaint,
        intent: SetStatus,
    ) -> tuple[StatusChange | None, dict[str, Any]]:
        """
        Validate a status intent and return the fact plus field changes.

        Leaving ``resolved`` clears ``resolution_images`` and
        ``date_resolved`` unconditionally, so proof must be re-submitted
        after any reopen.  Pending product confirmation; keep as is.
        """
        new_status = intent.status
        if new_status not in ComplaintStatus.values:
            raise ValidationError(f"Unknown status '{new_status}'.", field="status")

        limit = _setting("HOSTELFIX_MAX_RESOLUTION_IMAGES", 5)
        images = _clean_images(
            list(intent.resolution_images),
            field="resolution_images",
            limit=limit,
        )
        if images and new_status != ComplaintStatus.RESOLVED:
            raise ValidationError(
                "Resolution images can only be attached when resolving.",
                field="resolution_images",
            )

        if new_status == complaint.status:
            return None, {}

        changes: dict[str, Any] = {"status": new_status}
        if new_status == ComplaintStatus.RESOLVED:
            proof = list(complaint.resolution_images or []) + images
            if len(proof) > limit:
                raise ValidationError(
                    f"At most {limit} resolution images are allowed.",
                    field="resolution_images",
                )
            if get_user_role_name(requesting_user) == UserRole.STAFF and not proof:
                raise ValidationError(
                    "At least one resolution image is required to resolve a complaint.",
                    field="resolution_images",
                )
            changes["resolution_images"] = proof
            changes["date_resolved"] = timezone.now()
        elif complaint.status == ComplaintStatus.RESOLVED:
            # Reopening discards the previous proof.
            changes["resolution_images"] = []
            changes["date_resolved"] = None

        return StatusChange(previous=str(complaint.status), new=new_status), changes

    @staticmethod
    def _plan_assignment(
        complaint: Complaint,
        intent: AssignTo,
    ) -> tuple[AssignmentChange | None, dict[str, Any]]:
        staff_id = intent.staff_id
        if staff_id is None:
            if complaint.assigned_to_id is None:
                return None, {}
            return (
                AssignmentChange(previous=complaint.assigned_to_id, new=None),
                {"assigned_to": None},
            )

        try:
            assignee = User.objects.get(pk=staff_id, role=UserRole.STAFF, is_active=True)
        except (User.DoesNotExist, ValueError, TypeError):
            raise ValidationError(
                "The assignee must be an active staff account.",
                field="assigned_to",
            )
        if assignee.pk == complaint.assigned_to_id:
            return None, {}
        return (
            AssignmentChange(previous=complaint.assigned_to_id, new=assignee.pk),
            {"assigned_to": assignee},
        )


# ═══════════════════════════════════════════════════════════════════
#  Conversation Service
# ═══════════════════════════════════════════════════════════════════


class ConversationService:
    """
    Append-only remark thread of a complaint.

    Each remark is a single ``INSERT``; the primary key orders the
    thread.  Nothing here ever updates or deletes an entry.
    """

    @staticmethod
    def list_remarks(requesting_user: Any, complaint_id: Any) -> QuerySet[ConversationEntry]:
        complaint = ComplaintQueryService.get_visible(requesting_user, complaint_id)
        return complaint.remarks.order_by("id")

    @staticmethod
    def append_remark(requesting_user: Any, complaint_id: Any, text: str) -> MessageEvent:
        return ComplaintLifecycleService.apply(
            requesting_user,
            complaint_id,
            AppendRemark(text=text),
        )

    @staticmethod
    def get_entry(entry_id: int) -> ConversationEntry:
        return ConversationEntry.objects.get(pk=entry_id)

    @staticmethod
    def append(
        requesting_user: Any,
        complaint: Complaint,
        intent: AppendRemark,
    ) -> MessageEvent:
        """
        Append one remark to an already-visible complaint.

        Raises
        ------
        AuthorizationError
            Students and staff may not write on a resolved complaint.
        ValidationError
            Blank or overlong text.
        """
        try:
            authorize(
                COMPLAINT_AUTHORIZATION,
                intent=AppendRemark.INTENT_NAME,
                user=requesting_user,
                resolved=complaint.is_resolved,
            )
            text = (intent.text or "").strip() if isinstance(intent.text, str) else ""
            if not text:
                raise ValidationError("Remark text must not be blank.", field="text")
            if len(text) > MAX_REMARK_LENGTH:
                raise ValidationError(
                    f"Remark text must be at most {MAX_REMARK_LENGTH} characters.",
                    field="text",
                )
        except (AuthorizationError, ValidationError) as exc:
            logger.warning(
                "Rejected remark on complaint %s by user %s: %s",
                complaint.pk,
                requesting_user.pk,
                exc,
            )
            raise

        actor = ActorRef.of(requesting_user)
        with store_write(f"append a remark to complaint {complaint.pk}"):
            entry = ConversationEntry.objects.create(
                complaint=complaint,
                sender=requesting_user,
                sender_name=actor.name,
                sender_role=actor.role,
                text=text,
            )
            event = MessageEvent.of(actor, complaint, entry)
            NotificationDispatcher.schedule(event)

        logger.info(
            "Remark %s appended to complaint %s by user %s",
            entry.pk,
            complaint.pk,
            requesting_user.pk,
        )
        return event


# ═══════════════════════════════════════════════════════════════════
#  Complaint Sync Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintSyncService:
    """
    Real-time subscriptions over the complaints a user can see.
    """

    @staticmethod
    def subscribe(requesting_user: Any) -> Subscription:
        """
        Subscribe ``requesting_user`` to complaint snapshots.

        The currently visible complaints are queued first (oldest
        first); later pushes are filtered by the same visibility rules.
        """
        from .serializers import ComplaintDetailSerializer

        visible = (
            ComplaintQueryService.get_filtered_queryset(requesting_user)
            .prefetch_related(
                Prefetch("remarks", queryset=ConversationEntry.objects.order_by("id")),
            )
            .order_by("date_submitted", "id")
        )
        initial = [
            (complaint.pk, dict(ComplaintDetailSerializer(complaint).data))
            for complaint in visible
        ]
        return hub.subscribe(
            COMPLAINTS_CHANNEL,
            predicate=can_see_snapshot(requesting_user),
            initial=initial,
        )
