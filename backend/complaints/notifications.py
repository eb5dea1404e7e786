"""
Complaint notification rules and dispatcher.

Two halves:

* ``resolve_rules`` — a **pure** function from an event to the
  ``(audience, notification type, wording)`` rules that apply.  It reads
  nothing from the database and is unit-tested on its own.
* ``NotificationDispatcher`` — turns those rules into concrete
  ``Delivery`` objects (reporter, assignee, every active warden) and
  hands them to ``core.domain.notifications.NotificationService``.

Routing table
-------------
┌────────────────────────────────┬────────┬─────────────────────┬──────────────────────────┐
│ Trigger                        │ Actor  │ Audience            │ Type                     │
├────────────────────────────────┼────────┼─────────────────────┼──────────────────────────┤
│ complaint created              │ student│ wardens             │ COMPLAINT_CREATED        │
│ status pending → in_progress   │ warden │ reporter            │ COMPLAINT_UPDATED        │
│ status resolved → *            │ warden │ reporter, assignee  │ STATUS_CHANGED_BY_WARDEN │
│ any other status change        │ warden │ reporter, assignee  │ STATUS_CHANGED_BY_WARDEN │
│ assignee set / changed         │ warden │ new assignee        │ COMPLAINT_ASSIGNED       │
│ status * → resolved            │ staff  │ reporter, wardens   │ COMPLAINT_RESOLVED       │
│ new remark                     │ warden │ reporter, assignee  │ MESSAGE_RECEIVED         │
│ new remark                     │ student│ assignee            │ MESSAGE_RECEIVED         │
│ new remark                     │ staff  │ reporter            │ MESSAGE_RECEIVED         │
└────────────────────────────────┴────────┴─────────────────────┴──────────────────────────┘

Dispatch runs after the complaint write has committed and never raises:
a failure for one recipient is logged and the remaining recipients are
still attempted.

Each recipient gets at most one notification per event.  When several
rules pick the same recipient the first rule in ``resolve_rules`` order
wins.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from functools import partial

from django.db import DatabaseError, transaction

from accounts.models import UserRole
from core.domain.notifications import Delivery, NotificationService
from core.models import Notification, NotificationType

from .events import (
    ComplaintCreatedEvent,
    ComplaintSnapshot,
    Event,
    MessageEvent,
    StatusChange,
    TransitionEvent,
)
from .models import ComplaintStatus

logger = logging.getLogger(__name__)


class Audience(enum.Enum):
    REPORTER = "reporter"
    ASSIGNEE = "assignee"
    WARDENS = "wardens"


@dataclass(frozen=True)
class Rule:
    audience: Audience
    type: str
    wording: str


# ═══════════════════════════════════════════════════════════════════
#  Wording
# ═══════════════════════════════════════════════════════════════════

#: wording key → (title, message template)
WORDING: dict[str, tuple[str, str]] = {
    "created": (
        "New Complaint Submitted",
        "{reporter_name} created a new complaint",
    ),
    "approved": (
        "Complaint Approved",
        "Your complaint has been approved. Click to see the details.",
    ),
    "assigned": (
        "New Complaint Assigned",
        "You have a new assigned complaint. Click to see the details.",
    ),
    "resolved_to_reporter": (
        "Complaint Resolved! 🎉",
        "Your complaint has been solved! Click to see the details.",
    ),
    "resolved_to_warden": (
        "Complaint Resolved",
        "{actor_name} has resolved a complaint. Click to see details.",
    ),
    "reopened_to_reporter": (
        "Complaint Status Updated",
        "Your complaint is reopened again. Click to see the details.",
    ),
    "status_changed_to_reporter": (
        "Complaint Status Updated",
        'Warden has changed your complaint status to "{status_label}". Click to see the details.',
    ),
    "status_changed_to_assignee": (
        "Status Changed by Warden",
        'Warden has changed the complaint status to "{status_label}". Click to see details.',
    ),
    "message_to_reporter": (
        "New Message",
        "{actor_name} sent a new message in your complaint",
    ),
    "message_to_assignee": (
        "New Message",
        "{actor_name} sent a new message in your assigned complaint",
    ),
}


# ═══════════════════════════════════════════════════════════════════
#  Rule table
# ═══════════════════════════════════════════════════════════════════

CREATION_RULES: dict[str, tuple[Rule, ...]] = {
    UserRole.STUDENT.value: (
        Rule(Audience.WARDENS, NotificationType.COMPLAINT_CREATED, "created"),
    ),
}

#: (actor role, from status, to status) → rules.  ``None`` matches any
#: status; the first matching row wins.
STATUS_RULES: tuple[tuple[str, str | None, str | None, tuple[Rule, ...]], ...] = (
    (
        UserRole.WARDEN, ComplaintStatus.PENDING, ComplaintStatus.IN_PROGRESS,
        (Rule(Audience.REPORTER, NotificationType.COMPLAINT_UPDATED, "approved"),),
    ),
    (
        UserRole.WARDEN, ComplaintStatus.RESOLVED, None,
        (
            Rule(Audience.REPORTER, NotificationType.STATUS_CHANGED_BY_WARDEN, "reopened_to_reporter"),
            Rule(Audience.ASSIGNEE, NotificationType.STATUS_CHANGED_BY_WARDEN, "status_changed_to_assignee"),
        ),
    ),
    (
        UserRole.WARDEN, None, None,
        (
            Rule(Audience.REPORTER, NotificationType.STATUS_CHANGED_BY_WARDEN, "status_changed_to_reporter"),
            Rule(Audience.ASSIGNEE, NotificationType.STATUS_CHANGED_BY_WARDEN, "status_changed_to_assignee"),
        ),
    ),
    (
        UserRole.STAFF, None, ComplaintStatus.RESOLVED,
        (
            Rule(Audience.REPORTER, NotificationType.COMPLAINT_RESOLVED, "resolved_to_reporter"),
            Rule(Audience.WARDENS, NotificationType.COMPLAINT_RESOLVED, "resolved_to_warden"),
        ),
    ),
)

ASSIGNMENT_RULES: dict[str, tuple[Rule, ...]] = {
    UserRole.WARDEN.value: (
        Rule(Audience.ASSIGNEE, NotificationType.COMPLAINT_ASSIGNED, "assigned"),
    ),
}

MESSAGE_RULES: dict[str, tuple[Rule, ...]] = {
    UserRole.WARDEN.value: (
        Rule(Audience.REPORTER, NotificationType.MESSAGE_RECEIVED, "message_to_reporter"),
        Rule(Audience.ASSIGNEE, NotificationType.MESSAGE_RECEIVED, "message_to_assignee"),
    ),
    UserRole.STUDENT.value: (
        Rule(Audience.ASSIGNEE, NotificationType.MESSAGE_RECEIVED, "message_to_assignee"),
    ),
    UserRole.STAFF.value: (
        Rule(Audience.REPORTER, NotificationType.MESSAGE_RECEIVED, "message_to_reporter"),
    ),
}


def _status_rules(role: str, change: StatusChange) -> tuple[Rule, ...]:
    for rule_role, previous, new, rules in STATUS_RULES:
        if rule_role != role:
            continue
        if previous is not None and previous != change.previous:
            continue
        if new is not None and new != change.new:
            continue
        return rules
    return ()


def resolve_rules(event: Event) -> tuple[Rule, ...]:
    """
    Return the notification rules triggered by ``event``.

    Pure: depends only on the event's actor role and facts.
    """
    role = event.actor.role

    if isinstance(event, ComplaintCreatedEvent):
        return CREATION_RULES.get(role, ())

    if isinstance(event, MessageEvent):
        return MESSAGE_RULES.get(role, ())

    if isinstance(event, TransitionEvent):
        # Assignment first: a new assignee hears about the assignment, not
        # the status change made in the same call.
        rules: list[Rule] = []
        assignment = event.assignment_change
        if assignment is not None and assignment.new is not None:
            rules.extend(ASSIGNMENT_RULES.get(role, ()))
        if event.status_change is not None:
            rules.extend(_status_rules(role, event.status_change))
        return tuple(rules)

    return ()


# ═══════════════════════════════════════════════════════════════════
#  Dispatcher
# ═══════════════════════════════════════════════════════════════════

def _subject(event: Event) -> ComplaintSnapshot:
    """The complaint state recipients are resolved against."""
    if isinstance(event, TransitionEvent):
        return event.after
    return event.complaint


class NotificationDispatcher:
    """
    Resolves an event into deliveries and writes them.

    All methods are classmethods — no instance state is needed.
    """

    @classmethod
    def schedule(cls, event: Event) -> None:
        """
        Dispatch ``event`` once the current transaction commits.

        Nothing is sent for a write that is rolled back.
        """
        transaction.on_commit(partial(cls.dispatch, event), robust=True)

    @classmethod
    def dispatch(cls, event: Event) -> list[Notification]:
        """
        Write every notification ``event`` calls for.

        Returns:
            The notifications created.  Never raises for a delivery
            failure.
        """
        label = f"{type(event).__name__}:{event.complaint_id}"
        deliveries = list(cls.build_deliveries(event))
        if not deliveries:
            logger.debug("No notifications for [%s]", label)
            return []
        return NotificationService.fan_out(deliveries, label=label)

    @classmethod
    def build_deliveries(cls, event: Event):
        """Yield one ``Delivery`` per (rule, resolved recipient), skipping the actor."""
        for rule in resolve_rules(event):
            try:
                recipient_ids = cls.resolve_audience(rule.audience, event)
            except DatabaseError:
                logger.exception(
                    "Could not resolve %s recipients for %s on complaint %s",
                    rule.audience.value,
                    rule.type,
                    event.complaint_id,
                )
                continue
            for recipient_id in recipient_ids:
                if recipient_id == event.actor.id:
                    continue
                yield cls.build_delivery(rule, event, recipient_id)

    @staticmethod
    def resolve_audience(audience: Audience, event: Event) -> list[int]:
        subject = _subject(event)
        if audience is Audience.REPORTER:
            return [subject.reporter_id]
        if audience is Audience.ASSIGNEE:
            return [subject.assigned_to_id] if subject.assigned_to_id is not None else []
        from accounts.services import StaffDirectoryService

        return list(StaffDirectoryService.wardens().values_list("pk", flat=True))

    @staticmethod
    def build_delivery(rule: Rule, event: Event, recipient_id: int) -> Delivery:
        subject = _subject(event)
        title, template = WORDING[rule.wording]
        message = template.format(
            actor_name=event.actor.name,
            reporter_name=subject.reporter_name,
            status_label=ComplaintStatus(subject.status).label,
        )
        payload = {
            "complaintId": subject.id,
            "category": subject.category,
            "priority": subject.priority,
            "status": subject.status,
            "actorName": event.actor.name,
        }
        if rule.wording == "resolved_to_warden":
            payload["reporterName"] = subject.reporter_name
            payload["resolverName"] = event.actor.name
        return Delivery(
            recipient_id=recipient_id,
            type=str(rule.type),
            title=title,
            message=message,
            complaint_id=subject.id,
            payload=payload,
        )
