"""
Facts emitted after a complaint write has landed.

Events are immutable and self-contained: they carry the actor and
before/after snapshots with every denormalised field the notification
rules need, so resolving recipients never has to re-read the complaint.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from accounts.models import User

    from .models import Complaint, ConversationEntry


@dataclass(frozen=True)
class ActorRef:
    """Who performed the operation."""

    id: int
    name: str
    role: str

    @classmethod
    def of(cls, user: User) -> ActorRef:
        return cls(id=user.pk, name=user.display_name, role=str(user.role))


@dataclass(frozen=True)
class ComplaintSnapshot:
    id: int
    reporter_id: int
    reporter_name: str
    campus: str
    hostel: str
    category: str
    priority: str
    status: str
    assigned_to_id: int | None
    resolution_images: tuple[str, ...]
    date_resolved: datetime.datetime | None

    @classmethod
    def of(cls, complaint: Complaint) -> ComplaintSnapshot:
        return cls(
            id=complaint.pk,
            reporter_id=complaint.reporter_id,
            reporter_name=complaint.reporter_name,
            campus=complaint.campus,
            hostel=complaint.hostel,
            category=complaint.category,
            priority=str(complaint.priority),
            status=str(complaint.status),
            assigned_to_id=complaint.assigned_to_id,
            resolution_images=tuple(complaint.resolution_images or ()),
            date_resolved=complaint.date_resolved,
        )


# ── Transition facts ────────────────────────────────────────────────

@dataclass(frozen=True)
class StatusChange:
    previous: str
    new: str


@dataclass(frozen=True)
class AssignmentChange:
    previous: int | None
    new: int | None


Fact = Union[StatusChange, AssignmentChange]


# ── Events ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ComplaintCreatedEvent:
    actor: ActorRef
    complaint: ComplaintSnapshot

    @property
    def complaint_id(self) -> int:
        return self.complaint.id


@dataclass(frozen=True)
class TransitionEvent:
    """
    Result of one accepted ``SetStatus`` / ``AssignTo`` / combined intent.

    ``facts`` holds one entry per thing that actually changed, in
    the order status then assignment.
    """

    actor: ActorRef
    before: ComplaintSnapshot
    after: ComplaintSnapshot
    facts: tuple[Fact, ...]

    @property
    def complaint_id(self) -> int:
        return self.after.id

    @property
    def status_change(self) -> StatusChange | None:
        return next((f for f in self.facts if isinstance(f, StatusChange)), None)

    @property
    def assignment_change(self) -> AssignmentChange | None:
        return next((f for f in self.facts if isinstance(f, AssignmentChange)), None)


@dataclass(frozen=True)
class MessageEvent:
    """Result of one accepted ``AppendRemark``."""

    actor: ActorRef
    complaint: ComplaintSnapshot
    entry_id: int
    text: str

    @property
    def complaint_id(self) -> int:
        return self.complaint.id

    @classmethod
    def of(cls, actor: ActorRef, complaint: Complaint, entry: ConversationEntry) -> MessageEvent:
        return cls(
            actor=actor,
            complaint=ComplaintSnapshot.of(complaint),
            entry_id=entry.pk,
            text=entry.text,
        )


Event = Union[ComplaintCreatedEvent, TransitionEvent, MessageEvent]
