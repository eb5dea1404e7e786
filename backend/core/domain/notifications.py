"""
core.domain.notifications — Isolated notification persistence.

Centralises notification creation so every app uses one consistent
entry-point rather than directly constructing ``Notification`` objects.

Design decisions
----------------
* **One write per recipient** — every ``Delivery`` is persisted in its
  own savepoint.  A failing write raises ``NotificationDeliveryError``
  for that recipient only.
* **Fan-out never raises** — ``NotificationService.fan_out`` catches
  each failure, logs it, and keeps going with the remaining deliveries.
  The caller's own write has already succeeded and must stand.
* **Deduplicated** — one fan-out carries one event, so each recipient
  gets at most one record from it.  The first delivery for a recipient
  wins; callers order deliveries by precedence.

Usage::

    from core.domain.notifications import Delivery, NotificationService

    NotificationService.fan_out(
        [
            Delivery(
                recipient_id=warden.pk,
                type="COMPLAINT_CREATED",
                title="New Complaint Submitted",
                message="Ana Lim created a new complaint",
                complaint_id=complaint.pk,
                payload={"complaintId": complaint.pk},
            ),
        ],
        label="complaint_created",
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable

from django.db import DatabaseError, transaction

from core.domain.exceptions import NotificationDeliveryError

if TYPE_CHECKING:
    from core.models import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Delivery:
    """A fully resolved notification waiting to be written."""

    recipient_id: int
    type: str
    title: str
    message: str
    complaint_id: int | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> int:
        return self.recipient_id


class NotificationService:
    """
    Stateless helper for creating ``Notification`` records.

    All methods are classmethods — no instance state is needed.
    """

    @classmethod
    def deliver(cls, delivery: Delivery) -> Notification:
        """
        Persist a single notification.

        Raises:
            NotificationDeliveryError: If the store rejects the write.
        """
        from core.models import Notification  # lazy import

        try:
            with transaction.atomic():
                return Notification.objects.create(
                    recipient_id=delivery.recipient_id,
                    type=delivery.type,
                    title=delivery.title,
                    message=delivery.message,
                    complaint_id=delivery.complaint_id,
                    payload=dict(delivery.payload),
                )
        except DatabaseError as exc:
            raise NotificationDeliveryError(
                f"Could not store {delivery.type} for recipient {delivery.recipient_id}.",
                recipient_id=delivery.recipient_id,
                notification_type=delivery.type,
            ) from exc

    @classmethod
    def fan_out(
        cls,
        deliveries: Iterable[Delivery],
        *,
        label: str = "",
    ) -> list[Notification]:
        """
        Attempt every delivery independently.

        Args:
            deliveries: Resolved deliveries, possibly with duplicates.
            label:      Event label used in log lines.

        Returns:
            The notifications that were written.  Failed deliveries are
            logged and omitted.
        """
        seen: set[int] = set()
        created: list[Notification] = []
        failed = 0

        for delivery in deliveries:
            if delivery.key in seen:
                continue
            seen.add(delivery.key)
            try:
                created.append(cls.deliver(delivery))
            except NotificationDeliveryError:
                failed += 1
                logger.exception(
                    "Notification delivery failed [%s] type=%s recipient=%s",
                    label,
                    delivery.type,
                    delivery.recipient_id,
                )

        if not seen:
            logger.debug("No recipients for event [%s]", label)
            return created

        logger.info(
            "Created %d notification(s) [%s], %d failed",
            len(created),
            label,
            failed,
        )
        return created
