"""
Core app service layer.

Business logic behind the notification inbox endpoints served by the
core app.  Notification **creation** lives in
``core.domain.notifications``; this module only reads notifications and
flips their ``is_read`` / ``clicked_at`` flags on behalf of the
recipient.

Flag semantics
--------------
* ``is_read`` / ``read_at`` and ``clicked_at`` only move from unset to
  set.  Repeating a call never resets a flag and never rewrites a
  timestamp that is already present.
* ``mark_all_as_read`` only touches unread notifications, so a second
  call in a row updates nothing.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db.models import QuerySet
from django.utils import timezone

from core.domain.exceptions import NotFound
from core.domain.transactions import store_write
from core.realtime import Subscription, hub, notifications_channel

from .models import Notification
from .serializers import NotificationSerializer
from .signals import publish_notification

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Notification Inbox Service
# ═══════════════════════════════════════════════════════════════════

class NotificationInboxService:
    """
    Handles listing and marking notifications for a given recipient.
    """

    def __init__(self, user: Any) -> None:
        self.user = user

    def list_notifications(self, *, unread_only: bool = False) -> QuerySet[Notification]:
        """Return notifications for ``self.user``, most recent first."""
        qs = Notification.objects.filter(recipient=self.user)
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs.order_by("-created_at", "-id")

    def unread_count(self) -> int:
        return Notification.objects.filter(recipient=self.user, is_read=False).count()

    def mark_as_read(self, notification_id: Any) -> Notification:
        """
        Mark a single notification as read.

        Raises:
            NotFound: The notification does not exist or belongs to
                another recipient.
        """
        notification = self._get_own(notification_id)
        if notification.is_read:
            return notification

        notification.is_read = True
        notification.read_at = timezone.now()
        with store_write("mark the notification as read"):
            notification.save(update_fields=["is_read", "read_at", "updated_at"])
        return notification

    def mark_as_clicked(self, notification_id: Any) -> Notification:
        """
        Record that the recipient opened the notification.

        Clicking implies reading; both flags are set if still unset.
        """
        notification = self._get_own(notification_id)
        now = timezone.now()
        update_fields = []
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = now
            update_fields += ["is_read", "read_at"]
        if notification.clicked_at is None:
            notification.clicked_at = now
            update_fields.append("clicked_at")
        if not update_fields:
            return notification

        with store_write("mark the notification as clicked"):
            notification.save(update_fields=[*update_fields, "updated_at"])
        return notification

    def mark_all_as_read(self) -> int:
        """
        Mark every unread notification of ``self.user`` as read.

        Returns:
            The number of notifications that changed.
        """
        now = timezone.now()
        with store_write("mark notifications as read"):
            unread = Notification.objects.filter(recipient=self.user, is_read=False)
            ids = list(unread.values_list("pk", flat=True))
            updated = Notification.objects.filter(pk__in=ids, is_read=False).update(
                is_read=True,
                read_at=now,
                updated_at=now,
            )
            for notification_id in ids:
                publish_notification(self.user.pk, notification_id)

        logger.info("Marked %d notification(s) read for user %s", updated, self.user.pk)
        return updated

    def subscribe(self) -> Subscription:
        """
        Open a real-time subscription to ``self.user``'s notifications.

        The current notifications are queued first, oldest first, so the
        subscriber starts from a complete picture.
        """
        initial = [
            (notification.pk, dict(NotificationSerializer(notification).data))
            for notification in self.list_notifications().order_by("created_at", "id")
        ]
        return hub.subscribe(notifications_channel(self.user.pk), initial=initial)

    def _get_own(self, notification_id: Any) -> Notification:
        try:
            return Notification.objects.get(pk=notification_id, recipient=self.user)
        except (Notification.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Notification {notification_id} not found.")
