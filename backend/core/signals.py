"""
Push-on-write wiring for ``Notification`` records.

Every committed save of a notification is published to the recipient's
channel on ``core.realtime.hub`` as a full ``NotificationSerializer``
snapshot.  Bulk updates bypass ``post_save``; callers performing them
use ``publish_notification`` directly.
"""

from __future__ import annotations

import logging
from functools import partial

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Notification
from .realtime import hub, notifications_channel

logger = logging.getLogger(__name__)


def notification_snapshot(notification_id: int) -> dict | None:
    """Serialize the committed state of one notification."""
    from .serializers import NotificationSerializer

    notification = Notification.objects.filter(pk=notification_id).first()
    if notification is None:
        return None
    return dict(NotificationSerializer(notification).data)


def publish_notification(recipient_id: int, notification_id: int) -> None:
    hub.publish_on_commit(
        notifications_channel(recipient_id),
        notification_id,
        partial(notification_snapshot, notification_id),
    )


@receiver(post_save, sender=Notification, dispatch_uid="core.publish_notification")
def publish_saved_notification(sender, instance: Notification, **kwargs) -> None:
    publish_notification(instance.recipient_id, instance.pk)
