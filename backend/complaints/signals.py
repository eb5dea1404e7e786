"""
Push-on-write wiring for complaints.

Any committed save of a ``Complaint`` or a new ``ConversationEntry``
publishes the complaint's full detail snapshot (conversation included)
on the ``complaints`` channel.
"""

from __future__ import annotations

from functools import partial

from django.db.models.signals import post_save
from django.dispatch import receiver

from core.realtime import COMPLAINTS_CHANNEL, hub

from .models import Complaint, ConversationEntry


def complaint_snapshot(complaint_id: int) -> dict | None:
    from core.domain.exceptions import NotFound

    from .serializers import ComplaintDetailSerializer
    from .services import ComplaintQueryService

    try:
        complaint = ComplaintQueryService.get_detail(complaint_id)
    except NotFound:
        return None
    return dict(ComplaintDetailSerializer(complaint).data)


def publish_complaint(complaint_id: int) -> None:
    hub.publish_on_commit(
        COMPLAINTS_CHANNEL,
        complaint_id,
        partial(complaint_snapshot, complaint_id),
    )


@receiver(post_save, sender=Complaint, dispatch_uid="complaints.publish_complaint")
def publish_saved_complaint(sender, instance: Complaint, **kwargs) -> None:
    publish_complaint(instance.pk)


@receiver(post_save, sender=ConversationEntry, dispatch_uid="complaints.publish_remark")
def publish_new_remark(sender, instance: ConversationEntry, created: bool, **kwargs) -> None:
    if created:
        publish_complaint(instance.complaint_id)
