"""
Core app models.

Provides abstract base models and the ``Notification`` record shared by
every app that fans out user-facing alerts.
"""

from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """
    Abstract base model that provides self-updating ``created_at`` and
    ``updated_at`` timestamp fields for every concrete child model.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Updated At",
    )

    class Meta:
        abstract = True


class NotificationType(models.TextChoices):
    """Stable wire values for notification kinds."""

    COMPLAINT_CREATED = "COMPLAINT_CREATED", "Complaint Created"
    COMPLAINT_UPDATED = "COMPLAINT_UPDATED", "Complaint Updated"
    COMPLAINT_ASSIGNED = "COMPLAINT_ASSIGNED", "Complaint Assigned"
    COMPLAINT_RESOLVED = "COMPLAINT_RESOLVED", "Complaint Resolved"
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED", "Message Received"
    STATUS_CHANGED_BY_WARDEN = "STATUS_CHANGED_BY_WARDEN", "Status Changed by Warden"


class Notification(TimeStampedModel):
    """
    User-facing alert produced by the notification dispatcher.

    The record is immutable once written except for ``is_read`` /
    ``read_at`` and ``clicked_at``, which only ever move from unset to set.

    ``complaint_id`` is a weak reference: it identifies the complaint the
    alert is about but does not own or cascade with it.
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="Recipient",
    )
    type = models.CharField(
        max_length=32,
        choices=NotificationType.choices,
        verbose_name="Type",
        db_index=True,
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    complaint_id = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name="Complaint ID",
    )
    payload = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Payload",
        help_text="complaintId plus denormalised category, priority, status and actorName.",
    )
    is_read = models.BooleanField(default=False, verbose_name="Read")
    read_at = models.DateTimeField(null=True, blank=True, verbose_name="Read At")
    clicked_at = models.DateTimeField(null=True, blank=True, verbose_name="Clicked At")

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "is_read"], name="notification_inbox_idx"),
        ]

    def __str__(self):
        return f"[{self.recipient}] {self.title}"
