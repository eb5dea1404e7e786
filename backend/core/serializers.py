"""
Core app serializers.

**Response-only** serializers for the notification endpoints served by
the core app.  They do **not** accept input data; filtering is handled
via query parameters passed to the service layer.

``NotificationSerializer`` is also the snapshot format pushed to
real-time subscribers of a recipient's notification channel.
"""

from __future__ import annotations

from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """
    Read-only serializer for ``Notification`` instances.

    Used by the Notification ViewSet to list notifications for the
    authenticated user, and as the full-record snapshot in pushes.
    """

    recipient_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Notification
        fields = [
            "id",
            "recipient_id",
            "type",
            "title",
            "message",
            "complaint_id",
            "payload",
            "is_read",
            "read_at",
            "clicked_at",
            "created_at",
        ]
        read_only_fields = fields


class UnreadCountSerializer(serializers.Serializer):
    """Bell-badge counter."""

    unread = serializers.IntegerField(read_only=True)


class MarkAllReadResponseSerializer(serializers.Serializer):
    """Number of notifications flipped to read by one call."""

    updated = serializers.IntegerField(read_only=True)
