"""
Complaints app serializers.

Request serializers only check shape (types, enum membership); the
domain rules (campus/hostel catalog, proof requirement, remark length)
are enforced in ``services.py`` so every entry point shares them.

``ComplaintDetailSerializer`` doubles as the full-record snapshot pushed
to real-time subscribers.
"""

from __future__ import annotations

from rest_framework import serializers

from .models import Complaint, ComplaintPriority, ComplaintStatus, ConversationEntry


# ═══════════════════════════════════════════════════════════════════
#  Response Serializers
# ═══════════════════════════════════════════════════════════════════


class ConversationEntrySerializer(serializers.ModelSerializer):
    sender_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = ConversationEntry
        fields = ["id", "sender_id", "sender_name", "sender_role", "text", "created_at"]
        read_only_fields = fields


class ComplaintListSerializer(serializers.ModelSerializer):
    """
    Complaint row for dashboards.
    """

    reporter_id = serializers.IntegerField(read_only=True)
    assigned_to_id = serializers.IntegerField(read_only=True, allow_null=True)
    assigned_to_name = serializers.SerializerMethodField()
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    priority_display = serializers.CharField(source="get_priority_display", read_only=True)

    class Meta:
        model = Complaint
        fields = [
            "id",
            "reporter_id",
            "reporter_name",
            "campus",
            "hostel",
            "category",
            "description",
            "priority",
            "priority_display",
            "status",
            "status_display",
            "assigned_to_id",
            "assigned_to_name",
            "attachments",
            "resolution_images",
            "date_submitted",
            "date_resolved",
            "updated_at",
        ]
        read_only_fields = fields

    def get_assigned_to_name(self, obj: Complaint) -> str | None:
        return obj.assigned_to.display_name if obj.assigned_to_id else None


class ComplaintDetailSerializer(ComplaintListSerializer):
    """
    Full complaint including the conversation, in insertion order.
    """

    remarks = ConversationEntrySerializer(many=True, read_only=True)

    class Meta(ComplaintListSerializer.Meta):
        fields = ComplaintListSerializer.Meta.fields + ["remarks"]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  Request Serializers
# ═══════════════════════════════════════════════════════════════════


class ComplaintFilterSerializer(serializers.Serializer):
    """Query parameters accepted by the complaint list."""

    status = serializers.ChoiceField(choices=ComplaintStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=ComplaintPriority.choices, required=False)
    category = serializers.CharField(required=False)
    campus = serializers.CharField(required=False)
    hostel = serializers.CharField(required=False)
    search = serializers.CharField(required=False)


class ComplaintCreateSerializer(serializers.Serializer):
    campus = serializers.CharField(max_length=64)
    hostel = serializers.CharField(max_length=64)
    category = serializers.CharField(max_length=64)
    description = serializers.CharField()
    priority = serializers.ChoiceField(
        choices=ComplaintPriority.choices,
        default=ComplaintPriority.MEDIUM,
    )
    attachments = serializers.ListField(
        child=serializers.CharField(),
        required=False,
        default=list,
        help_text="Image URLs or data URIs.",
    )


class SetStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ComplaintStatus.choices)
    resolution_images = serializers.ListField(
        child=serializers.CharField(),
        required=False,
        default=list,
        help_text="Proof images; only accepted together with status 'resolved'.",
    )


class AssignSerializer(serializers.Serializer):
    assigned_to = serializers.IntegerField(
        allow_null=True,
        help_text="PK of an active staff account, or null to unassign.",
    )


class ComplaintUpdateSerializer(serializers.Serializer):
    """Combined status + assignment update; both parts optional."""

    status = serializers.ChoiceField(choices=ComplaintStatus.choices, required=False)
    resolution_images = serializers.ListField(
        child=serializers.CharField(),
        required=False,
    )
    assigned_to = serializers.IntegerField(allow_null=True, required=False)


class RemarkCreateSerializer(serializers.Serializer):
    text = serializers.CharField(allow_blank=True, trim_whitespace=False)


class ComplaintMetaSerializer(serializers.Serializer):
    statuses = serializers.ListField(child=serializers.DictField())
    priorities = serializers.ListField(child=serializers.DictField())
    categories = serializers.ListField(child=serializers.CharField())
    campuses = serializers.DictField(child=serializers.ListField(child=serializers.CharField()))
    max_attachments = serializers.IntegerField()
    max_resolution_images = serializers.IntegerField()
