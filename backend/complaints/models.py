"""
Complaints app models.

Covers the hostel maintenance complaint, from submission by a student
through warden assignment and staff work to resolution and reopening,
plus the append-only conversation attached to each complaint.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.domain.exceptions import DomainError
from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class ComplaintStatus(models.TextChoices):
    """
    Lifecycle states.  Every state may move to every other state;
    ``RESOLVED`` is terminal only in the sense that it closes the
    conversation to students and staff.
    """

    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    RESOLVED = "resolved", "Resolved"


class ComplaintPriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


#: Offered by the submission form; any non-blank category is accepted.
SUGGESTED_CATEGORIES: tuple[str, ...] = (
    "Plumbing",
    "Electrical",
    "Furniture",
    "Room",
    "Pest Control",
    "Cleanliness",
    "Internet/Wi-Fi",
    "Other",
)


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Complaint(TimeStampedModel):
    """
    A single reported facility issue.

    * Created by a student; mutated afterwards only through
      ``ComplaintLifecycleService``.
    * ``date_resolved`` is set exactly when ``status`` is ``RESOLVED``
      (enforced by a check constraint).
    * ``attachments`` never change after creation; ``resolution_images``
      change only when the complaint enters or leaves ``RESOLVED``.
    """

    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reported_complaints",
        verbose_name="Reporter",
    )
    reporter_name = models.CharField(
        max_length=150,
        verbose_name="Reporter Name",
        help_text="Display name of the reporter at submission time.",
    )
    campus = models.CharField(max_length=64, verbose_name="Campus")
    hostel = models.CharField(max_length=64, verbose_name="Hostel")
    category = models.CharField(max_length=64, verbose_name="Category", db_index=True)
    description = models.TextField(verbose_name="Description")
    priority = models.CharField(
        max_length=16,
        choices=ComplaintPriority.choices,
        default=ComplaintPriority.MEDIUM,
        verbose_name="Priority",
    )
    status = models.CharField(
        max_length=16,
        choices=ComplaintStatus.choices,
        default=ComplaintStatus.PENDING,
        verbose_name="Status",
        db_index=True,
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_complaints",
        verbose_name="Assigned Staff",
    )
    attachments = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Attachments",
        help_text="Opaque image references (URLs or data URIs) set at submission.",
    )
    resolution_images = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Resolution Images",
        help_text="Proof of resolution; cleared when the complaint is reopened.",
    )
    date_submitted = models.DateTimeField(
        default=timezone.now,
        verbose_name="Date Submitted",
        db_index=True,
    )
    date_resolved = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Date Resolved",
    )

    class Meta:
        verbose_name = "Complaint"
        verbose_name_plural = "Complaints"
        ordering = ["-date_submitted", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status=ComplaintStatus.RESOLVED, date_resolved__isnull=False)
                    | (~Q(status=ComplaintStatus.RESOLVED) & Q(date_resolved__isnull=True))
                ),
                name="complaint_date_resolved_matches_status",
            ),
        ]

    def __str__(self):
        return f"#{self.pk} {self.category} @ {self.hostel} [{self.get_status_display()}]"

    @property
    def is_resolved(self) -> bool:
        return self.status == ComplaintStatus.RESOLVED


class ConversationEntry(models.Model):
    """
    One remark in a complaint's conversation.

    Entries are inserted once and never updated or deleted; the
    auto-increment primary key is the ordering sequence.  Sender name and
    role are copied at write time so the thread reads the same even if
    the account changes later.
    """

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="remarks",
        verbose_name="Complaint",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="complaint_remarks",
        verbose_name="Sender",
    )
    sender_name = models.CharField(max_length=150, verbose_name="Sender Name")
    sender_role = models.CharField(max_length=16, verbose_name="Sender Role")
    text = models.TextField(verbose_name="Text")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Conversation Entry"
        verbose_name_plural = "Conversation Entries"
        ordering = ["id"]

    def __str__(self):
        return f"[{self.complaint_id}#{self.pk}] {self.sender_name}: {self.text[:40]}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise DomainError("Conversation entries are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise DomainError("Conversation entries are append-only.")
