import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Complaint",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("reporter_name", models.CharField(help_text="Display name of the reporter at submission time.", max_length=150, verbose_name="Reporter Name")),
                ("campus", models.CharField(max_length=64, verbose_name="Campus")),
                ("hostel", models.CharField(max_length=64, verbose_name="Hostel")),
                ("category", models.CharField(db_index=True, max_length=64, verbose_name="Category")),
                ("description", models.TextField(verbose_name="Description")),
                ("priority", models.CharField(choices=[("low", "Low"), ("medium", "Medium"), ("high", "High"), ("urgent", "Urgent")], default="medium", max_length=16, verbose_name="Priority")),
                ("status", models.CharField(choices=[("pending", "Pending"), ("in_progress", "In Progress"), ("resolved", "Resolved")], db_index=True, default="pending", max_length=16, verbose_name="Status")),
                ("attachments", models.JSONField(blank=True, default=list, help_text="Opaque image references (URLs or data URIs) set at submission.", verbose_name="Attachments")),
                ("resolution_images", models.JSONField(blank=True, default=list, help_text="Proof of resolution; cleared when the complaint is reopened.", verbose_name="Resolution Images")),
                ("date_submitted", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="Date Submitted")),
                ("date_resolved", models.DateTimeField(blank=True, null=True, verbose_name="Date Resolved")),
                ("assigned_to", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="assigned_complaints", to=settings.AUTH_USER_MODEL, verbose_name="Assigned Staff")),
                ("reporter", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="reported_complaints", to=settings.AUTH_USER_MODEL, verbose_name="Reporter")),
            ],
            options={
                "verbose_name": "Complaint",
                "verbose_name_plural": "Complaints",
                "ordering": ["-date_submitted", "-id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(status="resolved", date_resolved__isnull=False)
                            | (~models.Q(status="resolved") & models.Q(date_resolved__isnull=True))
                        ),
                        name="complaint_date_resolved_matches_status",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ConversationEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sender_name", models.CharField(max_length=150, verbose_name="Sender Name")),
                ("sender_role", models.CharField(max_length=16, verbose_name="Sender Role")),
                ("text", models.TextField(verbose_name="Text")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("complaint", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="remarks", to="complaints.complaint", verbose_name="Complaint")),
                ("sender", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="complaint_remarks", to=settings.AUTH_USER_MODEL, verbose_name="Sender")),
            ],
            options={
                "verbose_name": "Conversation Entry",
                "verbose_name_plural": "Conversation Entries",
                "ordering": ["id"],
            },
        ),
    ]
