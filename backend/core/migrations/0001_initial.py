import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("type", models.CharField(choices=[("COMPLAINT_CREATED", "Complaint Created"), ("COMPLAINT_UPDATED", "Complaint Updated"), ("COMPLAINT_ASSIGNED", "Complaint Assigned"), ("COMPLAINT_RESOLVED", "Complaint Resolved"), ("MESSAGE_RECEIVED", "Message Received"), ("STATUS_CHANGED_BY_WARDEN", "Status Changed by Warden")], db_index=True, max_length=32, verbose_name="Type")),
                ("title", models.CharField(max_length=255, verbose_name="Title")),
                ("message", models.TextField(verbose_name="Message")),
                ("complaint_id", models.PositiveBigIntegerField(blank=True, db_index=True, null=True, verbose_name="Complaint ID")),
                ("payload", models.JSONField(blank=True, default=dict, help_text="complaintId plus denormalised category, priority, status and actorName.", verbose_name="Payload")),
                ("is_read", models.BooleanField(default=False, verbose_name="Read")),
                ("read_at", models.DateTimeField(blank=True, null=True, verbose_name="Read At")),
                ("clicked_at", models.DateTimeField(blank=True, null=True, verbose_name="Clicked At")),
                ("recipient", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="notifications", to=settings.AUTH_USER_MODEL, verbose_name="Recipient")),
            ],
            options={
                "verbose_name": "Notification",
                "verbose_name_plural": "Notifications",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["recipient", "is_read"], name="notification_inbox_idx")],
            },
        ),
    ]
