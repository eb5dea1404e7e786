from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "recipient", "type", "title", "complaint_id",
                    "is_read", "created_at")
    list_filter = ("type", "is_read")
    search_fields = ("title", "message", "recipient__username")
    readonly_fields = ("recipient", "type", "title", "message", "complaint_id",
                       "payload", "is_read", "read_at", "clicked_at",
                       "created_at", "updated_at")

    def has_add_permission(self, request):
        return False
