from django.contrib import admin

from .models import Complaint, ConversationEntry


class ConversationEntryInline(admin.TabularInline):
    model = ConversationEntry
    extra = 0
    can_delete = False
    readonly_fields = ("sender", "sender_name", "sender_role", "text",
                       "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Complaint)
class ComplaintAdmin(admin.ModelAdmin):
    list_display = ("id", "category", "campus", "hostel", "priority",
                    "status", "assigned_to", "date_submitted")
    list_filter = ("status", "priority", "campus")
    search_fields = ("description", "category", "hostel", "reporter_name")
    readonly_fields = ("reporter", "reporter_name", "status", "assigned_to",
                       "attachments", "resolution_images", "date_submitted",
                       "date_resolved", "created_at", "updated_at")
    inlines = [ConversationEntryInline]
