from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "type", "recipient_type", "status", "retry_count", "created_at", "processed_at")
    list_filter = ("status", "type", "recipient_type")
    search_fields = ("reference_id", "last_error")
    readonly_fields = ("created_at", "updated_at", "processed_at")
    actions = ["requeue"]

    @admin.action(description="Requeue selected notifications")
    def requeue(self, request, queryset):
        updated = queryset.exclude(status=Notification.STATUS_PENDING).update(
            status=Notification.STATUS_PENDING, retry_count=0, last_error=""
        )
        self.message_user(request, f"{updated} notification(s) requeued.")
