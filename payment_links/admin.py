from django.contrib import admin

from .models import PaymentLink


@admin.register(PaymentLink)
class PaymentLinkAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "clinic", "type", "amount", "payment_plan", "payment_count", "is_active", "created_at")
    list_filter = ("type", "payment_plan", "is_active")
    search_fields = ("title", "clinic__clinic_name")
    readonly_fields = ("token", "created_at", "updated_at")
    actions = ["archive", "unarchive"]

    @admin.action(description="Archive selected links")
    def archive(self, request, queryset):
        self.message_user(request, f"{queryset.update(is_active=False)} link(s) archived.")

    @admin.action(description="Unarchive selected links")
    def unarchive(self, request, queryset):
        self.message_user(request, f"{queryset.update(is_active=True)} link(s) unarchived.")
