from django.contrib import admin

from .models import PaymentActivity, PaymentSchedule, Plan


class PaymentScheduleInline(admin.TabularInline):
    model = PaymentSchedule
    extra = 0
    fields = ("payment_number", "amount", "due_date", "status", "payment_request")
    readonly_fields = fields
    can_delete = False


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "clinic", "patient", "status", "paid_installments", "total_installments", "next_due_date")
    list_filter = ("status", "payment_frequency", "has_overdue_payments")
    search_fields = ("title", "patient__name", "patient__email")
    raw_id_fields = ("clinic", "patient", "payment_link", "created_by")
    inlines = [PaymentScheduleInline]


@admin.register(PaymentSchedule)
class PaymentScheduleAdmin(admin.ModelAdmin):
    list_display = ("id", "plan", "payment_number", "amount", "due_date", "status")
    list_filter = ("status",)
    raw_id_fields = ("plan", "clinic", "patient", "payment_link", "payment_request")


@admin.register(PaymentActivity)
class PaymentActivityAdmin(admin.ModelAdmin):
    list_display = ("id", "action_type", "clinic", "plan", "patient", "performed_by", "created_at")
    list_filter = ("action_type",)
    readonly_fields = ("clinic", "patient", "payment_link", "plan", "action_type", "details", "performed_by", "created_at")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
