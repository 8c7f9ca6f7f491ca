"""
Django admin registration for the payments app.

Payments are read-only here; refunds go through the API so Stripe and the
plan bookkeeping stay in step.
"""
from django.contrib import admin

from .models import Payment, PaymentRequest


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "payment_ref",
        "clinic",
        "patient_name",
        "amount_paid",
        "refund_amount",
        "status",
        "method",
        "paid_at",
    )
    list_filter = ("status", "method", "clinic")
    search_fields = ("payment_ref", "patient_name", "patient_email", "stripe_payment_id")
    raw_id_fields = ("clinic", "patient", "payment_link", "payment_schedule")
    ordering = ("-paid_at",)

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return ()
        return [f.name for f in self.model._meta.fields]


@admin.register(PaymentRequest)
class PaymentRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "clinic", "patient_name", "custom_amount", "payment_link", "status", "sent_at", "paid_at")
    list_filter = ("status", "clinic")
    search_fields = ("patient_name", "patient_email", "token")
    raw_id_fields = ("clinic", "patient", "payment_link", "payment")
    ordering = ("-created_at",)
