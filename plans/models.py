"""
Database models for the plans app.

A ``Plan`` splits a payment link's total into instalments
(``PaymentSchedule`` rows) due on a weekly, fortnightly or monthly cycle.
``PaymentActivity`` is the append-only audit trail for plans and payments.
"""
from __future__ import annotations

import datetime

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.db import models

from payments import statuses as payment_statuses

from . import statuses as plan_statuses


def due_date_for(start: datetime.date, cycle: str, index: int) -> datetime.date:
    """Due date of the ``index``-th instalment (0-based) from ``start``.

    Monthly cycles use calendar months, clamped to the end of short months.
    """
    if cycle == "weekly":
        return start + datetime.timedelta(days=7 * index)
    if cycle == "bi-weekly":
        return start + datetime.timedelta(days=14 * index)
    return start + relativedelta(months=index)


class Plan(models.Model):
    STATUS_PENDING = plan_statuses.PENDING
    STATUS_ACTIVE = plan_statuses.ACTIVE
    STATUS_PAUSED = plan_statuses.PAUSED
    STATUS_OVERDUE = plan_statuses.OVERDUE
    STATUS_CANCELLED = plan_statuses.CANCELLED
    STATUS_COMPLETED = plan_statuses.COMPLETED
    STATUS_CHOICES = plan_statuses.STATUS_CHOICES

    clinic = models.ForeignKey("clinics.Clinic", on_delete=models.CASCADE, related_name="plans")
    patient = models.ForeignKey("patients.Patient", on_delete=models.PROTECT, related_name="plans")
    payment_link = models.ForeignKey(
        "payment_links.PaymentLink", on_delete=models.SET_NULL, null=True, blank=True, related_name="plans"
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    total_amount = models.PositiveIntegerField(help_text="Pence")
    installment_amount = models.PositiveIntegerField(help_text="Pence")
    total_installments = models.PositiveIntegerField()
    paid_installments = models.PositiveIntegerField(default=0)
    progress = models.PositiveSmallIntegerField(default=0, help_text="0-100")
    payment_frequency = models.CharField(max_length=20)
    start_date = models.DateField()
    next_due_date = models.DateField(null=True, blank=True)
    has_overdue_payments = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["clinic", "status"], name="plan_clinic_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.status})"


class PaymentSchedule(models.Model):
    """One instalment of a plan."""

    STATUS_PENDING = payment_statuses.PENDING
    STATUS_SENT = payment_statuses.SENT
    STATUS_PAID = payment_statuses.PAID
    STATUS_OVERDUE = payment_statuses.OVERDUE
    STATUS_PAUSED = payment_statuses.PAUSED
    STATUS_CANCELLED = payment_statuses.CANCELLED
    STATUS_REFUNDED = payment_statuses.REFUNDED
    STATUS_PARTIALLY_REFUNDED = payment_statuses.PARTIALLY_REFUNDED
    STATUS_CHOICES = payment_statuses.STATUS_CHOICES

    plan = models.ForeignKey(Plan, on_delete=models.CASCADE, related_name="installments")
    clinic = models.ForeignKey("clinics.Clinic", on_delete=models.CASCADE, related_name="installments")
    patient = models.ForeignKey("patients.Patient", on_delete=models.PROTECT, related_name="installments")
    payment_link = models.ForeignKey(
        "payment_links.PaymentLink", on_delete=models.SET_NULL, null=True, blank=True, related_name="installments"
    )
    amount = models.PositiveIntegerField(help_text="Pence")
    due_date = models.DateField(db_index=True)
    payment_number = models.PositiveIntegerField()
    total_payments = models.PositiveIntegerField()
    payment_frequency = models.CharField(max_length=20)
    payment_request = models.OneToOneField(
        "payments.PaymentRequest", on_delete=models.SET_NULL, null=True, blank=True, related_name="schedule"
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["plan_id", "payment_number"]
        constraints = [
            models.UniqueConstraint(fields=["plan", "payment_number"], name="uniq_plan_payment_number"),
        ]

    def __str__(self) -> str:
        return f"{self.plan_id} #{self.payment_number} ({self.status})"


class ImmutableActivityError(Exception):
    """Raised on any attempt to change or remove an activity row."""


class PaymentActivityQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ImmutableActivityError("Payment activity rows cannot be updated.")

    def delete(self):
        raise ImmutableActivityError("Payment activity rows cannot be deleted.")


class PaymentActivity(models.Model):
    ACTION_PLAN_CREATED = "plan_created"
    ACTION_PLAN_PAUSED = "plan_paused"
    ACTION_PLAN_RESUMED = "plan_resumed"
    ACTION_PLAN_CANCELLED = "plan_cancelled"
    ACTION_PLAN_RESCHEDULED = "plan_rescheduled"
    ACTION_PLAN_OVERDUE = "plan_overdue"
    ACTION_PLAN_COMPLETED = "plan_completed"
    ACTION_INSTALLMENT_MARKED_PAID = "installment_marked_paid"
    ACTION_INSTALLMENT_PAYMENT_RECEIVED = "installment_payment_received"
    ACTION_PAYMENT_REQUEST_SENT = "payment_request_sent"
    ACTION_REMINDER_SENT = "reminder_sent"
    ACTION_PAYMENT_RECEIVED = "payment_received"
    ACTION_PAYMENT_FAILED = "payment_failed"
    ACTION_PAYMENT_REFUNDED = "payment_refunded"

    clinic = models.ForeignKey("clinics.Clinic", on_delete=models.CASCADE, related_name="activities")
    patient = models.ForeignKey(
        "patients.Patient", on_delete=models.SET_NULL, null=True, blank=True, related_name="activities"
    )
    payment_link = models.ForeignKey(
        "payment_links.PaymentLink", on_delete=models.SET_NULL, null=True, blank=True, related_name="activities"
    )
    plan = models.ForeignKey(Plan, on_delete=models.SET_NULL, null=True, blank=True, related_name="activities")
    action_type = models.CharField(max_length=50, db_index=True)
    details = models.JSONField(default=dict, blank=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = PaymentActivityQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name_plural = "payment activities"

    def __str__(self) -> str:
        return f"{self.action_type} @ {self.created_at:%Y-%m-%d %H:%M}" if self.created_at else self.action_type

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise ImmutableActivityError("Payment activity rows cannot be updated.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableActivityError("Payment activity rows cannot be deleted.")

    @classmethod
    def log(cls, action_type: str, *, clinic, plan=None, patient=None, payment_link=None, user=None, **details):
        """Append one activity row; ``details`` is stored as JSON."""
        if plan is not None:
            patient = patient or plan.patient
            payment_link = payment_link or plan.payment_link
        return cls.objects.create(
            clinic=clinic,
            plan=plan,
            patient=patient,
            payment_link=payment_link,
            action_type=action_type,
            details=details,
            performed_by=user if getattr(user, "is_authenticated", False) else None,
        )
