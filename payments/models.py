"""
Database models for the payments app.

A ``PaymentRequest`` is what a patient receives: a public token opening the
payment page for a link, a custom amount or a plan instalment.  A
``Payment`` records money actually taken through Stripe (or recorded
manually by the clinic) along with fees and refunds.  All amounts are
integer pence.
"""
from __future__ import annotations

import secrets
import uuid

from django.core.exceptions import ObjectDoesNotExist
from django.db import models

from . import statuses

PAYMENT_REF_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_payment_ref(prefix: str = "CLN", length: int = 6) -> str:
    """Human friendly reference such as ``CLN-7KQ2ZD``."""
    code = "".join(secrets.choice(PAYMENT_REF_ALPHABET) for _ in range(length))
    return f"{prefix}-{code}"


class PaymentRequest(models.Model):
    STATUS_SENT = "sent"
    STATUS_PAID = "paid"
    STATUS_CANCELLED = "cancelled"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [
        (STATUS_SENT, "Sent"),
        (STATUS_PAID, "Paid"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_FAILED, "Failed"),
    ]

    clinic = models.ForeignKey("clinics.Clinic", on_delete=models.CASCADE, related_name="payment_requests")
    patient = models.ForeignKey(
        "patients.Patient", on_delete=models.SET_NULL, null=True, blank=True, related_name="payment_requests"
    )
    payment_link = models.ForeignKey(
        "payment_links.PaymentLink", on_delete=models.SET_NULL, null=True, blank=True, related_name="payment_requests"
    )
    token = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    patient_name = models.CharField(max_length=255, blank=True)
    patient_email = models.EmailField(blank=True)
    patient_phone = models.CharField(max_length=50, blank=True)
    custom_amount = models.PositiveIntegerField(null=True, blank=True, help_text="Pence")
    message = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SENT, db_index=True)
    payment = models.ForeignKey(
        "payments.Payment", on_delete=models.SET_NULL, null=True, blank=True, related_name="requests"
    )
    sent_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["clinic", "status"], name="payreq_clinic_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Request {self.token} ({self.status})"

    @property
    def installment(self):
        """The plan instalment this request collects, if any."""
        try:
            return self.schedule
        except ObjectDoesNotExist:
            return None

    @property
    def amount(self) -> int:
        """Amount due in pence."""
        if self.custom_amount:
            return self.custom_amount
        installment = self.installment
        if installment is not None:
            return installment.amount
        if self.payment_link_id:
            return self.payment_link.amount
        return 0

    @property
    def is_payable(self) -> bool:
        return self.status in (self.STATUS_SENT, self.STATUS_FAILED)


class Payment(models.Model):
    STATUS_PAID = statuses.PAID
    STATUS_REFUNDED = statuses.REFUNDED
    STATUS_PARTIALLY_REFUNDED = statuses.PARTIALLY_REFUNDED
    STATUS_CHOICES = [
        (STATUS_PAID, "Paid"),
        (STATUS_REFUNDED, "Refunded"),
        (STATUS_PARTIALLY_REFUNDED, "Partially refunded"),
    ]

    METHOD_CARD = "card"
    METHOD_MANUAL = "manual"
    METHOD_CHOICES = [
        (METHOD_CARD, "Card (Stripe)"),
        (METHOD_MANUAL, "Recorded manually"),
    ]

    clinic = models.ForeignKey("clinics.Clinic", on_delete=models.CASCADE, related_name="payments")
    patient = models.ForeignKey(
        "patients.Patient", on_delete=models.SET_NULL, null=True, blank=True, related_name="payments"
    )
    payment_link = models.ForeignKey(
        "payment_links.PaymentLink", on_delete=models.SET_NULL, null=True, blank=True, related_name="payments"
    )
    payment_schedule = models.ForeignKey(
        "plans.PaymentSchedule", on_delete=models.SET_NULL, null=True, blank=True, related_name="payments"
    )
    patient_name = models.CharField(max_length=255, blank=True)
    patient_email = models.EmailField(blank=True)
    patient_phone = models.CharField(max_length=50, blank=True)
    amount_paid = models.PositiveIntegerField()
    refund_amount = models.PositiveIntegerField(default=0)
    platform_fee = models.PositiveIntegerField(default=0)
    stripe_fee = models.PositiveIntegerField(default=0)
    net_amount = models.IntegerField(default=0)
    payment_ref = models.CharField(max_length=32, db_index=True)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default=METHOD_CARD)
    stripe_payment_id = models.CharField(max_length=255, unique=True, null=True, blank=True)
    stripe_refund_id = models.CharField(max_length=255, blank=True)
    stripe_refund_fee = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PAID, db_index=True)
    paid_at = models.DateTimeField()
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-paid_at", "-id"]
        indexes = [
            models.Index(fields=["clinic", "paid_at"], name="payment_clinic_paid_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.payment_ref} ({self.status})"

    @property
    def refundable_amount(self) -> int:
        return max(self.amount_paid - self.refund_amount, 0)
