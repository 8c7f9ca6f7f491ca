"""
Database models for the notifications app.

``Notification`` rows form an outbound queue.  Producers only insert rows;
a periodic Celery task posts each pending row to the patient or clinic
webhook and records the outcome.
"""
from __future__ import annotations

from django.db import models


class Notification(models.Model):
    TYPE_PAYMENT_REQUEST = "payment_request"
    TYPE_PAYMENT_REMINDER = "payment_reminder"
    TYPE_PAYMENT_RECEIVED = "payment_received"
    TYPE_PAYMENT_SUCCESS = "payment_success"
    TYPE_PAYMENT_FAILED = "payment_failed"
    TYPE_PAYMENT_REFUND = "payment_refund"
    TYPE_CHOICES = [
        (TYPE_PAYMENT_REQUEST, "Payment request"),
        (TYPE_PAYMENT_REMINDER, "Payment reminder"),
        (TYPE_PAYMENT_RECEIVED, "Payment received"),
        (TYPE_PAYMENT_SUCCESS, "Payment success"),
        (TYPE_PAYMENT_FAILED, "Payment failed"),
        (TYPE_PAYMENT_REFUND, "Payment refund"),
    ]

    RECIPIENT_PATIENT = "patient"
    RECIPIENT_CLINIC = "clinic"
    RECIPIENT_CHOICES = [
        (RECIPIENT_PATIENT, "Patient"),
        (RECIPIENT_CLINIC, "Clinic"),
    ]

    STATUS_PENDING = "pending"
    STATUS_SENT = "sent"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_SENT, "Sent"),
        (STATUS_FAILED, "Failed"),
    ]

    type = models.CharField(max_length=40, choices=TYPE_CHOICES)
    recipient_type = models.CharField(max_length=20, choices=RECIPIENT_CHOICES)
    payload = models.JSONField(default=dict, blank=True)
    reference_id = models.CharField(max_length=64, blank=True, help_text="Id of the payment/request/plan this is about")
    clinic = models.ForeignKey(
        "clinics.Clinic", on_delete=models.CASCADE, null=True, blank=True, related_name="notifications"
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    retry_count = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="notif_status_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.type} -> {self.recipient_type} ({self.status})"
