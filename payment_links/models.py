"""
Database models for the payment_links app.

A payment link is a reusable priced item a clinic sends to patients
(a deposit, a consultation fee, or a payment plan split into instalments).
Links are archived by clearing ``is_active``; they are never deleted
because payments and plans keep pointing at them.
"""
from __future__ import annotations

import uuid

from django.db import models


class PaymentLink(models.Model):
    TYPE_DEPOSIT = "deposit"
    TYPE_TREATMENT = "treatment"
    TYPE_CONSULTATION = "consultation"
    TYPE_OTHER = "other"
    TYPE_PAYMENT_PLAN = "payment_plan"
    TYPE_CHOICES = [
        (TYPE_DEPOSIT, "Deposit"),
        (TYPE_TREATMENT, "Treatment"),
        (TYPE_CONSULTATION, "Consultation"),
        (TYPE_OTHER, "Other"),
        (TYPE_PAYMENT_PLAN, "Payment plan"),
    ]

    CYCLE_WEEKLY = "weekly"
    CYCLE_BIWEEKLY = "bi-weekly"
    CYCLE_MONTHLY = "monthly"
    CYCLE_CHOICES = [
        (CYCLE_WEEKLY, "Weekly"),
        (CYCLE_BIWEEKLY, "Every two weeks"),
        (CYCLE_MONTHLY, "Monthly"),
    ]

    clinic = models.ForeignKey("clinics.Clinic", on_delete=models.CASCADE, related_name="payment_links")
    token = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    amount = models.PositiveIntegerField(help_text="Price in pence; per instalment for plans")
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_OTHER)
    payment_plan = models.BooleanField(default=False)
    payment_count = models.PositiveIntegerField(null=True, blank=True)
    payment_cycle = models.CharField(max_length=20, choices=CYCLE_CHOICES, blank=True)
    plan_total_amount = models.PositiveIntegerField(null=True, blank=True, help_text="Total in pence for plans")
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["clinic", "is_active"], name="paylink_clinic_active_idx"),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def is_plan(self) -> bool:
        return self.payment_plan or self.type == self.TYPE_PAYMENT_PLAN

    @property
    def total_amount(self) -> int:
        """Full price in pence (the plan total for plan links)."""
        if self.is_plan:
            return self.plan_total_amount or self.amount * (self.payment_count or 1)
        return self.amount

    def set_active(self, active: bool) -> None:
        if self.is_active != active:
            self.is_active = active
            self.save(update_fields=["is_active", "updated_at"])
