"""
Database models for the clinics app.

A ``Clinic`` is created at signup and edited by its own staff.  Its
Stripe Connect status only moves forward (not connected -> pending ->
connected) except when a platform admin disconnects the account.
``PlatformSetting`` stores key/value overrides for platform-wide
configuration such as the platform fee.
"""
from __future__ import annotations

import os
import uuid

from django.conf import settings
from django.db import models
from django.utils.text import slugify


def clinic_logo_path(instance, filename):
    name, ext = os.path.splitext(filename or "")
    base = slugify(name) or "logo"
    return f"clinic_logos/{base}-{uuid.uuid4().hex[:8]}{ext.lower()}"


class Clinic(models.Model):
    """A clinic collecting payments from its patients."""

    STRIPE_NOT_CONNECTED = "not_connected"
    STRIPE_PENDING = "pending"
    STRIPE_CONNECTED = "connected"
    STRIPE_STATUS_CHOICES = [
        (STRIPE_NOT_CONNECTED, "Not connected"),
        (STRIPE_PENDING, "Pending"),
        (STRIPE_CONNECTED, "Connected"),
    ]
    # Forward-only progression of the Stripe onboarding state.
    STRIPE_STATUS_ORDER = [STRIPE_NOT_CONNECTED, STRIPE_PENDING, STRIPE_CONNECTED]

    clinic_name = models.CharField(max_length=255)
    contact_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    address_line_1 = models.CharField(max_length=255, blank=True)
    address_line_2 = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=120, blank=True)
    postcode = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=120, blank=True, default="United Kingdom")
    logo = models.FileField(upload_to=clinic_logo_path, blank=True, null=True)
    stripe_account_id = models.CharField(max_length=255, blank=True)
    stripe_status = models.CharField(
        max_length=20,
        choices=STRIPE_STATUS_CHOICES,
        default=STRIPE_NOT_CONNECTED,
        db_index=True,
    )
    email_notifications = models.BooleanField(default=True)
    sms_notifications = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.clinic_name

    @property
    def is_stripe_connected(self) -> bool:
        return self.stripe_status == self.STRIPE_CONNECTED and bool(self.stripe_account_id)

    @property
    def formatted_address(self) -> str:
        parts = [self.address_line_1, self.address_line_2, self.city, self.postcode]
        return ", ".join(p for p in parts if p)

    def advance_stripe_status(self, new_status: str) -> bool:
        """Move the Stripe status forward; returns True if it changed.

        Backwards moves are ignored so a late ``account.updated`` webhook
        cannot downgrade a connected clinic.
        """
        order = self.STRIPE_STATUS_ORDER
        if order.index(new_status) <= order.index(self.stripe_status):
            return False
        self.stripe_status = new_status
        self.save(update_fields=["stripe_status", "updated_at"])
        return True

    def disconnect_stripe(self) -> None:
        self.stripe_account_id = ""
        self.stripe_status = self.STRIPE_NOT_CONNECTED
        self.save(update_fields=["stripe_account_id", "stripe_status", "updated_at"])


class PlatformSetting(models.Model):
    """Key/value platform configuration editable by platform admins."""

    PLATFORM_FEE_PERCENT = "platform_fee_percent"
    PATIENT_NOTIFICATION_WEBHOOK = "patient_notification_webhook"
    CLINIC_NOTIFICATION_WEBHOOK = "clinic_notification_webhook"

    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=500)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.key}={self.value}"

    @classmethod
    def get_value(cls, key: str, default: str = "") -> str:
        row = cls.objects.filter(key=key).only("value").first()
        if row and row.value.strip():
            return row.value.strip()
        return default

    @classmethod
    def set_value(cls, key: str, value) -> "PlatformSetting":
        obj, _ = cls.objects.update_or_create(key=key, defaults={"value": str(value)})
        return obj


def get_platform_fee_percent() -> str:
    """Current platform fee percentage as a string (e.g. ``"3"``)."""
    return PlatformSetting.get_value(
        PlatformSetting.PLATFORM_FEE_PERCENT,
        str(getattr(settings, "PLATFORM_FEE_PERCENT", "3")),
    )
