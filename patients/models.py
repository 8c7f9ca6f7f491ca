"""
Database models for the patients app.

Patients belong to exactly one clinic.  A patient record is usually created
implicitly the first time a clinic sends a payment request to a new email
address, and matched by email (case-insensitive) afterwards.
"""
from __future__ import annotations

from django.db import models


class Patient(models.Model):
    clinic = models.ForeignKey("clinics.Clinic", on_delete=models.CASCADE, related_name="patients")
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["clinic", "email"], name="patient_clinic_email_idx"),
        ]

    def __str__(self) -> str:
        return self.name
