"""
Patient lookup and deletion helpers shared by the payment link and plan flows.
"""
from __future__ import annotations

import logging

from django.db.models import ProtectedError
from rest_framework import status

from common.exceptions import ServiceError
from payments.models import PaymentRequest

from .models import Patient

logger = logging.getLogger(__name__)


def find_or_create_patient(clinic, *, name: str, email: str = "", phone: str = "") -> Patient:
    """Return the clinic's patient with this email, creating one if needed.

    Missing phone/name details on an existing record are filled in from the
    new values; existing values are never overwritten.
    """
    email = (email or "").strip().lower()
    patient = None
    if email:
        patient = Patient.objects.filter(clinic=clinic, email__iexact=email).order_by("id").first()

    if patient is None:
        patient = Patient.objects.create(clinic=clinic, name=(name or email).strip(), email=email, phone=phone or "")
        logger.info("Created patient %s for clinic %s", patient.pk, clinic.pk)
        return patient

    changed = []
    if phone and not patient.phone:
        patient.phone = phone
        changed.append("phone")
    if name and not patient.name:
        patient.name = name.strip()
        changed.append("name")
    if changed:
        patient.save(update_fields=changed + ["updated_at"])
    return patient


class PatientInUse(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "This patient has payment history and cannot be deleted."


def delete_patient(patient: Patient) -> None:
    """Delete a patient that has no plans, payments or open payment requests.

    Plans and their instalments reference the patient with ``PROTECT`` so a
    patient with billing history is never removed out from under them.
    """
    open_requests = patient.payment_requests.filter(
        status__in=[PaymentRequest.STATUS_SENT, PaymentRequest.STATUS_FAILED]
    )
    if patient.plans.exists() or patient.payments.exists() or open_requests.exists():
        raise PatientInUse()
    patient_id = patient.pk
    try:
        patient.delete()
    except ProtectedError as exc:
        raise PatientInUse() from exc
    logger.info("Deleted patient %s of clinic %s", patient_id, patient.clinic_id)
