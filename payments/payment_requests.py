"""
Creating and cancelling payment requests.

Kept apart from :mod:`payments.services` because the plan workflows need
these helpers while the payment services in turn update plans.
"""
from __future__ import annotations

import logging

from django.utils import timezone

from notifications.services import notify_payment_request

from .models import PaymentRequest

logger = logging.getLogger(__name__)


def create_payment_request(
    clinic,
    patient,
    *,
    payment_link=None,
    custom_amount: int | None = None,
    message: str = "",
    notify: bool = True,
) -> PaymentRequest:
    """Create a ``sent`` request for ``patient`` and queue the patient notification."""
    pr = PaymentRequest.objects.create(
        clinic=clinic,
        patient=patient,
        payment_link=payment_link,
        patient_name=patient.name,
        patient_email=patient.email,
        patient_phone=patient.phone,
        custom_amount=custom_amount,
        message=message or "",
        status=PaymentRequest.STATUS_SENT,
        sent_at=timezone.now(),
    )
    logger.info("Payment request %s created for patient %s (clinic %s)", pr.pk, patient.pk, clinic.pk)
    if notify:
        notify_payment_request(pr)
    return pr


def cancel_payment_requests(request_ids) -> int:
    """Cancel every not-yet-paid request in ``request_ids``; returns the count."""
    ids = [rid for rid in request_ids if rid]
    if not ids:
        return 0
    return (
        PaymentRequest.objects.filter(pk__in=ids)
        .exclude(status__in=[PaymentRequest.STATUS_PAID, PaymentRequest.STATUS_CANCELLED])
        .update(status=PaymentRequest.STATUS_CANCELLED, updated_at=timezone.now())
    )
