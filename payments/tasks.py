"""
Celery tasks for the payments app.

The Stripe webhook acknowledges ``payment_intent.succeeded`` straight away
and records the payment here, outside the request/response cycle.
"""
from __future__ import annotations

import logging

from celery import shared_task

from .services import record_successful_payment

logger = logging.getLogger(__name__)


@shared_task
def process_payment_success(intent: dict) -> int | None:
    """Record a succeeded payment intent and return the payment id.

    Args:
        intent: The ``data.object`` of the Stripe event, as a plain dict.
    """
    payment = record_successful_payment(intent)
    if payment is None:
        logger.warning("Payment intent %s could not be matched to a clinic", intent.get("id"))
        return None
    return payment.pk
