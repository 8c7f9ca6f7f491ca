"""
Queueing of outbound notifications.

Payloads are stored with monetary values in pence; the queue processor
converts them to pounds when the webhook is called.  Each helper returns
the queued :class:`Notification`.
"""
from __future__ import annotations

import logging

from django.conf import settings

from .models import Notification

logger = logging.getLogger(__name__)


def queue_notification(type_: str, recipient_type: str, payload: dict, *, reference_id="", clinic=None) -> Notification:
    notification = Notification.objects.create(
        type=type_,
        recipient_type=recipient_type,
        payload=payload,
        reference_id=str(reference_id or ""),
        clinic=clinic,
    )
    logger.info(
        "Queued %s notification %s for %s (ref %s)",
        type_, notification.pk, recipient_type, notification.reference_id or "-",
    )
    return notification


def payment_page_url(token) -> str:
    base = getattr(settings, "PAYMENT_PAGE_BASE_URL", "").rstrip("/")
    return f"{base}/{token}"


def clinic_block(clinic) -> dict:
    return {
        "id": clinic.pk,
        "name": clinic.clinic_name or "Your healthcare provider",
        "email": clinic.email,
        "phone": clinic.phone,
        "address": clinic.formatted_address or None,
    }


def _patient_block(name, email, phone) -> dict:
    return {"name": name or "", "email": email or "", "phone": phone or ""}


def _notification_method(email, phone) -> dict:
    return {"email": bool(email), "sms": bool(phone)}


def _clinic_notification_method(clinic) -> dict:
    """Clinic recipients are reached according to the clinic's own preferences."""
    return {"email": clinic.email_notifications, "sms": clinic.sms_notifications}


def notify_payment_request(payment_request, *, reminder: bool = False) -> Notification:
    """Tell the patient a payment is due, with a link to the payment page."""
    pr = payment_request
    type_ = Notification.TYPE_PAYMENT_REMINDER if reminder else Notification.TYPE_PAYMENT_REQUEST
    payment = {
        "reference": str(pr.token),
        "amount": pr.amount,
        "payment_link": payment_page_url(pr.token),
        "message": pr.message,
        "type": pr.payment_link.type if pr.payment_link_id else "custom",
    }
    schedule = pr.installment
    if schedule is not None:
        payment.update({
            "payment_number": schedule.payment_number,
            "total_payments": schedule.total_payments,
            "due_date": schedule.due_date.isoformat(),
            "plan_title": schedule.plan.title,
        })
    payload = {
        "notification_type": type_,
        "notification_method": _notification_method(pr.patient_email, pr.patient_phone),
        "patient": _patient_block(pr.patient_name, pr.patient_email, pr.patient_phone),
        "payment": payment,
        "clinic": clinic_block(pr.clinic),
    }
    return queue_notification(
        type_, Notification.RECIPIENT_PATIENT, payload, reference_id=pr.pk, clinic=pr.clinic
    )


def _payment_block(payment) -> dict:
    return {
        "reference": payment.payment_ref,
        "amount": payment.amount_paid,
        "refund_amount": payment.refund_amount,
        "platform_fee": payment.platform_fee,
        "stripe_fee": payment.stripe_fee,
        "net_amount": payment.net_amount,
        "status": payment.status,
        "paid_at": payment.paid_at.isoformat() if payment.paid_at else None,
    }


def notify_payment_success(payment) -> list[Notification]:
    """Queue the clinic's 'payment received' and the patient's receipt."""
    clinic = payment.clinic
    patient = _patient_block(payment.patient_name, payment.patient_email, payment.patient_phone)
    queued = [
        queue_notification(
            Notification.TYPE_PAYMENT_RECEIVED,
            Notification.RECIPIENT_CLINIC,
            {
                "notification_type": Notification.TYPE_PAYMENT_RECEIVED,
                "notification_method": _clinic_notification_method(clinic),
                "patient": patient,
                "payment": _payment_block(payment),
                "clinic": clinic_block(clinic),
            },
            reference_id=payment.pk,
            clinic=clinic,
        )
    ]
    if payment.patient_email or payment.patient_phone:
        queued.append(
            queue_notification(
                Notification.TYPE_PAYMENT_SUCCESS,
                Notification.RECIPIENT_PATIENT,
                {
                    "notification_type": Notification.TYPE_PAYMENT_SUCCESS,
                    "notification_method": _notification_method(payment.patient_email, payment.patient_phone),
                    "patient": patient,
                    "payment": _payment_block(payment),
                    "clinic": clinic_block(clinic),
                },
                reference_id=payment.pk,
                clinic=clinic,
            )
        )
    return queued


def notify_payment_failed(payment_request, failure_message: str = "") -> Notification:
    pr = payment_request
    payload = {
        "notification_type": Notification.TYPE_PAYMENT_FAILED,
        "notification_method": _clinic_notification_method(pr.clinic),
        "patient": _patient_block(pr.patient_name, pr.patient_email, pr.patient_phone),
        "payment": {"reference": str(pr.token), "amount": pr.amount, "failure_message": failure_message},
        "clinic": clinic_block(pr.clinic),
    }
    return queue_notification(
        Notification.TYPE_PAYMENT_FAILED, Notification.RECIPIENT_CLINIC, payload, reference_id=pr.pk, clinic=pr.clinic
    )


def notify_payment_refund(payment, refunded_now: int) -> Notification:
    """Tell the patient about a refund; ``refunded_now`` is this refund in pence."""
    block = _payment_block(payment)
    block["refund_amount"] = refunded_now
    block["total_refunded"] = payment.refund_amount
    block["is_full_refund"] = payment.status == payment.STATUS_REFUNDED
    payload = {
        "notification_type": Notification.TYPE_PAYMENT_REFUND,
        "notification_method": _notification_method(payment.patient_email, payment.patient_phone),
        "patient": _patient_block(payment.patient_name, payment.patient_email, payment.patient_phone),
        "payment": block,
        "clinic": clinic_block(payment.clinic),
    }
    return queue_notification(
        Notification.TYPE_PAYMENT_REFUND, Notification.RECIPIENT_PATIENT, payload,
        reference_id=payment.pk, clinic=payment.clinic,
    )
