"""
Payment workflows: creating Stripe payment intents, recording successful
and failed payments from webhooks, and refunds.

Money moves as destination charges: the patient pays the platform, the
clinic's connected account receives the transfer and the platform keeps an
application fee of ``PLATFORM_FEE_PERCENT`` of the amount.
"""
from __future__ import annotations

import logging

from django.core.exceptions import ImproperlyConfigured, ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from clinics.models import Clinic, get_platform_fee_percent
from common.currency import calculate_platform_fee
from common.exceptions import PaymentProcessingError, ServiceError
from notifications.services import notify_payment_failed, notify_payment_refund, notify_payment_success
from patients.services import find_or_create_patient
from payment_links.models import PaymentLink
from plans.models import PaymentActivity, PaymentSchedule, Plan
from plans.services import update_plan_payment_metrics

from . import statuses as ps
from .models import Payment, PaymentRequest, generate_payment_ref
from .stripe_client import get_gateway

logger = logging.getLogger(__name__)


class PaymentError(ServiceError):
    default_message = "The payment could not be processed."


def _int_or_none(value):
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Payment page
# ---------------------------------------------------------------------------

def resolve_payment_target(*, request_token=None, link_token=None) -> dict:
    """Find what a public payment-page token points at.

    Returns a dict with ``clinic``, ``payment_link``, ``payment_request``,
    ``installment`` and ``amount`` (pence).
    """
    if request_token:
        try:
            pr = PaymentRequest.objects.select_related("clinic", "payment_link", "patient").get(token=request_token)
        except (PaymentRequest.DoesNotExist, DjangoValidationError):
            raise PaymentError("Payment request not found.")
        return {
            "clinic": pr.clinic,
            "payment_link": pr.payment_link,
            "payment_request": pr,
            "installment": pr.installment,
            "amount": pr.amount,
        }
    if link_token:
        try:
            link = PaymentLink.objects.select_related("clinic").get(token=link_token)
        except (PaymentLink.DoesNotExist, DjangoValidationError):
            raise PaymentError("Payment link not found.")
        return {
            "clinic": link.clinic,
            "payment_link": link,
            "payment_request": None,
            "installment": None,
            "amount": link.amount,
        }
    raise PaymentError("A payment request or payment link token is required.")


def create_intent_for_token(
    *,
    request_token=None,
    link_token=None,
    amount: int | None = None,
    patient_name: str = "",
    patient_email: str = "",
    patient_phone: str = "",
) -> dict:
    """Create a Stripe payment intent for a payment request or payment link.

    The amount always comes from the stored request or link; a client
    supplied ``amount`` must match it.
    """
    target = resolve_payment_target(request_token=request_token, link_token=link_token)
    clinic: Clinic = target["clinic"]
    pr: PaymentRequest | None = target["payment_request"]
    link: PaymentLink | None = target["payment_link"]
    installment = target["installment"]

    if pr is not None and not pr.is_payable:
        raise PaymentError(f"This payment request is {pr.status}.")
    if pr is None:
        if not link.is_active:
            raise PaymentError("This payment link is no longer active.")
        if link.is_plan:
            raise PaymentError("Payment plans are paid through the requests sent for each instalment.")
    if not clinic.is_stripe_connected or not clinic.stripe_account_id:
        raise PaymentError("Payment processing is not available for this clinic.")

    due = target["amount"]
    if amount is not None and amount != due:
        raise PaymentError("Amount does not match the amount due.")
    if due <= 0:
        raise PaymentError("Invalid payment amount.")

    fee_percent = get_platform_fee_percent()
    platform_fee = calculate_platform_fee(due, fee_percent)
    reference = generate_payment_ref()
    name = patient_name or (pr.patient_name if pr else "")
    email = patient_email or (pr.patient_email if pr else "")
    phone = patient_phone or (pr.patient_phone if pr else "")
    metadata = {
        "clinic_id": clinic.pk,
        "payment_link_id": link.pk if link else "",
        "request_id": pr.pk if pr else "",
        "schedule_id": installment.pk if installment else "",
        "plan_id": installment.plan_id if installment else "",
        "platform_fee_percent": fee_percent,
        "payment_reference": reference,
        "patient_name": name,
        "patient_email": email,
        "patient_phone": phone,
        "custom_amount": pr.custom_amount if pr and pr.custom_amount else "",
    }

    intent = get_gateway().create_payment_intent(
        amount=due,
        destination_account=clinic.stripe_account_id,
        application_fee=platform_fee,
        metadata=metadata,
        receipt_email=email or None,
    )
    logger.info(
        "Payment intent %s created for clinic %s: %s pence, fee %s (ref %s)",
        intent["id"], clinic.pk, due, platform_fee, reference,
    )
    return {
        "client_secret": intent["client_secret"],
        "payment_intent_id": intent["id"],
        "amount": due,
        "platform_fee": platform_fee,
        "payment_reference": reference,
    }


# ---------------------------------------------------------------------------
# Webhook handlers
# ---------------------------------------------------------------------------

def _stripe_fee_for(intent) -> int:
    charge_id = intent.get("latest_charge")
    if isinstance(charge_id, dict):
        charge_id = charge_id.get("id")
    if not charge_id:
        return 0
    try:
        return get_gateway().retrieve_charge_fee(charge_id)
    except (PaymentProcessingError, ImproperlyConfigured) as exc:
        logger.warning("Stripe fee unavailable for %s: %s", intent.get("id"), exc)
        return 0


def record_successful_payment(intent) -> Payment | None:
    """Record a ``payment_intent.succeeded`` event.

    Safe to call more than once for the same intent: the second call
    returns the existing payment.
    """
    intent_id = intent["id"]
    existing = Payment.objects.filter(stripe_payment_id=intent_id).first()
    if existing is not None:
        logger.info("Payment intent %s already recorded as payment %s", intent_id, existing.pk)
        return existing

    metadata = intent.get("metadata") or {}
    clinic = Clinic.objects.filter(pk=_int_or_none(metadata.get("clinic_id"))).first()
    if clinic is None:
        logger.error("Payment intent %s has no known clinic in its metadata", intent_id)
        return None

    amount = int(intent.get("amount_received") or intent.get("amount") or 0)
    platform_fee = int(intent.get("application_fee_amount") or 0)
    stripe_fee = _stripe_fee_for(intent)
    now = timezone.now()

    try:
        with transaction.atomic():
            pr = None
            request_id = _int_or_none(metadata.get("request_id"))
            if request_id:
                pr = PaymentRequest.objects.select_for_update().filter(pk=request_id, clinic=clinic).first()

            schedule = None
            schedule_id = _int_or_none(metadata.get("schedule_id"))
            if schedule_id:
                schedule = PaymentSchedule.objects.filter(pk=schedule_id, clinic=clinic).first()
            elif pr is not None:
                schedule = pr.installment

            patient = pr.patient if pr is not None else None
            name = metadata.get("patient_name") or (pr.patient_name if pr else "")
            email = metadata.get("patient_email") or (pr.patient_email if pr else "")
            phone = metadata.get("patient_phone") or (pr.patient_phone if pr else "")
            if patient is None and schedule is not None:
                patient = schedule.patient
            if patient is None and name:
                patient = find_or_create_patient(clinic, name=name, email=email, phone=phone)

            link = None
            link_id = _int_or_none(metadata.get("payment_link_id"))
            if link_id:
                link = PaymentLink.objects.filter(pk=link_id, clinic=clinic).first()

            payment = Payment.objects.create(
                clinic=clinic,
                patient=patient,
                payment_link=link,
                payment_schedule=schedule,
                patient_name=name or (patient.name if patient else ""),
                patient_email=email or (patient.email if patient else ""),
                patient_phone=phone or (patient.phone if patient else ""),
                amount_paid=amount,
                platform_fee=platform_fee,
                stripe_fee=stripe_fee,
                net_amount=amount - stripe_fee - platform_fee,
                payment_ref=metadata.get("payment_reference") or generate_payment_ref(),
                method=Payment.METHOD_CARD,
                stripe_payment_id=intent_id,
                status=Payment.STATUS_PAID,
                paid_at=now,
            )

            if pr is not None:
                pr.status = PaymentRequest.STATUS_PAID
                pr.payment = payment
                pr.paid_at = now
                pr.save(update_fields=["status", "payment", "paid_at", "updated_at"])

            if schedule is not None:
                _mark_installment_paid(schedule, payment)
            else:
                PaymentActivity.log(
                    PaymentActivity.ACTION_PAYMENT_RECEIVED,
                    clinic=clinic,
                    patient=patient,
                    payment_link=link,
                    payment_id=payment.pk,
                    payment_reference=payment.payment_ref,
                    amount=amount,
                    payment_request_id=pr.pk if pr else None,
                )
            notify_payment_success(payment)
    except IntegrityError:
        # a concurrent delivery of the same event won the unique constraint
        existing = Payment.objects.filter(stripe_payment_id=intent_id).first()
        if existing is None:
            raise
        return existing

    logger.info(
        "Recorded payment %s (%s) for clinic %s: %s pence, net %s",
        payment.pk, payment.payment_ref, clinic.pk, amount, payment.net_amount,
    )
    return payment


def _mark_installment_paid(schedule: PaymentSchedule, payment: Payment) -> None:
    plan = Plan.objects.select_for_update().get(pk=schedule.plan_id)
    schedule = PaymentSchedule.objects.select_for_update().get(pk=schedule.pk)
    if ps.is_payment_status_transition_valid(schedule.status, ps.PAID):
        schedule.status = ps.PAID
        schedule.save(update_fields=["status", "updated_at"])
    else:
        # paid through a request opened before the plan was paused or cancelled
        logger.warning(
            "Instalment %s is %s; payment %s recorded without changing it",
            schedule.pk, schedule.status, payment.pk,
        )
    update_plan_payment_metrics(plan)
    PaymentActivity.log(
        PaymentActivity.ACTION_INSTALLMENT_PAYMENT_RECEIVED,
        clinic=plan.clinic,
        plan=plan,
        installment_id=schedule.pk,
        payment_number=schedule.payment_number,
        amount=payment.amount_paid,
        payment_id=payment.pk,
        payment_reference=payment.payment_ref,
    )


def handle_payment_failed(intent) -> PaymentRequest | None:
    """Mark the request behind a failed intent as failed.

    The instalment, if any, keeps its status so the patient can retry.
    """
    metadata = intent.get("metadata") or {}
    request_id = _int_or_none(metadata.get("request_id"))
    error = intent.get("last_payment_error") or {}
    message = error.get("message") if hasattr(error, "get") else ""
    message = message or "Payment failed"

    if not request_id:
        logger.info("Payment intent %s failed with no payment request: %s", intent.get("id"), message)
        return None

    with transaction.atomic():
        pr = PaymentRequest.objects.select_for_update().select_related("clinic").filter(pk=request_id).first()
        if pr is None:
            logger.warning("Failed intent %s points at missing request %s", intent.get("id"), request_id)
            return None
        if pr.status == PaymentRequest.STATUS_SENT:
            pr.status = PaymentRequest.STATUS_FAILED
            pr.save(update_fields=["status", "updated_at"])
        installment = pr.installment
        PaymentActivity.log(
            PaymentActivity.ACTION_PAYMENT_FAILED,
            clinic=pr.clinic,
            plan=installment.plan if installment else None,
            patient=pr.patient,
            payment_link=pr.payment_link,
            payment_request_id=pr.pk,
            payment_intent_id=intent.get("id"),
            amount=pr.amount,
            failure_message=message,
        )
        notify_payment_failed(pr, message)

    logger.info("Payment request %s failed: %s", pr.pk, message)
    return pr


def handle_account_updated(account) -> Clinic | None:
    """Move a clinic to ``connected`` once Stripe enables charges."""
    clinic = Clinic.objects.filter(stripe_account_id=account.get("id")).first()
    if clinic is None:
        logger.info("account.updated for unknown account %s", account.get("id"))
        return None
    if account.get("charges_enabled") and clinic.advance_stripe_status(Clinic.STRIPE_CONNECTED):
        logger.info("Clinic %s connected to Stripe via webhook", clinic.pk)
    return clinic


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------

def refund_payment(payment, *, amount: int | None = None, full_refund: bool = False, user=None) -> Payment:
    """Refund part or all of what is left on a payment.

    Card payments are refunded through Stripe (platform fee returned,
    transfer reversed); manually recorded payments are only updated here.

    Every database write happens before Stripe is called, so a failure in
    bookkeeping rolls back without any money moving.  The Stripe call is
    keyed on the payment and the cumulative refunded amount, so a retry
    after a lost commit returns the same refund instead of issuing another.
    """
    with transaction.atomic():
        payment = Payment.objects.select_for_update().select_related("clinic").get(pk=payment.pk)
        remaining = payment.refundable_amount
        if payment.status == Payment.STATUS_REFUNDED or remaining <= 0:
            raise PaymentError("This payment has already been fully refunded.")
        if full_refund or amount is None:
            amount = remaining
        if amount <= 0:
            raise PaymentError("Refund amount must be positive.")
        if amount > remaining:
            raise PaymentError("Refund amount exceeds the amount left to refund.")

        total_refunded = payment.refund_amount + amount
        new_status = Payment.STATUS_REFUNDED if total_refunded >= payment.amount_paid else Payment.STATUS_PARTIALLY_REFUNDED
        ps.ensure_transition(payment.status, new_status)

        payment.refund_amount = total_refunded
        payment.status = new_status
        payment.refunded_at = timezone.now()
        payment.save(update_fields=["refund_amount", "status", "refunded_at", "updated_at"])

        plan = None
        if payment.payment_schedule_id:
            schedule = PaymentSchedule.objects.select_for_update().get(pk=payment.payment_schedule_id)
            if ps.is_payment_status_paid(schedule.status):
                schedule.status = ps.ensure_transition(schedule.status, new_status, what="installment")
                schedule.save(update_fields=["status", "updated_at"])
            plan = Plan.objects.select_for_update().get(pk=schedule.plan_id)
            update_plan_payment_metrics(plan)

        PaymentActivity.log(
            PaymentActivity.ACTION_PAYMENT_REFUNDED,
            clinic=payment.clinic,
            plan=plan,
            patient=payment.patient,
            payment_link=payment.payment_link,
            user=user,
            payment_id=payment.pk,
            payment_reference=payment.payment_ref,
            refund_amount=amount,
            total_refunded=total_refunded,
            is_full_refund=new_status == Payment.STATUS_REFUNDED,
        )
        notify_payment_refund(payment, amount)

        # Stripe is called last so a failure above never reaches it.
        if payment.stripe_payment_id:
            gateway = get_gateway()
            refund = gateway.create_refund(
                payment_intent_id=payment.stripe_payment_id,
                amount=amount,
                idempotency_key=f"refund-{payment.pk}-{total_refunded}",
            )
            payment.stripe_refund_id = refund["id"]
            payment.stripe_refund_fee += gateway.retrieve_refund_fee(refund)
            payment.save(update_fields=["stripe_refund_id", "stripe_refund_fee", "updated_at"])

    logger.info("Refunded %s pence on payment %s (%s)", amount, payment.pk, new_status)
    return payment
