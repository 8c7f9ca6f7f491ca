"""
Plan workflows.

Every function here runs inside ``transaction.atomic()`` with the plan row
locked, so a failure part-way through (a rejected status change, a
database error) leaves nothing half-written.  Business-rule failures raise
:class:`PlanOperationError`; disallowed status changes raise
:class:`common.exceptions.InvalidStatusTransition`.  Both surface to API
clients as HTTP 400 through the project exception handler.
"""
from __future__ import annotations

import datetime
import logging

from django.db import transaction
from django.utils import timezone

from common.exceptions import ServiceError
from notifications.services import notify_payment_request
from payments import statuses as ps
from payments.models import Payment, PaymentRequest, generate_payment_ref
from payments.payment_requests import cancel_payment_requests, create_payment_request

from . import statuses as plan_statuses
from .models import PaymentActivity, PaymentSchedule, Plan, due_date_for

logger = logging.getLogger(__name__)


class PlanOperationError(ServiceError):
    default_message = "The plan operation could not be completed."


def _lock_plan(plan) -> Plan:
    plan_id = plan.pk if isinstance(plan, Plan) else plan
    try:
        return (
            Plan.objects.select_for_update()
            .select_related("clinic", "patient", "payment_link")
            .get(pk=plan_id)
        )
    except Plan.DoesNotExist:
        raise PlanOperationError("Plan not found.")


def _set_plan_status(plan: Plan, new_status: str) -> None:
    plan.status = plan_statuses.ensure_plan_transition(plan.status, new_status)


def _set_installment_statuses(installments, new_status: str) -> int:
    """Validate then bulk-write ``new_status`` on ``installments``."""
    for inst in installments:
        ps.ensure_transition(inst.status, new_status, what="installment")
    if not installments:
        return 0
    return PaymentSchedule.objects.filter(pk__in=[i.pk for i in installments]).update(
        status=new_status, updated_at=timezone.now()
    )


def _reset_to_pending(status: str) -> str:
    """Status path for putting an outstanding instalment back to pending.

    A sent or overdue instalment goes pending via paused, the same as a
    pause followed by a resume.
    """
    if status != ps.PENDING and not ps.is_payment_status_transition_valid(status, ps.PENDING):
        ps.ensure_transition(status, ps.PAUSED, what="installment")
        status = ps.PAUSED
    return ps.ensure_transition(status, ps.PENDING, what="installment")


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def create_plan_from_link(clinic, patient, link, *, start_date: datetime.date | None = None, message: str = "", user=None) -> Plan:
    """Create a plan and its instalments from a payment-plan link.

    The first instalment's payment request is sent straight away; later
    ones are sent by the hourly schedule job as they fall due.
    """
    if not link.is_plan or not link.payment_count or not link.payment_cycle:
        raise PlanOperationError("This payment link is not a payment plan.")
    if link.clinic_id != clinic.pk or patient.clinic_id != clinic.pk:
        raise PlanOperationError("Payment link and patient must belong to your clinic.")
    if not link.is_active:
        raise PlanOperationError("This payment link has been archived.")

    count = link.payment_count
    total = link.total_amount
    installment_amount = total // count
    if total <= 0 or installment_amount <= 0:
        raise PlanOperationError("Invalid payment amount.")
    start_date = start_date or timezone.localdate()

    with transaction.atomic():
        plan = Plan.objects.create(
            clinic=clinic,
            patient=patient,
            payment_link=link,
            title=link.title or "Payment Plan",
            description=link.description or message or "Payment Plan",
            total_amount=total,
            installment_amount=installment_amount,
            total_installments=count,
            payment_frequency=link.payment_cycle,
            start_date=start_date,
            next_due_date=start_date,
            status=Plan.STATUS_PENDING,
            created_by=user if getattr(user, "is_authenticated", False) else None,
        )
        installments = []
        for index in range(count):
            amount = installment_amount
            if index == count - 1:
                # last instalment absorbs the rounding remainder
                amount += total - installment_amount * count
            installments.append(
                PaymentSchedule.objects.create(
                    plan=plan,
                    clinic=clinic,
                    patient=patient,
                    payment_link=link,
                    amount=amount,
                    due_date=due_date_for(start_date, link.payment_cycle, index),
                    payment_number=index + 1,
                    total_payments=count,
                    payment_frequency=link.payment_cycle,
                    status=PaymentSchedule.STATUS_PENDING,
                )
            )

        first = installments[0]
        pr = create_payment_request(clinic, patient, payment_link=link, message=message, notify=False)
        first.payment_request = pr
        first.status = ps.ensure_transition(first.status, ps.SENT, what="installment")
        first.save(update_fields=["payment_request", "status", "updated_at"])

        PaymentActivity.log(
            PaymentActivity.ACTION_PLAN_CREATED,
            clinic=clinic,
            plan=plan,
            user=user,
            total_amount=total,
            installment_amount=installment_amount,
            total_installments=count,
            payment_frequency=link.payment_cycle,
            start_date=start_date.isoformat(),
            first_payment_request_id=pr.pk,
        )
        notify_payment_request(pr)

    logger.info("Plan %s created for patient %s with %s instalments", plan.pk, patient.pk, count)
    return plan


# ---------------------------------------------------------------------------
# Pause / resume / cancel / reschedule
# ---------------------------------------------------------------------------

def pause_plan(plan, *, user=None) -> Plan:
    """Pause a running plan.

    Outstanding instalments (pending, sent, overdue) become paused and their
    payment requests are cancelled.  Paid instalments are left alone.
    """
    with transaction.atomic():
        plan = _lock_plan(plan)
        if not plan_statuses.is_plan_active(plan.status):
            raise PlanOperationError(f"Only pending, active or overdue plans can be paused (plan is {plan.status}).")
        previous_status = plan.status

        outstanding = list(
            plan.installments.select_for_update().filter(status__in=ps.OUTSTANDING_STATUSES)
        )
        requests_cancelled = cancel_payment_requests([i.payment_request_id for i in outstanding])
        paused = _set_installment_statuses(outstanding, ps.PAUSED)

        _set_plan_status(plan, Plan.STATUS_PAUSED)
        plan.save(update_fields=["status", "updated_at"])

        PaymentActivity.log(
            PaymentActivity.ACTION_PLAN_PAUSED,
            clinic=plan.clinic,
            plan=plan,
            user=user,
            previous_status=previous_status,
            installments_paused=paused,
            payment_requests_cancelled=requests_cancelled,
        )

    logger.info("Plan %s paused (%s instalments, %s requests cancelled)", plan.pk, paused, requests_cancelled)
    return plan


def resume_plan(plan, *, resume_date: datetime.date | None = None, user=None) -> Plan:
    """Resume a paused plan from ``resume_date`` (default today).

    Paused instalments keep their spacing: all of them move by the gap
    between the earliest paused due date and ``resume_date``.
    """
    resume_date = resume_date or timezone.localdate()
    with transaction.atomic():
        plan = _lock_plan(plan)
        if not plan_statuses.is_plan_paused(plan.status):
            raise PlanOperationError(f"Only paused plans can be resumed (plan is {plan.status}).")

        paused = list(
            plan.installments.select_for_update()
            .filter(status=ps.PAUSED)
            .order_by("due_date", "payment_number")
        )
        days_shifted = (resume_date - paused[0].due_date).days if paused else 0
        shift = datetime.timedelta(days=days_shifted)
        for inst in paused:
            inst.status = ps.ensure_transition(inst.status, ps.PENDING, what="installment")
            inst.due_date = inst.due_date + shift
            inst.payment_request = None
        if paused:
            PaymentSchedule.objects.bulk_update(paused, ["status", "due_date", "payment_request"])

        has_paid = plan.installments.filter(status__in=ps.PAID_STATUSES).exists()
        _set_plan_status(plan, Plan.STATUS_ACTIVE if has_paid else Plan.STATUS_PENDING)
        plan.next_due_date = resume_date
        plan.has_overdue_payments = False
        plan.save(update_fields=["status", "next_due_date", "has_overdue_payments", "updated_at"])

        PaymentActivity.log(
            PaymentActivity.ACTION_PLAN_RESUMED,
            clinic=plan.clinic,
            plan=plan,
            user=user,
            resume_date=resume_date.isoformat(),
            days_shifted=days_shifted,
            installments_resumed=len(paused),
        )

    logger.info("Plan %s resumed on %s (shifted %s days)", plan.pk, resume_date, days_shifted)
    return plan


def cancel_plan(plan, *, user=None, reason: str = "") -> Plan:
    """Cancel a plan and everything still outstanding on it."""
    with transaction.atomic():
        plan = _lock_plan(plan)
        if plan_statuses.is_plan_finished(plan.status):
            raise PlanOperationError(f"Plan is already {plan.status}.")
        previous_status = plan.status

        installments = list(plan.installments.select_for_update())
        requests_cancelled = cancel_payment_requests([i.payment_request_id for i in installments])
        modifiable = [i for i in installments if ps.is_payment_status_modifiable(i.status)]
        cancelled = _set_installment_statuses(modifiable, ps.CANCELLED)

        _set_plan_status(plan, Plan.STATUS_CANCELLED)
        plan.next_due_date = None
        plan.has_overdue_payments = False
        plan.save(update_fields=["status", "next_due_date", "has_overdue_payments", "updated_at"])

        PaymentActivity.log(
            PaymentActivity.ACTION_PLAN_CANCELLED,
            clinic=plan.clinic,
            plan=plan,
            user=user,
            previous_status=previous_status,
            installments_cancelled=cancelled,
            payment_requests_cancelled=requests_cancelled,
            reason=reason,
        )

    logger.info("Plan %s cancelled (was %s)", plan.pk, previous_status)
    return plan


def reschedule_plan(plan, new_start_date: datetime.date, *, user=None) -> Plan:
    """Re-date every outstanding instalment from ``new_start_date``."""
    with transaction.atomic():
        plan = _lock_plan(plan)
        if plan_statuses.is_plan_finished(plan.status):
            raise PlanOperationError(f"A {plan.status} plan cannot be rescheduled.")

        modifiable = list(
            plan.installments.select_for_update()
            .filter(status__in=ps.MODIFIABLE_STATUSES)
            .order_by("payment_number")
        )
        if not modifiable:
            raise PlanOperationError("There are no outstanding instalments to reschedule.")

        requests_cancelled = cancel_payment_requests([i.payment_request_id for i in modifiable])
        for index, inst in enumerate(modifiable):
            inst.status = _reset_to_pending(inst.status)
            inst.due_date = due_date_for(new_start_date, plan.payment_frequency, index)
            inst.payment_request = None
        PaymentSchedule.objects.bulk_update(modifiable, ["status", "due_date", "payment_request"])

        previous_start = plan.start_date
        has_paid = plan.installments.filter(status__in=ps.PAID_STATUSES).exists()
        if plan.status != Plan.STATUS_PAUSED:
            _set_plan_status(plan, Plan.STATUS_PAUSED)
        _set_plan_status(plan, Plan.STATUS_ACTIVE if has_paid else Plan.STATUS_PENDING)
        plan.start_date = new_start_date
        plan.next_due_date = new_start_date
        plan.has_overdue_payments = False
        plan.save(update_fields=["status", "start_date", "next_due_date", "has_overdue_payments", "updated_at"])

        PaymentActivity.log(
            PaymentActivity.ACTION_PLAN_RESCHEDULED,
            clinic=plan.clinic,
            plan=plan,
            user=user,
            previous_start_date=previous_start.isoformat(),
            new_start_date=new_start_date.isoformat(),
            installments_rescheduled=len(modifiable),
            payment_requests_cancelled=requests_cancelled,
        )

    logger.info("Plan %s rescheduled to start %s", plan.pk, new_start_date)
    return plan


# ---------------------------------------------------------------------------
# Instalment actions
# ---------------------------------------------------------------------------

def record_manual_payment(installment, *, user=None) -> Payment:
    """Mark an instalment as paid outside Stripe (cash, bank transfer)."""
    with transaction.atomic():
        plan = _lock_plan(installment.plan_id)
        inst = (
            PaymentSchedule.objects.select_for_update()
            .select_related("payment_request", "patient")
            .get(pk=installment.pk)
        )
        if ps.is_payment_status_paid(inst.status):
            raise PlanOperationError("This instalment has already been paid.")
        inst.status = ps.ensure_transition(inst.status, ps.PAID, what="installment")

        now = timezone.now()
        patient = inst.patient
        payment = Payment.objects.create(
            clinic=plan.clinic,
            patient=patient,
            payment_link=inst.payment_link,
            payment_schedule=inst,
            patient_name=patient.name,
            patient_email=patient.email,
            patient_phone=patient.phone,
            amount_paid=inst.amount,
            net_amount=inst.amount,
            payment_ref=generate_payment_ref(),
            method=Payment.METHOD_MANUAL,
            stripe_payment_id=None,
            paid_at=now,
        )
        pr = inst.payment_request
        if pr is not None and pr.status != PaymentRequest.STATUS_PAID:
            pr.status = PaymentRequest.STATUS_PAID
            pr.payment = payment
            pr.paid_at = now
            pr.save(update_fields=["status", "payment", "paid_at", "updated_at"])
        inst.save(update_fields=["status", "updated_at"])

        update_plan_payment_metrics(plan)
        PaymentActivity.log(
            PaymentActivity.ACTION_INSTALLMENT_MARKED_PAID,
            clinic=plan.clinic,
            plan=plan,
            user=user,
            installment_id=inst.pk,
            payment_number=inst.payment_number,
            amount=inst.amount,
            payment_id=payment.pk,
            payment_reference=payment.payment_ref,
        )

    logger.info("Instalment %s of plan %s marked paid manually", inst.pk, plan.pk)
    return payment


def send_payment_reminder(installment, *, user=None):
    """Queue a reminder for an instalment whose request is still open."""
    pr = installment.payment_request
    if pr is None:
        raise PlanOperationError("No payment request has been sent for this instalment yet.")
    if installment.status not in ps.OUTSTANDING_STATUSES or not pr.is_payable:
        raise PlanOperationError("Only unpaid instalments with an open payment request can be reminded.")

    with transaction.atomic():
        notification = notify_payment_request(pr, reminder=True)
        PaymentActivity.log(
            PaymentActivity.ACTION_REMINDER_SENT,
            clinic=installment.clinic,
            plan=installment.plan,
            user=user,
            installment_id=installment.pk,
            payment_request_id=pr.pk,
        )
    return notification


# ---------------------------------------------------------------------------
# Status bookkeeping
# ---------------------------------------------------------------------------

def determine_plan_status(plan: Plan, today: datetime.date | None = None) -> str:
    """Status a plan should have, by priority.

    cancelled > paused > completed > overdue > active > pending.
    """
    today = today or timezone.localdate()
    current = plan_statuses.validate_plan_status(plan.status)
    if current in (Plan.STATUS_CANCELLED, Plan.STATUS_PAUSED):
        return current

    installments = plan.installments.all()
    paid = installments.filter(status__in=ps.PAID_STATUSES).count()
    total = plan.total_installments or installments.count()
    if total and paid >= total:
        return Plan.STATUS_COMPLETED
    has_overdue = installments.filter(status=ps.OVERDUE).exists() or installments.exclude(
        status__in=ps.PAID_STATUSES | {ps.CANCELLED, ps.PAUSED}
    ).filter(due_date__lt=today).exists()
    if has_overdue:
        return Plan.STATUS_OVERDUE
    if paid:
        return Plan.STATUS_ACTIVE
    return Plan.STATUS_PENDING


def update_plan_payment_metrics(plan: Plan, today: datetime.date | None = None) -> Plan:
    """Recount paid instalments and refresh progress, status and next due date."""
    installments = plan.installments.all()
    paid = installments.filter(status__in=ps.PAID_STATUSES).count()
    total = plan.total_installments or installments.count()

    plan.paid_installments = paid
    plan.progress = min(100, (paid * 100) // total) if total else 0

    new_status = determine_plan_status(plan, today)
    if new_status != plan.status:
        if plan_statuses.is_plan_transition_valid(plan.status, new_status):
            previous = plan.status
            plan.status = new_status
            if new_status == Plan.STATUS_COMPLETED:
                PaymentActivity.log(
                    PaymentActivity.ACTION_PLAN_COMPLETED, clinic=plan.clinic, plan=plan, previous_status=previous
                )
        else:
            logger.warning("Plan %s: not moving %s -> %s", plan.pk, plan.status, new_status)
    plan.has_overdue_payments = plan.status == Plan.STATUS_OVERDUE

    next_inst = (
        installments.exclude(status__in=ps.PAID_STATUSES | {ps.CANCELLED})
        .order_by("due_date", "payment_number")
        .first()
    )
    plan.next_due_date = next_inst.due_date if next_inst else None
    plan.save(update_fields=[
        "paid_installments", "progress", "status", "has_overdue_payments", "next_due_date", "updated_at",
    ])
    return plan


def mark_overdue_installments(plan: Plan, today: datetime.date | None = None) -> list[int]:
    """Flag unpaid pending/sent instalments past their due date as overdue."""
    today = today or timezone.localdate()
    candidates = list(
        plan.installments.select_for_update()
        .filter(status__in=[ps.PENDING, ps.SENT], due_date__lt=today)
        .exclude(payment_request__payment__isnull=False)
    )
    _set_installment_statuses(candidates, ps.OVERDUE)
    return [i.pk for i in candidates]


def refresh_plan_status(plan, today: datetime.date | None = None, *, user=None) -> dict:
    """Mark overdue instalments for one plan and recompute its status."""
    today = today or timezone.localdate()
    with transaction.atomic():
        plan = _lock_plan(plan)
        if plan.status in (Plan.STATUS_CANCELLED, Plan.STATUS_PAUSED, Plan.STATUS_COMPLETED):
            return {"plan_id": plan.pk, "status": plan.status, "overdue_installments": []}

        previous_status = plan.status
        overdue_ids = mark_overdue_installments(plan, today)
        update_plan_payment_metrics(plan, today)
        if overdue_ids:
            PaymentActivity.log(
                PaymentActivity.ACTION_PLAN_OVERDUE,
                clinic=plan.clinic,
                plan=plan,
                user=user,
                previous_status=previous_status,
                new_status=plan.status,
                overdue_installments=overdue_ids,
            )
    if overdue_ids:
        logger.info("Plan %s: %s instalment(s) now overdue", plan.pk, len(overdue_ids))
    return {"plan_id": plan.pk, "status": plan.status, "overdue_installments": overdue_ids}
