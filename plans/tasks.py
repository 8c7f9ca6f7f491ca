"""
Celery tasks for payment plans.

Both run hourly from Celery beat.  Every plan or instalment is handled in
its own transaction, so one bad row is logged and reported without
stopping the rest of the run.
"""
from __future__ import annotations

import logging

from celery import shared_task
from django.db import transaction
from django.utils import timezone

from notifications.services import notify_payment_request
from payments import statuses as ps
from payments.payment_requests import create_payment_request

from . import statuses as plan_statuses
from .models import PaymentActivity, PaymentSchedule, Plan
from .services import refresh_plan_status

logger = logging.getLogger(__name__)


@shared_task
def update_plan_statuses() -> dict:
    """Flag overdue instalments and recompute the status of every open plan."""
    today = timezone.localdate()
    plan_ids = list(
        Plan.objects.exclude(
            status__in=[Plan.STATUS_CANCELLED, Plan.STATUS_PAUSED, Plan.STATUS_COMPLETED]
        ).values_list("id", flat=True)
    )
    summary = {"plans_checked": 0, "plans_updated": 0, "installments_overdue": 0, "errors": []}

    for plan_id in plan_ids:
        summary["plans_checked"] += 1
        try:
            before = Plan.objects.values_list("status", flat=True).get(pk=plan_id)
            result = refresh_plan_status(plan_id, today)
        except Exception as exc:
            logger.exception("Status update failed for plan %s", plan_id)
            summary["errors"].append({"plan_id": plan_id, "error": str(exc)})
            continue
        summary["installments_overdue"] += len(result["overdue_installments"])
        if result["status"] != before:
            summary["plans_updated"] += 1

    logger.info("Plan status run: %s", {k: v for k, v in summary.items() if k != "errors"})
    return summary


@shared_task
def process_payment_schedule() -> dict:
    """Send payment requests for instalments that have fallen due."""
    today = timezone.localdate()
    due_ids = list(
        PaymentSchedule.objects.filter(
            status=ps.PENDING,
            due_date__lte=today,
            payment_request__isnull=True,
            plan__status__in=plan_statuses.RUNNING_STATUSES,
        )
        .order_by("due_date", "id")
        .values_list("id", flat=True)
    )
    summary = {"due": len(due_ids), "processed": 0, "skipped": 0, "errors": []}

    for inst_id in due_ids:
        try:
            with transaction.atomic():
                inst = (
                    PaymentSchedule.objects.select_for_update(skip_locked=True)
                    .filter(pk=inst_id, status=ps.PENDING, payment_request__isnull=True)
                    .select_related("plan", "clinic", "patient", "payment_link")
                    .first()
                )
                if inst is None:
                    # sent by an overlapping run, or locked by one
                    summary["skipped"] += 1
                    continue
                pr = create_payment_request(
                    inst.clinic,
                    inst.patient,
                    payment_link=inst.payment_link,
                    message=f"Payment {inst.payment_number} of {inst.total_payments} is due.",
                    notify=False,
                )
                inst.status = ps.ensure_transition(inst.status, ps.SENT, what="installment")
                inst.payment_request = pr
                inst.save(update_fields=["status", "payment_request", "updated_at"])
                PaymentActivity.log(
                    PaymentActivity.ACTION_PAYMENT_REQUEST_SENT,
                    clinic=inst.clinic,
                    plan=inst.plan,
                    installment_id=inst.pk,
                    payment_number=inst.payment_number,
                    payment_request_id=pr.pk,
                )
                notify_payment_request(pr)
        except Exception as exc:
            logger.exception("Could not send payment request for instalment %s", inst_id)
            summary["errors"].append({"installment_id": inst_id, "error": str(exc)})
            continue
        summary["processed"] += 1

    if summary["due"]:
        logger.info("Payment schedule run: %s", {k: v for k, v in summary.items() if k != "errors"})
    return summary
