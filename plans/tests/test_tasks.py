"""
Tests for the hourly plan jobs.
"""
from unittest import mock

import pytest

from notifications.models import Notification
from plans import services
from plans.models import PaymentActivity, PaymentSchedule, Plan
from plans.tasks import process_payment_schedule, update_plan_statuses


def statuses_of(plan):
    return list(PaymentSchedule.objects.filter(plan=plan).order_by("payment_number").values_list("status", flat=True))


@pytest.mark.django_db
def test_update_plan_statuses_flags_overdue_plans(past_plan, plan):
    summary = update_plan_statuses()

    assert summary["plans_checked"] == 2
    assert summary["plans_updated"] == 1
    assert summary["installments_overdue"] == 2
    assert summary["errors"] == []
    past_plan.refresh_from_db()
    plan.refresh_from_db()
    assert past_plan.status == Plan.STATUS_OVERDUE
    assert past_plan.has_overdue_payments
    assert plan.status == Plan.STATUS_PENDING
    assert statuses_of(plan) == ["sent", "pending", "pending"]


@pytest.mark.django_db
def test_update_plan_statuses_skips_paused_plans(past_plan):
    services.pause_plan(past_plan)
    summary = update_plan_statuses()
    assert summary["plans_checked"] == 0
    assert statuses_of(past_plan) == ["paused", "paused", "paused"]


@pytest.mark.django_db
def test_update_plan_statuses_reports_errors_per_plan(past_plan, plan):
    real = services.refresh_plan_status

    def flaky(plan_id, today=None, **kwargs):
        if plan_id == past_plan.pk:
            raise RuntimeError("lock timeout")
        return real(plan_id, today, **kwargs)

    with mock.patch("plans.tasks.refresh_plan_status", side_effect=flaky):
        summary = update_plan_statuses()

    assert summary["plans_checked"] == 2
    assert summary["errors"] == [{"plan_id": past_plan.pk, "error": "lock timeout"}]


@pytest.mark.django_db
def test_process_payment_schedule_sends_due_instalments(past_plan):
    before = Notification.objects.filter(type=Notification.TYPE_PAYMENT_REQUEST).count()

    summary = process_payment_schedule()

    assert summary["processed"] == 1
    assert summary["errors"] == []
    second = PaymentSchedule.objects.get(plan=past_plan, payment_number=2)
    assert second.status == "sent"
    assert second.payment_request is not None
    assert second.payment_request.message == "Payment 2 of 3 is due."
    assert Notification.objects.filter(type=Notification.TYPE_PAYMENT_REQUEST).count() == before + 1
    assert PaymentActivity.objects.filter(plan=past_plan, action_type="payment_request_sent").count() == 1
    # third instalment is not due yet
    assert statuses_of(past_plan)[2] == "pending"


@pytest.mark.django_db
def test_process_payment_schedule_is_idempotent(past_plan):
    process_payment_schedule()
    summary = process_payment_schedule()
    assert summary["due"] == 0
    assert summary["processed"] == 0
    second = PaymentSchedule.objects.get(plan=past_plan, payment_number=2)
    assert second.payment_request.schedule == second


@pytest.mark.django_db
def test_process_payment_schedule_ignores_plans_that_are_not_running(past_plan):
    Plan.objects.filter(pk=past_plan.pk).update(status=Plan.STATUS_CANCELLED)
    summary = process_payment_schedule()
    assert summary["due"] == 0
    assert statuses_of(past_plan)[1] == "pending"
