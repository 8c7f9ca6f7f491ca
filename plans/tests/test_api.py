"""
API tests for plan workflows and instalment actions.
"""
import datetime

import pytest

from clinics.models import Clinic
from notifications.models import Notification
from patients.models import Patient
from payment_links.models import PaymentLink
from plans.models import PaymentActivity, PaymentSchedule, Plan
from plans.services import create_plan_from_link


def installment(plan, number):
    return PaymentSchedule.objects.get(plan=plan, payment_number=number)


@pytest.mark.django_db
def test_list_and_filter_plans(auth_client, plan, past_plan):
    resp = auth_client.get("/api/plans/")
    assert resp.status_code == 200
    assert {row["id"] for row in resp.json()["results"]} == {plan.pk, past_plan.pk}

    Plan.objects.filter(pk=past_plan.pk).update(status=Plan.STATUS_OVERDUE)
    resp = auth_client.get("/api/plans/", {"status": "overdue,paused"})
    assert [row["id"] for row in resp.json()["results"]] == [past_plan.pk]

    resp = auth_client.get(f"/api/plans/{plan.pk}/")
    body = resp.json()
    assert body["total_amount"] == "300.00"
    assert [i["payment_number"] for i in body["installments"]] == [1, 2, 3]
    assert body["installments"][0]["payment_request_token"] is not None


@pytest.mark.django_db
def test_plans_of_other_clinics_are_hidden(auth_client):
    other = Clinic.objects.create(clinic_name="Elsewhere Dental")
    patient = Patient.objects.create(clinic=other, name="Stranger")
    link = PaymentLink.objects.create(
        clinic=other, title="Theirs", amount=5000, payment_plan=True, type=PaymentLink.TYPE_PAYMENT_PLAN,
        payment_count=2, payment_cycle=PaymentLink.CYCLE_WEEKLY, plan_total_amount=10000,
    )
    theirs = create_plan_from_link(other, patient, link)

    assert auth_client.get(f"/api/plans/{theirs.pk}/").status_code == 404
    assert auth_client.post(f"/api/plans/{theirs.pk}/pause/").status_code == 404
    inst = installment(theirs, 1)
    assert auth_client.post(f"/api/installments/{inst.pk}/mark-paid/").status_code == 404


@pytest.mark.django_db
def test_pause_resume_and_cancel(auth_client, plan, user, today):
    resp = auth_client.post(f"/api/plans/{plan.pk}/pause/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "paused"
    assert {i["status"] for i in resp.json()["installments"]} == {"paused"}

    # pausing twice is refused
    assert auth_client.post(f"/api/plans/{plan.pk}/pause/").status_code == 400

    resume_on = today + datetime.timedelta(days=7)
    resp = auth_client.post(
        f"/api/plans/{plan.pk}/resume/", {"resume_date": resume_on.isoformat()}, content_type="application/json"
    )
    assert resp.status_code == 200, resp.content
    assert resp.json()["status"] == "pending"
    assert resp.json()["installments"][0]["due_date"] == resume_on.isoformat()

    resp = auth_client.post(
        f"/api/plans/{plan.pk}/cancel/", {"reason": "Treatment stopped"}, content_type="application/json"
    )
    assert resp.json()["status"] == "cancelled"
    activity = PaymentActivity.objects.filter(plan=plan, action_type="plan_cancelled").get()
    assert activity.details["reason"] == "Treatment stopped"
    assert activity.performed_by == user

    assert auth_client.post(f"/api/plans/{plan.pk}/resume/").status_code == 400


@pytest.mark.django_db
def test_reschedule(auth_client, plan):
    resp = auth_client.post(
        f"/api/plans/{plan.pk}/reschedule/", {"start_date": "2031-03-31"}, content_type="application/json"
    )
    assert resp.status_code == 200, resp.content
    due = [i["due_date"] for i in resp.json()["installments"]]
    assert due == ["2031-03-31", "2031-04-30", "2031-05-31"]

    assert auth_client.post(f"/api/plans/{plan.pk}/reschedule/", {}, content_type="application/json").status_code == 400


@pytest.mark.django_db
def test_refresh_status_and_activity(auth_client, past_plan):
    resp = auth_client.post(f"/api/plans/{past_plan.pk}/refresh-status/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "overdue"
    assert resp.json()["has_overdue_payments"] is True

    resp = auth_client.get(f"/api/plans/{past_plan.pk}/activity/")
    actions = [row["action_type"] for row in resp.json()["results"]]
    assert actions == ["plan_overdue", "plan_created"]
    assert resp.json()["results"][0]["performed_by_email"] == "owner@harleysmile.test"


@pytest.mark.django_db
def test_mark_paid(auth_client, plan):
    inst = installment(plan, 1)
    resp = auth_client.post(f"/api/installments/{inst.pk}/mark-paid/")
    assert resp.status_code == 200
    body = resp.json()
    assert body["installment"]["status"] == "paid"
    assert body["payment_ref"].startswith("CLN-")

    plan.refresh_from_db()
    assert plan.paid_installments == 1
    assert plan.status == Plan.STATUS_ACTIVE

    assert auth_client.post(f"/api/installments/{inst.pk}/mark-paid/").status_code == 400


@pytest.mark.django_db
def test_remind(auth_client, plan):
    first = installment(plan, 1)
    resp = auth_client.post(f"/api/installments/{first.pk}/remind/")
    assert resp.status_code == 200
    notification = Notification.objects.get(pk=resp.json()["notification_id"])
    assert notification.type == Notification.TYPE_PAYMENT_REMINDER

    # no request has been sent for the second instalment yet
    second = installment(plan, 2)
    assert auth_client.post(f"/api/installments/{second.pk}/remind/").status_code == 400
