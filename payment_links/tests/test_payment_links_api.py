"""
Tests for payment link management and sending payment requests.
"""
import datetime

import pytest

from clinics.models import Clinic
from notifications.models import Notification
from patients.models import Patient
from payment_links.models import PaymentLink
from payments.models import PaymentRequest
from plans.models import Plan


@pytest.mark.django_db
def test_create_single_link_in_pounds(auth_client, clinic):
    resp = auth_client.post(
        "/api/payment-links/",
        {"title": "Whitening", "amount": "249.99", "type": "treatment"},
        content_type="application/json",
    )
    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert body["amount"] == "249.99"
    assert body["payment_plan"] is False
    assert body["plan_total_amount"] is None
    link = PaymentLink.objects.get(pk=body["id"])
    assert link.amount == 24999
    assert link.clinic == clinic


@pytest.mark.django_db
def test_create_plan_link(auth_client):
    resp = auth_client.post(
        "/api/payment-links/",
        {"title": "Braces", "amount": "150", "payment_plan": True, "payment_count": 12, "payment_cycle": "monthly"},
        content_type="application/json",
    )
    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert body["type"] == "payment_plan"
    assert body["plan_total_amount"] == "1800.00"
    assert body["total_amount"] == "1800.00"


@pytest.mark.django_db
def test_plan_link_needs_count_and_cycle(auth_client):
    resp = auth_client.post(
        "/api/payment-links/",
        {"title": "Braces", "amount": "150", "type": "payment_plan"},
        content_type="application/json",
    )
    assert resp.status_code == 400
    assert set(resp.json()) == {"payment_count", "payment_cycle"}


@pytest.mark.django_db
@pytest.mark.parametrize("amount", ["0", "-5", "abc"])
def test_invalid_amounts_are_rejected(auth_client, amount):
    resp = auth_client.post(
        "/api/payment-links/", {"title": "Bad", "amount": amount}, content_type="application/json"
    )
    assert resp.status_code == 400
    assert "amount" in resp.json()


@pytest.mark.django_db
def test_delete_archives_and_active_filter(auth_client, single_link, plan_link):
    assert auth_client.delete(f"/api/payment-links/{single_link.pk}/").status_code == 204
    single_link.refresh_from_db()
    assert single_link.is_active is False

    active = auth_client.get("/api/payment-links/", {"active": "true"}).json()["results"]
    assert [row["id"] for row in active] == [plan_link.pk]
    archived = auth_client.get("/api/payment-links/", {"active": "false"}).json()["results"]
    assert [row["id"] for row in archived] == [single_link.pk]
    # archived links are still readable
    assert auth_client.get(f"/api/payment-links/{single_link.pk}/").status_code == 200

    resp = auth_client.post(f"/api/payment-links/{single_link.pk}/unarchive/")
    assert resp.json()["is_active"] is True


@pytest.mark.django_db
def test_links_of_other_clinics_are_hidden(auth_client):
    other = Clinic.objects.create(clinic_name="Elsewhere Dental")
    link = PaymentLink.objects.create(clinic=other, title="Theirs", amount=1000)
    assert auth_client.get(f"/api/payment-links/{link.pk}/").status_code == 404


@pytest.mark.django_db
def test_send_custom_amount_to_new_patient(auth_client, clinic):
    resp = auth_client.post(
        "/api/payment-links/send/",
        {
            "custom_amount": "60.00",
            "patient_name": "Leo Park",
            "patient_email": "leo@example.com",
            "message": "Balance for your last visit",
        },
        content_type="application/json",
    )
    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert body["kind"] == "payment_request"
    assert body["payment_request"]["amount"] == "60.00"
    assert body["payment_request"]["status"] == "sent"

    patient = Patient.objects.get(clinic=clinic, email="leo@example.com")
    pr = PaymentRequest.objects.get(pk=body["payment_request"]["id"])
    assert pr.patient == patient
    notification = Notification.objects.get(type=Notification.TYPE_PAYMENT_REQUEST)
    assert notification.payload["payment"]["amount"] == 6000
    assert notification.payload["payment"]["payment_link"].endswith(str(pr.token))


@pytest.mark.django_db
def test_send_link_to_existing_patient(auth_client, single_link, patient):
    resp = auth_client.post(
        "/api/payment-links/send/",
        {"payment_link": single_link.pk, "patient": patient.pk},
        content_type="application/json",
    )
    assert resp.status_code == 201, resp.content
    assert resp.json()["payment_request"]["amount"] == "75.00"
    assert resp.json()["payment_request"]["payment_link_title"] == "Consultation"


@pytest.mark.django_db
def test_send_plan_link_starts_a_plan(auth_client, plan_link, patient):
    start = datetime.date(2030, 1, 15)
    resp = auth_client.post(
        "/api/payment-links/send/",
        {"payment_link": plan_link.pk, "patient": patient.pk, "start_date": start.isoformat()},
        content_type="application/json",
    )
    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert body["kind"] == "plan"
    plan = Plan.objects.get(pk=body["plan"]["id"])
    assert plan.created_by is not None
    assert [i["due_date"] for i in body["plan"]["installments"]] == ["2030-01-15", "2030-02-15", "2030-03-15"]
    assert [i["status"] for i in body["plan"]["installments"]] == ["sent", "pending", "pending"]


@pytest.mark.django_db
def test_send_validation(auth_client, plan_link, single_link):
    resp = auth_client.post("/api/payment-links/send/", {"patient_name": "X"}, content_type="application/json")
    assert resp.status_code == 400

    resp = auth_client.post(
        "/api/payment-links/send/",
        {"payment_link": plan_link.pk, "custom_amount": "10", "patient_name": "X", "patient_email": "x@example.com"},
        content_type="application/json",
    )
    assert resp.status_code == 400
    assert "custom_amount" in resp.json()

    resp = auth_client.post(
        "/api/payment-links/send/", {"payment_link": single_link.pk, "patient_name": "No Contact"},
        content_type="application/json",
    )
    assert resp.status_code == 400

    single_link.set_active(False)
    resp = auth_client.post(
        "/api/payment-links/send/",
        {"payment_link": single_link.pk, "patient_name": "X", "patient_email": "x@example.com"},
        content_type="application/json",
    )
    assert resp.status_code == 400
    assert "payment_link" in resp.json()
