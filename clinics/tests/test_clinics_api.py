"""
Tests for the clinic profile, Stripe Connect onboarding, the platform fee
and the platform admin endpoints.
"""
from unittest import mock

import pytest

from clinics.models import Clinic, PlatformSetting
from payments.models import Payment


@pytest.fixture
def gateway():
    gw = mock.MagicMock()
    gw.create_connect_account.return_value = {"id": "acct_new456"}
    gw.create_account_link.return_value = {"url": "https://connect.stripe.com/setup/s/abc"}
    with mock.patch("clinics.views.get_gateway", return_value=gw):
        yield gw


@pytest.mark.django_db
def test_clinic_me_get_and_patch(auth_client):
    resp = auth_client.get("/api/clinics/me/")
    assert resp.status_code == 200
    assert resp.json()["clinic_name"] == "Harley Smile Studio"
    assert resp.json()["formatted_address"] == "1 Harley Street, London, W1G 9QD"
    assert resp.json()["is_stripe_connected"] is True

    resp = auth_client.patch(
        "/api/clinics/me/",
        {"phone": "02071112222", "stripe_status": "not_connected"},
        content_type="application/json",
    )
    assert resp.status_code == 200
    assert resp.json()["phone"] == "02071112222"
    # Stripe status is only changed through onboarding
    assert resp.json()["stripe_status"] == Clinic.STRIPE_CONNECTED

    resp = auth_client.patch("/api/clinics/me/", {"clinic_name": "  "}, content_type="application/json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_clinic_notification_preferences(auth_client, clinic):
    body = auth_client.get("/api/clinics/me/").json()
    assert body["email_notifications"] is True
    assert body["sms_notifications"] is True

    resp = auth_client.patch("/api/clinics/me/", {"sms_notifications": False}, content_type="application/json")
    assert resp.status_code == 200
    assert resp.json()["sms_notifications"] is False
    clinic.refresh_from_db()
    assert clinic.sms_notifications is False
    assert clinic.email_notifications is True


@pytest.mark.django_db
def test_clinic_endpoints_require_a_clinic(platform_admin_client, client):
    assert client.get("/api/clinics/me/").status_code == 401
    assert platform_admin_client.get("/api/clinics/me/").status_code == 403


@pytest.mark.django_db
def test_stripe_connect_creates_account_once(auth_client, clinic, gateway):
    Clinic.objects.filter(pk=clinic.pk).update(stripe_account_id="", stripe_status=Clinic.STRIPE_NOT_CONNECTED)

    resp = auth_client.post("/api/clinics/me/stripe/connect/", {}, content_type="application/json")
    assert resp.status_code == 200
    assert resp.json() == {
        "url": "https://connect.stripe.com/setup/s/abc",
        "account_id": "acct_new456",
        "stripe_status": Clinic.STRIPE_PENDING,
    }
    gateway.create_connect_account.assert_called_once_with(
        email="desk@harleysmile.test", business_name="Harley Smile Studio"
    )

    auth_client.post("/api/clinics/me/stripe/connect/", {}, content_type="application/json")
    assert gateway.create_connect_account.call_count == 1
    assert gateway.create_account_link.call_count == 2


@pytest.mark.django_db
def test_stripe_status_moves_forward_only(auth_client, clinic, gateway):
    Clinic.objects.filter(pk=clinic.pk).update(stripe_status=Clinic.STRIPE_PENDING)
    gateway.retrieve_account.return_value = {"charges_enabled": False, "details_submitted": True}

    resp = auth_client.get("/api/clinics/me/stripe/status/")
    assert resp.json()["stripe_status"] == Clinic.STRIPE_PENDING
    assert resp.json()["details_submitted"] is True

    gateway.retrieve_account.return_value = {"charges_enabled": True, "payouts_enabled": True}
    resp = auth_client.get("/api/clinics/me/stripe/status/")
    assert resp.json()["stripe_status"] == Clinic.STRIPE_CONNECTED

    clinic.refresh_from_db()
    assert not clinic.advance_stripe_status(Clinic.STRIPE_PENDING)
    assert clinic.stripe_status == Clinic.STRIPE_CONNECTED


@pytest.mark.django_db
def test_platform_fee_read_and_update(auth_client, platform_admin_client):
    assert auth_client.get("/api/clinics/platform-fee/").json() == {"platform_fee_percent": "3"}

    resp = auth_client.put(
        "/api/clinics/platform-fee/", {"platform_fee_percent": "5"}, content_type="application/json"
    )
    assert resp.status_code == 403

    resp = platform_admin_client.put(
        "/api/clinics/platform-fee/", {"platform_fee_percent": "2.50"}, content_type="application/json"
    )
    assert resp.status_code == 200
    assert resp.json() == {"platform_fee_percent": "2.5"}
    assert PlatformSetting.get_value(PlatformSetting.PLATFORM_FEE_PERCENT) == "2.5"

    resp = platform_admin_client.put(
        "/api/clinics/platform-fee/", {"platform_fee_percent": "150"}, content_type="application/json"
    )
    assert resp.status_code == 400


@pytest.mark.django_db
def test_admin_clinic_list_and_stats(platform_admin_client, auth_client, clinic, patient):
    Payment.objects.create(
        clinic=clinic,
        patient=patient,
        amount_paid=12000,
        platform_fee=360,
        net_amount=11640,
        payment_ref="CLN-ADMIN1",
        stripe_payment_id="pi_admin",
        paid_at="2025-03-01T10:00:00Z",
    )
    Clinic.objects.create(clinic_name="Other Clinic", email="other@clinic.test")

    assert auth_client.get("/api/clinics/").status_code == 403

    resp = platform_admin_client.get("/api/clinics/")
    assert resp.status_code == 200
    rows = {row["clinic_name"]: row for row in resp.json()["results"]}
    assert rows["Harley Smile Studio"]["payments_count"] == 1
    assert rows["Harley Smile Studio"]["total_received"] == "120.00"
    assert rows["Harley Smile Studio"]["stripe_account_id"] == "acct_test123"

    resp = platform_admin_client.get("/api/clinics/", {"stripe_status": "not_connected"})
    assert [row["clinic_name"] for row in resp.json()["results"]] == ["Other Clinic"]

    resp = platform_admin_client.get("/api/admin/stats/")
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["clinics"] == {"total": 2, "connected": 1}
    assert stats["payments"]["gross"] == 12000
    assert stats["payments"]["platform_fees"] == 360

    assert platform_admin_client.get("/api/admin/stats/", {"clinic": "x"}).status_code == 400
    assert auth_client.get("/api/admin/stats/").status_code == 403


@pytest.mark.django_db
def test_admin_can_disconnect_stripe(platform_admin_client, clinic):
    resp = platform_admin_client.post(f"/api/clinics/{clinic.pk}/disconnect-stripe/")
    assert resp.status_code == 200
    clinic.refresh_from_db()
    assert clinic.stripe_status == Clinic.STRIPE_NOT_CONNECTED
    assert clinic.stripe_account_id == ""
