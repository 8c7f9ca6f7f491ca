"""
Tests for clinic signup, JWT login, the `/api/auth/me/` endpoint and the
password flows.
"""
import re

import pytest
from django.core import mail

from clinics.models import Clinic
from tests.fixtures import PASSWORD
from users.models import UserProfile


@pytest.mark.django_db
def test_register_and_login(client):
    """A signup creates the user, its clinic and returns tokens."""
    payload = {
        "email": "Reception@BrightSmiles.test",
        "password": PASSWORD,
        "clinic_name": "Bright Smiles",
        "contact_name": "Priya Shah",
    }
    response = client.post("/api/auth/register/", payload, content_type="application/json")
    assert response.status_code == 201, response.content
    body = response.json()
    assert body["email"] == "reception@brightsmiles.test"
    assert body["profile"]["role"] == UserProfile.ROLE_CLINIC
    assert body["profile"]["clinic_name"] == "Bright Smiles"
    assert "access" in body and "refresh" in body

    clinic = Clinic.objects.get(pk=body["profile"]["clinic"])
    assert clinic.stripe_status == Clinic.STRIPE_NOT_CONNECTED

    login_resp = client.post(
        "/api/auth/token/",
        {"email": "reception@brightsmiles.test", "password": PASSWORD},
        content_type="application/json",
    )
    assert login_resp.status_code == 200
    assert "access" in login_resp.json()


@pytest.mark.django_db
def test_register_rejects_duplicates_and_weak_passwords(client, user):
    resp = client.post(
        "/api/auth/register/",
        {"email": user.email.upper(), "password": PASSWORD, "clinic_name": "Copycat"},
        content_type="application/json",
    )
    assert resp.status_code == 400
    assert "email" in resp.json()

    resp = client.post(
        "/api/auth/register/",
        {"email": "new@clinic.test", "password": "12345678", "clinic_name": "New"},
        content_type="application/json",
    )
    assert resp.status_code == 400


@pytest.mark.django_db
def test_login_with_wrong_password(client, user):
    resp = client.post(
        "/api/auth/token/", {"email": user.email, "password": "nope"}, content_type="application/json"
    )
    assert resp.status_code == 401


@pytest.mark.django_db
def test_me_endpoint(auth_client):
    """Verify that /api/auth/me/ returns and updates user info."""
    response = auth_client.get("/api/auth/me/")
    assert response.status_code == 200
    assert response.json()["email"] == "owner@harleysmile.test"
    assert response.json()["profile"]["clinic_name"] == "Harley Smile Studio"

    update_resp = auth_client.patch(
        "/api/auth/me/",
        {"first_name": "Ada", "profile": {"full_name": "Ada Rowe", "role": "admin"}},
        content_type="application/json",
    )
    assert update_resp.status_code == 200
    assert update_resp.json()["first_name"] == "Ada"
    assert update_resp.json()["profile"]["full_name"] == "Ada Rowe"
    # role is read-only
    assert update_resp.json()["profile"]["role"] == UserProfile.ROLE_CLINIC


@pytest.mark.django_db
def test_change_password(auth_client, user):
    resp = auth_client.post(
        "/api/auth/password/change/",
        {"old_password": "wrong", "new_password": "N3w-long-passphrase", "confirm_new_password": "N3w-long-passphrase"},
        content_type="application/json",
    )
    assert resp.status_code == 400

    resp = auth_client.post(
        "/api/auth/password/change/",
        {"old_password": PASSWORD, "new_password": "N3w-long-passphrase", "confirm_new_password": "N3w-long-passphrase"},
        content_type="application/json",
    )
    assert resp.status_code == 200
    user.refresh_from_db()
    assert user.check_password("N3w-long-passphrase")


@pytest.mark.django_db
def test_forgot_and_reset_password(client, user):
    resp = client.post("/api/auth/password/forgot/", {"email": "nobody@else.test"}, content_type="application/json")
    assert resp.status_code == 200
    assert len(mail.outbox) == 0

    resp = client.post("/api/auth/password/forgot/", {"email": user.email}, content_type="application/json")
    assert resp.status_code == 200
    assert len(mail.outbox) == 1
    match = re.search(r"uid=([^&\s]+)&token=(\S+)", mail.outbox[0].body)
    uid, token = match.group(1), match.group(2)

    resp = client.post(
        "/api/auth/password/reset/",
        {"uid": uid, "token": "bad-token", "new_password": "Fresh-passphrase-9", "confirm_new_password": "Fresh-passphrase-9"},
        content_type="application/json",
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/auth/password/reset/",
        {"uid": uid, "token": token, "new_password": "Fresh-passphrase-9", "confirm_new_password": "Fresh-passphrase-9"},
        content_type="application/json",
    )
    assert resp.status_code == 200
    user.refresh_from_db()
    assert user.check_password("Fresh-passphrase-9")


@pytest.mark.django_db
def test_logout_blacklists_refresh_token(client, user):
    tokens = client.post(
        "/api/auth/token/", {"email": user.email, "password": PASSWORD}, content_type="application/json"
    ).json()
    client.defaults["HTTP_AUTHORIZATION"] = f"Bearer {tokens['access']}"

    assert client.post("/api/auth/logout/", {}, content_type="application/json").status_code == 400
    resp = client.post("/api/auth/logout/", {"refresh": tokens["refresh"]}, content_type="application/json")
    assert resp.status_code == 205

    resp = client.post("/api/auth/token/refresh/", {"refresh": tokens["refresh"]}, content_type="application/json")
    assert resp.status_code == 401
