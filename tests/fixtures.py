"""
Shared pytest fixtures, loaded for every app's tests by the root conftest.

Provides a clinic with a signed-in staff member (JWT via email login), a
platform admin client, a patient, a monthly plan link and plans created
from it.
"""
import datetime

import pytest
from django.contrib.auth.models import User
from django.test import Client
from django.utils import timezone

from clinics.models import Clinic
from patients.models import Patient
from payment_links.models import PaymentLink
from plans.services import create_plan_from_link
from users.models import UserProfile

PASSWORD = "Tr0ub4dor&3-horse"


def jwt_login(client, email, password=PASSWORD):
    resp = client.post(
        "/api/auth/token/",
        {"email": email, "password": password},
        content_type="application/json",
    )
    assert resp.status_code == 200, resp.content
    client.defaults["HTTP_AUTHORIZATION"] = f"Bearer {resp.json()['access']}"
    return client


@pytest.fixture
def clinic(db):
    """A clinic with a connected Stripe account."""
    return Clinic.objects.create(
        clinic_name="Harley Smile Studio",
        contact_name="Dr Rowe",
        email="desk@harleysmile.test",
        phone="02070000000",
        address_line_1="1 Harley Street",
        city="London",
        postcode="W1G 9QD",
        stripe_account_id="acct_test123",
        stripe_status=Clinic.STRIPE_CONNECTED,
    )


@pytest.fixture
def user(db, clinic):
    """A clinic staff member."""
    u = User.objects.create_user(username="owner@harleysmile.test", email="owner@harleysmile.test", password=PASSWORD)
    profile = u.profile
    profile.clinic = clinic
    profile.role = UserProfile.ROLE_CLINIC
    profile.save()
    return u


@pytest.fixture
def auth_client(client, db, user):
    """Authenticate the Django test client using JWT tokens."""
    return jwt_login(client, user.email)


@pytest.fixture
def platform_admin(db):
    u = User.objects.create_user(username="ops@platform.test", email="ops@platform.test", password=PASSWORD)
    u.profile.role = UserProfile.ROLE_ADMIN
    u.profile.save()
    return u


@pytest.fixture
def platform_admin_client(db, platform_admin):
    return jwt_login(Client(), platform_admin.email)


@pytest.fixture
def patient(db, clinic):
    return Patient.objects.create(clinic=clinic, name="Jane Patient", email="jane@example.com", phone="07700900123")


@pytest.fixture
def plan_link(db, clinic):
    """Three monthly payments of £100."""
    return PaymentLink.objects.create(
        clinic=clinic,
        title="Aligner treatment",
        amount=10000,
        type=PaymentLink.TYPE_PAYMENT_PLAN,
        payment_plan=True,
        payment_count=3,
        payment_cycle=PaymentLink.CYCLE_MONTHLY,
        plan_total_amount=30000,
    )


@pytest.fixture
def single_link(db, clinic):
    return PaymentLink.objects.create(
        clinic=clinic, title="Consultation", amount=7500, type=PaymentLink.TYPE_CONSULTATION
    )


@pytest.fixture
def today():
    return timezone.localdate()


@pytest.fixture
def plan(db, clinic, patient, plan_link, user, today):
    return create_plan_from_link(clinic, patient, plan_link, start_date=today, user=user)


@pytest.fixture
def past_plan(db, clinic, patient, plan_link, user, today):
    """A plan started 40 days ago: instalments 1 and 2 are past due, 3 is not."""
    start = today - datetime.timedelta(days=40)
    return create_plan_from_link(clinic, patient, plan_link, start_date=start, user=user)
