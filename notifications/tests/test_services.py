"""
Tests for the payloads queued by the notification helpers.
"""
import pytest
from django.utils import timezone

from notifications.models import Notification
from notifications.services import notify_payment_success
from payments.models import Payment


@pytest.fixture
def card_payment(clinic):
    return Payment.objects.create(
        clinic=clinic,
        patient_name="Ada Lovelace",
        patient_email="ada@example.com",
        amount_paid=4200,
        net_amount=4074,
        payment_ref="CLN-NOTE01",
        paid_at=timezone.now(),
    )


@pytest.mark.django_db
def test_clinic_method_follows_clinic_preferences(clinic, card_payment):
    clinic.sms_notifications = False
    clinic.save(update_fields=["sms_notifications"])

    clinic_note, patient_note = notify_payment_success(card_payment)

    assert clinic_note.recipient_type == Notification.RECIPIENT_CLINIC
    assert clinic_note.payload["notification_method"] == {"email": True, "sms": False}
    # patients are reached on whatever contact details were given
    assert patient_note.payload["notification_method"] == {"email": True, "sms": False}
    assert patient_note.payload["payment"]["amount"] == 4200


@pytest.mark.django_db
def test_clinic_preferences_default_to_both_channels(clinic, card_payment):
    clinic.phone = ""
    clinic.save(update_fields=["phone"])

    clinic_note, _ = notify_payment_success(card_payment)

    assert clinic_note.payload["notification_method"] == {"email": True, "sms": True}
