"""
Tests for the outbound notification queue processor.
"""
from unittest import mock

import pytest
import requests

from clinics.models import PlatformSetting
from notifications.models import Notification
from notifications.services import queue_notification
from notifications.tasks import convert_monetary_values, process_notification_queue


def ok_response():
    return mock.Mock(status_code=200, text="ok")


def queue(recipient=Notification.RECIPIENT_PATIENT, **payload):
    return queue_notification(Notification.TYPE_PAYMENT_REQUEST, recipient, payload or {"payment": {"amount": 1250}})


def test_convert_monetary_values():
    payload = {
        "payment": {"amount": 1250, "net_amount": 1099, "reference": "CLN-1", "payment_number": 2},
        "items": [{"refund_amount": 5}],
        "flag": True,
        "platform_fee": "n/a",
    }
    converted = convert_monetary_values(payload)
    assert converted["payment"] == {"amount": 12.5, "net_amount": 10.99, "reference": "CLN-1", "payment_number": 2}
    assert converted["items"] == [{"refund_amount": 0.05}]
    assert converted["flag"] is True
    assert converted["platform_fee"] == "n/a"
    # the stored payload is left in pence
    assert payload["payment"]["amount"] == 1250


@pytest.mark.django_db
def test_delivers_pending_notifications():
    patient_note = queue()
    clinic_note = queue(Notification.RECIPIENT_CLINIC, payment={"amount": 300})

    with mock.patch("notifications.tasks.requests.post", return_value=ok_response()) as post:
        summary = process_notification_queue()

    assert summary == {"processed": 2, "succeeded": 2, "failed": 0, "retrying": 0}
    urls = [c.args[0] for c in post.call_args_list]
    assert urls == ["https://hooks.example.com/patient", "https://hooks.example.com/clinic"]
    first_payload = post.call_args_list[0].kwargs["json"]
    assert first_payload["payment"]["amount"] == 12.5
    assert first_payload["notification_type"] == Notification.TYPE_PAYMENT_REQUEST

    for note in (patient_note, clinic_note):
        note.refresh_from_db()
        assert note.status == Notification.STATUS_SENT
        assert note.processed_at is not None


@pytest.mark.django_db
def test_failed_delivery_is_retried_then_marked_failed():
    note = queue()
    failure = mock.Mock(status_code=500, text="upstream down")

    with mock.patch("notifications.tasks.requests.post", return_value=failure):
        assert process_notification_queue()["retrying"] == 1
        note.refresh_from_db()
        assert note.status == Notification.STATUS_PENDING
        assert note.retry_count == 1
        assert "500" in note.last_error

        process_notification_queue()
        summary = process_notification_queue()

    assert summary["failed"] == 1
    note.refresh_from_db()
    assert note.status == Notification.STATUS_FAILED
    assert note.retry_count == 3

    # failed rows are not picked up again
    with mock.patch("notifications.tasks.requests.post") as post:
        assert process_notification_queue()["processed"] == 0
    post.assert_not_called()


@pytest.mark.django_db
def test_network_errors_count_as_failures():
    note = queue()
    with mock.patch("notifications.tasks.requests.post", side_effect=requests.ConnectionError("refused")):
        process_notification_queue()
    note.refresh_from_db()
    assert note.retry_count == 1
    assert "refused" in note.last_error


@pytest.mark.django_db
def test_missing_webhook_url(settings):
    settings.CLINIC_NOTIFICATION_WEBHOOK = ""
    note = queue(Notification.RECIPIENT_CLINIC)
    with mock.patch("notifications.tasks.requests.post") as post:
        summary = process_notification_queue()
    assert summary["retrying"] == 1
    post.assert_not_called()
    note.refresh_from_db()
    assert "Missing clinic notification webhook URL" in note.last_error


@pytest.mark.django_db
def test_platform_setting_overrides_webhook_url():
    PlatformSetting.set_value(PlatformSetting.PATIENT_NOTIFICATION_WEBHOOK, "https://override.example.com/p")
    queue()
    with mock.patch("notifications.tasks.requests.post", return_value=ok_response()) as post:
        process_notification_queue()
    assert post.call_args.args[0] == "https://override.example.com/p"


@pytest.mark.django_db
def test_batch_size_limits_a_run(settings):
    settings.NOTIFICATION_BATCH_SIZE = 2
    for _ in range(3):
        queue()
    with mock.patch("notifications.tasks.requests.post", return_value=ok_response()):
        assert process_notification_queue()["processed"] == 2
        assert process_notification_queue()["processed"] == 1
