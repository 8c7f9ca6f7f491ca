"""
Celery tasks for the notifications app.

``process_notification_queue`` runs every minute from Celery beat.  It
takes the oldest pending rows, converts monetary fields from pence to
pounds and POSTs each payload to the patient or clinic webhook.  A failed
delivery stays pending until it has been tried ``NOTIFICATION_MAX_RETRIES``
times, after which it is marked failed.
"""
from __future__ import annotations

import logging

import requests
from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from clinics.models import PlatformSetting
from common.currency import pence_to_pounds

from .models import Notification

logger = logging.getLogger(__name__)

MONETARY_KEYS = frozenset({
    "amount",
    "refund_amount",
    "total_refunded",
    "gross_amount",
    "stripe_fee",
    "platform_fee",
    "net_amount",
})


def convert_monetary_values(obj):
    """Return a copy of ``obj`` with pence amounts under known keys as pounds."""
    if isinstance(obj, list):
        return [convert_monetary_values(item) for item in obj]
    if not isinstance(obj, dict):
        return obj
    out = {}
    for key, value in obj.items():
        if key in MONETARY_KEYS and isinstance(value, int) and not isinstance(value, bool):
            out[key] = float(pence_to_pounds(value))
        elif isinstance(value, (dict, list)):
            out[key] = convert_monetary_values(value)
        else:
            out[key] = value
    return out


def webhook_urls() -> dict:
    return {
        Notification.RECIPIENT_PATIENT: PlatformSetting.get_value(
            PlatformSetting.PATIENT_NOTIFICATION_WEBHOOK,
            getattr(settings, "PATIENT_NOTIFICATION_WEBHOOK", ""),
        ),
        Notification.RECIPIENT_CLINIC: PlatformSetting.get_value(
            PlatformSetting.CLINIC_NOTIFICATION_WEBHOOK,
            getattr(settings, "CLINIC_NOTIFICATION_WEBHOOK", ""),
        ),
    }


def deliver(notification: Notification, url: str) -> None:
    """POST one notification; raises on any delivery problem."""
    if not url:
        raise ValueError(f"Missing {notification.recipient_type} notification webhook URL")
    payload = convert_monetary_values(notification.payload or {})
    payload.setdefault("notification_type", notification.type)
    resp = requests.post(
        url,
        json=payload,
        headers={"Content-Type": "application/json"},
        timeout=getattr(settings, "NOTIFICATION_WEBHOOK_TIMEOUT", 10),
    )
    if resp.status_code >= 300:
        raise RuntimeError(f"Webhook returned {resp.status_code}: {resp.text[:500]}")


@shared_task
def process_notification_queue() -> dict:
    """Deliver up to ``NOTIFICATION_BATCH_SIZE`` pending notifications."""
    batch_size = getattr(settings, "NOTIFICATION_BATCH_SIZE", 20)
    max_retries = getattr(settings, "NOTIFICATION_MAX_RETRIES", 3)
    urls = webhook_urls()

    ids = list(
        Notification.objects.filter(status=Notification.STATUS_PENDING)
        .order_by("created_at", "id")
        .values_list("id", flat=True)[:batch_size]
    )
    summary = {"processed": 0, "succeeded": 0, "failed": 0, "retrying": 0}

    for notification_id in ids:
        with transaction.atomic():
            notification = (
                Notification.objects.select_for_update(skip_locked=True)
                .filter(pk=notification_id, status=Notification.STATUS_PENDING)
                .first()
            )
            if notification is None:
                # another worker got there first
                continue
            summary["processed"] += 1
            try:
                deliver(notification, urls.get(notification.recipient_type, ""))
            except (requests.RequestException, ValueError, RuntimeError) as exc:
                notification.retry_count += 1
                notification.last_error = str(exc)[:2000]
                if notification.retry_count >= max_retries:
                    notification.status = Notification.STATUS_FAILED
                    notification.processed_at = timezone.now()
                    summary["failed"] += 1
                    logger.error("Notification %s failed permanently: %s", notification.pk, exc)
                else:
                    summary["retrying"] += 1
                    logger.warning(
                        "Notification %s failed (attempt %s/%s): %s",
                        notification.pk, notification.retry_count, max_retries, exc,
                    )
            else:
                notification.status = Notification.STATUS_SENT
                notification.processed_at = timezone.now()
                notification.last_error = ""
                summary["succeeded"] += 1
            notification.save(update_fields=["status", "retry_count", "last_error", "processed_at", "updated_at"])

    if summary["processed"]:
        logger.info("Notification queue run: %s", summary)
    return summary
