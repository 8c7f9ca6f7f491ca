"""
Payment and instalment status transitions.

Instalments (``PaymentSchedule`` rows) and payments share one status
vocabulary.  Every status write in the service layer goes through
:func:`ensure_transition`, so a paid instalment can only move along the
refund path and finished rows never come back to life.
"""
from __future__ import annotations

from common.exceptions import InvalidStatusTransition

PENDING = "pending"
SENT = "sent"
PAID = "paid"
OVERDUE = "overdue"
PAUSED = "paused"
CANCELLED = "cancelled"
REFUNDED = "refunded"
PARTIALLY_REFUNDED = "partially_refunded"

STATUS_CHOICES = [
    (PENDING, "Pending"),
    (SENT, "Sent"),
    (PAID, "Paid"),
    (OVERDUE, "Overdue"),
    (PAUSED, "Paused"),
    (CANCELLED, "Cancelled"),
    (REFUNDED, "Refunded"),
    (PARTIALLY_REFUNDED, "Partially refunded"),
]

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({PAID, CANCELLED, OVERDUE, PAUSED, SENT}),
    SENT: frozenset({PAID, CANCELLED, PAUSED, OVERDUE}),
    PAID: frozenset({REFUNDED, PARTIALLY_REFUNDED}),
    OVERDUE: frozenset({PAID, CANCELLED, PAUSED}),
    PAUSED: frozenset({PENDING, CANCELLED, SENT}),
    CANCELLED: frozenset(),
    REFUNDED: frozenset(),
    PARTIALLY_REFUNDED: frozenset({REFUNDED}),
}

PAID_STATUSES = frozenset({PAID, REFUNDED, PARTIALLY_REFUNDED})
# Statuses a plan operation (pause, cancel, reschedule) may still change.
MODIFIABLE_STATUSES = frozenset({PENDING, OVERDUE, PAUSED, SENT})
# Instalments whose payment request is still waiting on the patient.
OUTSTANDING_STATUSES = frozenset({PENDING, SENT, OVERDUE})


def is_payment_status_transition_valid(current: str | None, new: str) -> bool:
    """True when moving from ``current`` to ``new`` is allowed.

    A missing current status (a new row) accepts anything, and re-setting
    the same status is always a no-op.  Unknown current statuses allow
    nothing.
    """
    if not current:
        return True
    if current == new:
        return True
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def is_payment_status_paid(status: str | None) -> bool:
    return status in PAID_STATUSES


def is_payment_status_modifiable(status: str | None) -> bool:
    return not status or status in MODIFIABLE_STATUSES


def ensure_transition(current: str | None, new: str, what: str = "payment") -> str:
    if not is_payment_status_transition_valid(current, new):
        raise InvalidStatusTransition(current, new, what=what)
    return new
