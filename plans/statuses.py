"""
Plan-level status transitions.

Instalment statuses live in :mod:`payments.statuses`; this module covers
the owning plan.  Cancelled and completed plans are final.
"""
from __future__ import annotations

import logging

from common.exceptions import InvalidStatusTransition

logger = logging.getLogger(__name__)

PENDING = "pending"
ACTIVE = "active"
PAUSED = "paused"
OVERDUE = "overdue"
CANCELLED = "cancelled"
COMPLETED = "completed"

STATUS_CHOICES = [
    (PENDING, "Pending"),
    (ACTIVE, "Active"),
    (PAUSED, "Paused"),
    (OVERDUE, "Overdue"),
    (CANCELLED, "Cancelled"),
    (COMPLETED, "Completed"),
]
VALID_STATUSES = frozenset(s for s, _ in STATUS_CHOICES)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({ACTIVE, PAUSED, OVERDUE, CANCELLED, COMPLETED}),
    ACTIVE: frozenset({PAUSED, OVERDUE, CANCELLED, COMPLETED}),
    OVERDUE: frozenset({ACTIVE, PAUSED, CANCELLED, COMPLETED}),
    PAUSED: frozenset({PENDING, ACTIVE, CANCELLED}),
    CANCELLED: frozenset(),
    COMPLETED: frozenset(),
}

FINISHED_STATUSES = frozenset({CANCELLED, COMPLETED})
RUNNING_STATUSES = frozenset({ACTIVE, PENDING, OVERDUE})


def is_plan_transition_valid(current: str | None, new: str) -> bool:
    if not current or current == new:
        return True
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_plan_transition(current: str | None, new: str) -> str:
    if not is_plan_transition_valid(current, new):
        raise InvalidStatusTransition(current, new, what="plan")
    return new


def is_plan_paused(status: str | None) -> bool:
    return status == PAUSED


def is_plan_active(status: str | None) -> bool:
    return status in RUNNING_STATUSES


def is_plan_finished(status: str | None) -> bool:
    return status in FINISHED_STATUSES


def validate_plan_status(status: str | None) -> str:
    """Normalise a stored status, falling back to ``pending`` for junk."""
    if status in VALID_STATUSES:
        return status
    logger.warning("Unknown plan status %r, treating as pending", status)
    return PENDING
