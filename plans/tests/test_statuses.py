"""
Tests for plan-level status transitions and due date calculation.
"""
import datetime
import itertools

import pytest

from common.exceptions import InvalidStatusTransition
from plans import statuses
from plans.models import due_date_for

ALL = [s for s, _ in statuses.STATUS_CHOICES]


@pytest.mark.parametrize("current,new", list(itertools.product(ALL, ALL)))
def test_plan_transition_table(current, new):
    expected = new == current or new in statuses.ALLOWED_TRANSITIONS[current]
    assert statuses.is_plan_transition_valid(current, new) is expected


@pytest.mark.parametrize("final", [statuses.CANCELLED, statuses.COMPLETED])
def test_finished_plans_are_final(final):
    for new in ALL:
        if new != final:
            with pytest.raises(InvalidStatusTransition):
                statuses.ensure_plan_transition(final, new)


def test_helpers():
    assert statuses.is_plan_paused(statuses.PAUSED)
    assert statuses.is_plan_active(statuses.OVERDUE)
    assert not statuses.is_plan_active(statuses.PAUSED)
    assert statuses.is_plan_finished(statuses.COMPLETED)


def test_unknown_status_falls_back_to_pending(caplog):
    assert statuses.validate_plan_status("archived") == statuses.PENDING
    assert "Unknown plan status" in caplog.text
    assert statuses.validate_plan_status(statuses.ACTIVE) == statuses.ACTIVE


def test_due_dates_by_cycle():
    start = datetime.date(2025, 1, 31)
    assert due_date_for(start, "weekly", 2) == datetime.date(2025, 2, 14)
    assert due_date_for(start, "bi-weekly", 1) == datetime.date(2025, 2, 14)
    # calendar months, clamped to the end of short months
    assert due_date_for(start, "monthly", 1) == datetime.date(2025, 2, 28)
    assert due_date_for(start, "monthly", 2) == datetime.date(2025, 3, 31)
    assert due_date_for(start, "monthly", 0) == start
