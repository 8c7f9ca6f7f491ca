"""
Tests for the payment/instalment status transition table.
"""
import itertools

import pytest

from common.exceptions import InvalidStatusTransition
from payments import statuses as ps

ALL = [s for s, _ in ps.STATUS_CHOICES]


@pytest.mark.parametrize("current,new", list(itertools.product(ALL, ALL)))
def test_transition_table(current, new):
    expected = new == current or new in ps.ALLOWED_TRANSITIONS[current]
    assert ps.is_payment_status_transition_valid(current, new) is expected


@pytest.mark.parametrize("new", [ps.PENDING, ps.SENT, ps.OVERDUE])
def test_paid_never_goes_back_to_outstanding(new):
    assert not ps.is_payment_status_transition_valid(ps.PAID, new)
    with pytest.raises(InvalidStatusTransition):
        ps.ensure_transition(ps.PAID, new)


def test_new_rows_accept_any_status():
    for status in ALL:
        assert ps.is_payment_status_transition_valid(None, status)


def test_unknown_current_status_allows_nothing_else():
    assert not ps.is_payment_status_transition_valid("processing", ps.PAID)
    assert ps.is_payment_status_transition_valid("processing", "processing")


def test_paid_and_modifiable_helpers():
    assert ps.is_payment_status_paid(ps.PARTIALLY_REFUNDED)
    assert not ps.is_payment_status_paid(ps.SENT)
    assert ps.is_payment_status_modifiable(None)
    assert ps.is_payment_status_modifiable(ps.SENT)
    assert not ps.is_payment_status_modifiable(ps.CANCELLED)


def test_ensure_transition_message_names_the_row():
    with pytest.raises(InvalidStatusTransition) as exc:
        ps.ensure_transition(ps.CANCELLED, ps.PAID, what="installment")
    assert "installment" in exc.value.message
    assert exc.value.status_code == 400
