"""
Currency helpers.

Amounts are stored and sent to Stripe as integer pence.  They are only
converted to pounds for display and for outbound notification payloads.
Decimal arithmetic is used throughout so conversions never pick up
binary floating point noise.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

logger = logging.getLogger(__name__)

MIN_AMOUNT_PENCE = 1
MAX_AMOUNT_PENCE = 10_000_000_000
MAX_AMOUNT_POUNDS = Decimal("10000000")

_HUNDRED = Decimal(100)
_PENNY = Decimal("0.01")


def _to_decimal(value) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def pence_to_pounds(pence) -> Decimal:
    """Convert a stored pence amount to pounds.

    ``None`` and non-numeric input become 0, like :func:`pounds_to_pence`.

    Raises:
        ValueError: if ``pence`` has a fractional part; pence are whole
            numbers and truncating would misreport the amount.
    """
    amount = _to_decimal(pence)
    if amount is None:
        if pence is not None:
            logger.warning("Non-numeric pence amount: %r", pence)
        return Decimal("0.00")
    if amount != amount.to_integral_value():
        raise ValueError(f"Pence amount must be a whole number, got {pence!r}.")
    if not validate_pence_amount(amount):
        logger.warning("Suspicious pence amount: %s", pence)
    return (amount / _HUNDRED).quantize(_PENNY)


def pounds_to_pence(pounds) -> int:
    """Convert a pounds value (number or numeric string) to integer pence.

    Non-numeric input and ``None`` convert to 0, mirroring how blank form
    fields are treated.  Use :func:`parse_pounds_to_pence` where invalid
    input must be rejected.
    """
    amount = _to_decimal(pounds)
    if amount is None:
        return 0
    if not validate_pounds_amount(amount):
        logger.warning("Suspicious pounds amount: %s", amount)
    return int((amount * _HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_pounds_to_pence(pounds) -> int:
    """Strict variant of :func:`pounds_to_pence` used for user input.

    Raises:
        ValueError: if the value is not numeric, not positive, or above the
            maximum accepted amount.
    """
    amount = _to_decimal(pounds)
    if amount is None:
        raise ValueError("Amount must be a number.")
    if amount <= 0:
        raise ValueError("Amount must be greater than zero.")
    if amount > MAX_AMOUNT_POUNDS:
        raise ValueError("Amount exceeds the maximum allowed value.")
    pence = int((amount * _HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if pence < MIN_AMOUNT_PENCE:
        raise ValueError("Amount must be at least £0.01.")
    return pence


def validate_pence_amount(pence, context: str = "") -> bool:
    """Return True when ``pence`` is a plausible stored amount."""
    amount = _to_decimal(pence)
    if amount is None or amount != amount.to_integral_value():
        return False
    prefix = f"[{context}] " if context else ""
    if amount > MAX_AMOUNT_PENCE:
        logger.error("%sAmount in pence (%s) exceeds maximum (%s)", prefix, pence, MAX_AMOUNT_PENCE)
        return False
    if amount < MIN_AMOUNT_PENCE:
        logger.warning("%sAmount in pence (%s) is below minimum (%s)", prefix, pence, MIN_AMOUNT_PENCE)
        return False
    if amount < 100:
        logger.debug("%sAmount (%s) seems low for a pence value", prefix, pence)
    return True


def validate_pounds_amount(pounds, context: str = "") -> bool:
    """Return True when ``pounds`` is a plausible user-entered amount."""
    amount = _to_decimal(pounds)
    if amount is None:
        return False
    prefix = f"[{context}] " if context else ""
    if amount > MAX_AMOUNT_POUNDS:
        logger.error("%sAmount in pounds (£%s) exceeds maximum (£%s)", prefix, amount, MAX_AMOUNT_POUNDS)
        return False
    if amount <= 0:
        logger.warning("%sAmount in pounds (£%s) is below minimum (£0.01)", prefix, amount)
        return False
    if amount > 10000:
        logger.debug("%sAmount (£%s) seems high; is it in pence?", prefix, amount)
    return True


def format_gbp(pence) -> str:
    """Format a pence amount for display, e.g. ``1234`` -> ``"£12.34"``."""
    return f"£{pence_to_pounds(pence or 0):,.2f}"


def calculate_platform_fee(amount_pence: int, fee_percent) -> int:
    """Platform fee in pence for a charge, rounded half up."""
    percent = _to_decimal(fee_percent) or Decimal(0)
    fee = (Decimal(int(amount_pence)) * percent / _HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(fee)
