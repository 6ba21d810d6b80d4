"""
Currency and clock helpers.

Amounts are rendered the way the plant reports them: Indonesian Rupiah with
"." as the thousands separator and "," as the decimal separator, e.g.
``Rp 1.250.000``. ``parse_currency`` is the counterpart used when a currency
field is edited, so ``parse_currency(format_currency(x)) == x`` for whole
amounts.
"""

import re

from errors import ValidationError

CURRENCY_PREFIX = "Rp "
MINUTES_PER_DAY = 24 * 60

_NOT_AMOUNT = re.compile(r"[^\d,]")
_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})$")


def _as_number(value):
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    return parse_currency(value)


def format_currency(amount):
    """Render an amount as Rupiah text. Zero, None and garbage give ``Rp 0``."""
    value = _as_number(amount)
    if not value:
        return CURRENCY_PREFIX + "0"
    sign = "-" if value < 0 else ""
    if isinstance(value, int):
        text = f"{abs(value):,}"
    else:
        # id-ID keeps at most three fraction digits
        text = f"{abs(value):,.3f}".rstrip("0").rstrip(".")
    whole, _, fraction = text.partition(".")
    whole = whole.replace(",", ".")
    if fraction:
        return f"{CURRENCY_PREFIX}{sign}{whole},{fraction}"
    return f"{CURRENCY_PREFIX}{sign}{whole}"


def parse_currency(text):
    """Turn currency text back into a number; empty or non-numeric input is 0."""
    if isinstance(text, bool):
        return int(text)
    if isinstance(text, (int, float)):
        return text
    cleaned = _NOT_AMOUNT.sub("", str(text or "")).replace(",", ".")
    if cleaned.isdigit():
        return int(cleaned)
    try:
        value = float(cleaned)
    except ValueError:
        return 0
    if value.is_integer():
        return int(value)
    return value


def parse_clock(text):
    """Minutes since midnight for an ``HH:MM`` string."""
    match = _CLOCK.match(str(text).strip())
    if not match:
        raise ValidationError(f"Invalid time {text!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Invalid time {text!r}, expected HH:MM")
    return hours * 60 + minutes


def compute_duration_minutes(start, end):
    """
    Minutes from ``start`` to ``end``, wrapping past midnight.

    Returns None when either time is missing. ``start == end`` is 0, not a
    full day.
    """
    if not start or not end:
        return None
    minutes = parse_clock(end) - parse_clock(start)
    if minutes < 0:
        minutes += MINUTES_PER_DAY
    return minutes
