"""Pure billing arithmetic: usage, bill total, due date and period keys."""

import calendar
import re
from datetime import date

from waterbill.services.errors import ValidationError

PERIOD_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def clamp_end_reading(start_reading: int, end_reading: int | None) -> int:
    """Return an ending reading never below the starting one.

    A missing reading counts as no consumption.
    """
    if end_reading is None:
        return start_reading
    return max(end_reading, start_reading)


def compute_usage(start_reading: int, end_reading: int | None) -> int:
    """usage = max(0, end - start)."""
    return clamp_end_reading(start_reading, end_reading) - start_reading


def compute_total(usage: int, unit_rate: int, base_fee: int, admin_fee: int = 0) -> int:
    """Bill total excluding late fee: unit_rate * usage + base_fee + admin_fee.

    Raises:
        ValueError: usage is negative (callers clamp before calling)
    """
    if usage < 0:
        raise ValueError(f"usage must be >= 0, got {usage}")
    return unit_rate * usage + base_fee + admin_fee


def validate_period_key(period_key: str) -> str:
    if not isinstance(period_key, str) or not PERIOD_KEY_RE.match(period_key):
        raise ValidationError(f"Period must be formatted YYYY-MM, got {period_key!r}")
    return period_key


def parse_period_key(period_key: str) -> tuple[int, int]:
    """Split ``YYYY-MM`` into (year, month)."""
    validate_period_key(period_key)
    year, month = period_key.split("-")
    return int(year), int(month)


def format_period_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def next_period_key(period_key: str) -> str:
    year, month = parse_period_key(period_key)
    if month == 12:
        return format_period_key(year + 1, 1)
    return format_period_key(year, month + 1)


def previous_period_key(period_key: str) -> str:
    year, month = parse_period_key(period_key)
    if month == 1:
        return format_period_key(year - 1, 12)
    return format_period_key(year, month - 1)


def due_date_for(period_key: str, due_day: int | None) -> date:
    """Due date in the period's own month, day clamped into the month."""
    year, month = parse_period_key(period_key)
    last_day = calendar.monthrange(year, month)[1]
    day = min(max(1, due_day or 15), last_day)
    return date(year, month, day)


__all__ = [
    "PERIOD_KEY_RE",
    "clamp_end_reading",
    "compute_usage",
    "compute_total",
    "validate_period_key",
    "parse_period_key",
    "format_period_key",
    "next_period_key",
    "previous_period_key",
    "due_date_for",
]
