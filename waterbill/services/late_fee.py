"""Late fee (denda) step function.

Elapsed time is measured in whole days, rounded up, from the due date to the
payment date. Fewer than 30 elapsed days charges tier 1; 30 or more charges
tier 2, which stays flat however late the payment is.
"""

import math
from datetime import date, datetime, time, timezone

DAYS_PER_MONTH = 30


def _as_datetime(value: date | datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def compute_late_fee(
    due_date: date | datetime | str | None,
    payment_date: date | datetime,
    fee_tier1: int,
    fee_tier2: int,
) -> int:
    """Late fee owed for paying on ``payment_date``.

    Args:
        due_date: Bill due date; None or an unparseable value never charges a fee
        payment_date: Date (or timestamp) of the payment
        fee_tier1: Fee when paid within the first 30-day window after the due date
        fee_tier2: Flat fee from 30 days late onwards

    Returns:
        0 when paid on or before the due date, else the tier fee
    """
    if due_date is None:
        return 0
    try:
        due = _as_datetime(due_date)
        paid = _as_datetime(payment_date)
    except (TypeError, ValueError):
        return 0

    if paid <= due:
        return 0

    diff_days = math.ceil((paid - due).total_seconds() / 86400)
    diff_months = diff_days // DAYS_PER_MONTH
    return fee_tier1 if diff_months == 0 else fee_tier2


__all__ = ["compute_late_fee", "DAYS_PER_MONTH"]
