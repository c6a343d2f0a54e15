from __future__ import annotations

import math
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

NEVER_DAYS = 999


def utc_now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def as_date(value: date | datetime | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_since(value: date | datetime | None, today: date) -> int:
    """Calendar days from ``value`` to ``today``; NEVER_DAYS when there is no value."""
    value = as_date(value)
    if value is None:
        return NEVER_DAYS
    return (today - value).days


def days_until(value: date | datetime | None, today: date) -> int | None:
    value = as_date(value)
    if value is None:
        return None
    return (value - today).days


def week_start(today: date) -> date:
    # weekday(): Monday=0 ... Sunday=6
    return today - timedelta(days=(today.weekday() + 1) % 7)


def quarter_bounds(today: date) -> tuple[date, date]:
    first_month = (today.month - 1) // 3 * 3 + 1
    start = date(today.year, first_month, 1)
    if first_month == 10:
        end = date(today.year, 12, 31)
    else:
        end = date(today.year, first_month + 3, 1) - timedelta(days=1)
    return start, end


def round_half_up(value: float) -> int:
    return math.floor(Decimal(str(value)) + Decimal("0.5"))
