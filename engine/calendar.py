from __future__ import annotations

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from engine.domain import Frequency
from engine.errors import CalendarArithmeticFailure

_STEPS = {
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.BIWEEKLY: relativedelta(weeks=2),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.QUARTERLY: relativedelta(months=3),
    Frequency.YEARLY: relativedelta(years=1),
}


def parse_month_key(month_key: str) -> tuple[int, int]:
    """
    Accepts 'YYYY-MM' only. Raises ValueError with a clear message if invalid.
    """
    if not isinstance(month_key, str):
        raise ValueError("month must be a string in format YYYY-MM")

    parts = month_key.split("-")
    if len(parts) != 2:
        raise ValueError("month must be in format YYYY-MM (example: 2025-01)")

    y_s, m_s = parts
    if len(y_s) != 4 or len(m_s) != 2 or not (y_s.isdigit() and m_s.isdigit()):
        raise ValueError("month must be in format YYYY-MM (example: 2025-01)")

    y = int(y_s)
    m = int(m_s)
    if m < 1 or m > 12:
        raise ValueError("month must be in format YYYY-MM with MM from 01 to 12")

    return y, m


def month_key(dt: datetime) -> str:
    return f"{dt.year:04d}-{dt.month:02d}"


def month_range(key: str) -> tuple[datetime, datetime]:
    """
    key: 'YYYY-MM'
    Returns (start_inclusive, end_exclusive)
    """
    y, m = parse_month_key(key)
    start = datetime(y, m, 1)
    if m == 12:
        end = datetime(y + 1, 1, 1)
    else:
        end = datetime(y, m + 1, 1)
    return start, end


def day_window(now: datetime) -> tuple[datetime, datetime]:
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def week_key(now: datetime) -> str:
    iso_year, iso_week, _ = now.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def advance(dt: datetime, frequency: Frequency) -> datetime:
    """Move a schedule date forward by one calendar period.

    Month-based steps keep the day of month where it exists and clamp to the
    last day otherwise (Jan 31 -> Feb 28).
    """
    try:
        step = _STEPS[Frequency(frequency)]
    except (KeyError, ValueError) as e:
        raise CalendarArithmeticFailure(f"unsupported frequency {frequency!r}") from e
    try:
        return dt + step
    except (OverflowError, ValueError) as e:
        raise CalendarArithmeticFailure(f"cannot advance {dt!r} by {frequency}: {e}") from e
