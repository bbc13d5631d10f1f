from datetime import datetime

import pytest

from engine.calendar import advance, day_window, month_key, month_range, parse_month_key, week_key
from engine.domain import Frequency
from engine.errors import CalendarArithmeticFailure


def test_parse_month_key():
    assert parse_month_key("2025-03") == (2025, 3)


@pytest.mark.parametrize("bad", ["2025-3", "2025/03", "2025-13", "25-03", "abcd-ef", 202503])
def test_parse_month_key_rejects_malformed(bad):
    with pytest.raises(ValueError):
        parse_month_key(bad)


def test_month_range_is_half_open():
    start, end = month_range("2025-12")
    assert start == datetime(2025, 12, 1)
    assert end == datetime(2026, 1, 1)


def test_month_key_and_day_window():
    now = datetime(2025, 3, 14, 15, 30)
    assert month_key(now) == "2025-03"
    assert day_window(now) == (datetime(2025, 3, 14), datetime(2025, 3, 15))


def test_week_key_uses_iso_weeks():
    assert week_key(datetime(2025, 1, 1)) == "2025-W01"
    assert week_key(datetime(2024, 12, 30)) == "2025-W01"


def test_advance_weekly_and_biweekly():
    t = datetime(2025, 1, 1, 9, 0)
    assert advance(t, Frequency.WEEKLY) == datetime(2025, 1, 8, 9, 0)
    assert advance(t, Frequency.BIWEEKLY) == datetime(2025, 1, 15, 9, 0)


def test_advance_monthly_clamps_month_end():
    assert advance(datetime(2025, 1, 31), Frequency.MONTHLY) == datetime(2025, 2, 28)
    assert advance(datetime(2024, 1, 31), Frequency.MONTHLY) == datetime(2024, 2, 29)
    assert advance(datetime(2025, 1, 15), Frequency.MONTHLY) == datetime(2025, 2, 15)


def test_advance_quarterly_and_yearly():
    assert advance(datetime(2025, 11, 30), Frequency.QUARTERLY) == datetime(2026, 2, 28)
    assert advance(datetime(2024, 2, 29), Frequency.YEARLY) == datetime(2025, 2, 28)


def test_advance_overflow_is_calendar_failure():
    with pytest.raises(CalendarArithmeticFailure):
        advance(datetime(9999, 12, 30), Frequency.YEARLY)


def test_advance_unknown_frequency_is_calendar_failure():
    with pytest.raises(CalendarArithmeticFailure):
        advance(datetime(2025, 1, 1), "Fortnightly-ish")


def test_frequency_parse_accepts_app_labels():
    assert Frequency.parse("Bi-weekly") is Frequency.BIWEEKLY
    assert Frequency.parse("biweekly") is Frequency.BIWEEKLY
    assert Frequency.parse("Quarterly") is Frequency.QUARTERLY
    assert Frequency.parse("whenever") is Frequency.MONTHLY
