"""Tests for calendar month arithmetic and renewal windows."""

from datetime import datetime, timezone

from memberhub.services.activation import renewal_window
from memberhub.utils.dt import add_months, as_utc_aware


def test_add_months_simple():
    start = datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)
    assert add_months(start, 1) == datetime(2024, 4, 15, 10, 30, tzinfo=timezone.utc)


def test_add_months_clamps_to_month_end():
    """Jan 31 + 1 month lands on the last day of February."""
    assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)  # leap year
    assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)
    assert add_months(datetime(2024, 3, 31), 1) == datetime(2024, 4, 30)


def test_add_months_crosses_year():
    assert add_months(datetime(2024, 11, 30), 3) == datetime(2025, 2, 28)
    assert add_months(datetime(2024, 12, 1), 1) == datetime(2025, 1, 1)


def test_add_twelve_months_from_leap_day():
    assert add_months(datetime(2024, 2, 29), 12) == datetime(2025, 2, 28)


def test_renewal_window_per_interval():
    start = datetime(2024, 1, 31, tzinfo=timezone.utc)
    assert renewal_window(start, "monthly") == datetime(2024, 2, 29, tzinfo=timezone.utc)
    assert renewal_window(start, "quarterly") == datetime(2024, 4, 30, tzinfo=timezone.utc)
    assert renewal_window(start, "yearly") == datetime(2025, 1, 31, tzinfo=timezone.utc)


def test_one_time_plan_never_expires():
    start = datetime(2024, 1, 31, tzinfo=timezone.utc)
    assert renewal_window(start, "one-time") is None
    assert renewal_window(start, None) is None


def test_as_utc_aware():
    naive = datetime(2024, 5, 1, 12, 0)
    assert as_utc_aware(naive).tzinfo == timezone.utc
    assert as_utc_aware(None) is None
