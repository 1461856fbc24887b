"""Tests for date parser with bank formats and relative dates."""

from datetime import date, timedelta

import pytest
from dateutil.relativedelta import relativedelta

from budgetbook.utils.date_parser import (
    days_in_month,
    get_date_range,
    last_months,
    month_sequence,
    parse_date,
    shift_month,
    to_year_month,
    validate_year_month,
)


def test_parse_absolute_date():
    """Test parsing ISO dates."""
    assert parse_date("2024-01-15") == date(2024, 1, 15)


def test_parse_dotted_bank_dates():
    """Day-first dotted dates with short and long years."""
    assert parse_date("05.11.25") == date(2025, 11, 5)
    assert parse_date("05.11.2025") == date(2025, 11, 5)
    assert parse_date("5.1.2025") == date(2025, 1, 5)


def test_parse_invalid_dotted_date():
    """Impossible dotted dates are rejected."""
    with pytest.raises(ValueError):
        parse_date("31.02.2025")


def test_parse_today():
    """Test parsing 'today'."""
    assert parse_date("today") == date.today()


def test_parse_yesterday():
    """Test parsing 'yesterday'."""
    assert parse_date("yesterday") == date.today() - timedelta(days=1)


def test_parse_last_month():
    """Test parsing 'last month'."""
    expected = (date.today() - relativedelta(months=1)).replace(day=1)
    assert parse_date("Last Month") == expected


def test_parse_this_year():
    """Test parsing 'this year'."""
    assert parse_date("this year") == date(date.today().year, 1, 1)


def test_parse_invalid():
    """Test invalid and empty strings."""
    with pytest.raises(ValueError):
        parse_date("garbage")
    with pytest.raises(ValueError):
        parse_date("")


def test_to_year_month_normalizes_formats():
    """All supported formats bucket into the same month key."""
    assert to_year_month("05.11.25") == "2025-11"
    assert to_year_month("05.11.2025") == "2025-11"
    assert to_year_month("2025-11-05") == "2025-11"
    assert to_year_month(date(2025, 11, 5)) == "2025-11"


def test_to_year_month_invalid():
    """Unreadable dates raise ValueError."""
    with pytest.raises(ValueError):
        to_year_month("05.13.2025")
    with pytest.raises(ValueError):
        to_year_month("31.02.25")
    with pytest.raises(ValueError):
        to_year_month("")


def test_validate_year_month():
    """Only YYYY-MM with a real month passes."""
    assert validate_year_month("2025-11") == "2025-11"
    for bad in ("2025-13", "2025-1", "11-2025", ""):
        with pytest.raises(ValueError):
            validate_year_month(bad)


def test_shift_month_across_years():
    """Shifting wraps over year boundaries."""
    assert shift_month("2025-12", 1) == "2026-01"
    assert shift_month("2025-01", -1) == "2024-12"


def test_month_sequence_and_last_months():
    """Month sequences are consecutive and oldest first."""
    assert month_sequence("2025-11", 3) == ["2025-11", "2025-12", "2026-01"]
    assert last_months(3, today=date(2025, 2, 10)) == ["2024-12", "2025-01", "2025-02"]


def test_days_in_month():
    """Calendar month lengths, leap years included."""
    assert days_in_month(date(2024, 2, 1)) == 29
    assert days_in_month(date(2025, 2, 1)) == 28
    assert days_in_month(date(2025, 11, 30)) == 30


def test_get_date_range_this_month():
    """Test getting date range for this month."""
    start, end = get_date_range("this-month")
    today = date.today()
    assert start == today.replace(day=1)
    assert end == today


def test_get_date_range_last_month():
    """Test getting date range for last month."""
    start, end = get_date_range("last-month")
    first_of_this_month = date.today().replace(day=1)
    assert end == first_of_this_month - timedelta(days=1)
    assert start == end.replace(day=1)


def test_get_date_range_last_year():
    """Test getting date range for last year."""
    start, end = get_date_range("last-year")
    last_year = date.today().year - 1
    assert start == date(last_year, 1, 1)
    assert end == date(last_year, 12, 31)


def test_get_date_range_invalid_period():
    """Test that invalid period raises ValueError."""
    with pytest.raises(ValueError, match="Unknown period"):
        get_date_range("next-decade")
