"""Date parsing utilities."""

import calendar
import re
from datetime import date, timedelta
from typing import Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


# Bank exports use day-first dotted dates: 05.11.25 or 05.11.2025
_DOTTED_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{2}|\d{4})$")
_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{2})$")

DateLike = Union[str, date]


def _expand_year(year: str) -> int:
    return int(year) + 2000 if len(year) == 2 else int(year)


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports:
    - Day-first bank dates: "05.11.25", "05.11.2025"
    - ISO dates: "2025-11-05"
    - Other absolute dates understood by dateutil: "November 5, 2025"
    - Relative dates: "today", "yesterday", "this month", "last month",
      "this year", "last year"

    Args:
        date_str: Date string

    Returns:
        Date object

    Raises:
        ValueError: If the date string cannot be parsed
    """
    if date_str is None or not str(date_str).strip():
        raise ValueError("Empty date string")

    text = str(date_str).strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
        "this month": today.replace(day=1),
        "last month": (today - relativedelta(months=1)).replace(day=1),
        "this year": today.replace(month=1, day=1),
        "last year": today.replace(month=1, day=1) - relativedelta(years=1),
    }
    if text in relative_dates:
        return relative_dates[text]

    match = _DOTTED_DATE.match(text)
    if match:
        day, month, year = match.groups()
        try:
            return date(_expand_year(year), int(month), int(day))
        except ValueError as e:
            raise ValueError(f"Could not parse date '{date_str}': {e}") from e

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError, TypeError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}") from e


def to_year_month(value: DateLike) -> str:
    """Return the YYYY-MM bucket for a transaction date.

    Both "DD.MM.YY(YY)" and "YYYY-MM-DD" normalize to the same key, so
    "05.11.25", "05.11.2025" and "2025-11-05" all map to "2025-11".

    Raises:
        ValueError: If the value is not a recognizable date
    """
    if isinstance(value, date):
        return value.strftime("%Y-%m")

    text = (value or "").strip()
    if not text:
        raise ValueError("Empty date string")

    match = _DOTTED_DATE.match(text)
    if match:
        day, month, year = match.groups()
        try:
            return date(_expand_year(year), int(month), int(day)).strftime("%Y-%m")
        except ValueError as e:
            raise ValueError(f"Invalid date '{value}': {e}") from e

    return parse_date(text).strftime("%Y-%m")


def validate_year_month(value: str) -> str:
    """Check a YYYY-MM string and return it unchanged."""
    match = _YEAR_MONTH.match(value.strip()) if value else None
    if match is None or not 1 <= int(match.group(2)) <= 12:
        raise ValueError(f"Invalid month '{value}': expected YYYY-MM")
    return value.strip()


def shift_month(year_month: str, offset: int) -> str:
    """Move a YYYY-MM key by a number of months."""
    year, month = (int(p) for p in validate_year_month(year_month).split("-"))
    shifted = date(year, month, 1) + relativedelta(months=offset)
    return shifted.strftime("%Y-%m")


def month_sequence(start_month: str, count: int) -> list[str]:
    """Return count consecutive YYYY-MM keys starting at start_month."""
    return [shift_month(start_month, i) for i in range(count)]


def last_months(count: int, today: date | None = None) -> list[str]:
    """Return the last count months, oldest first, ending with the current one."""
    current = (today or date.today()).strftime("%Y-%m")
    return month_sequence(shift_month(current, -(count - 1)), count)


def days_in_month(day: date) -> int:
    """Calendar length of the month containing day."""
    return calendar.monthrange(day.year, day.month)[1]


def get_date_range(period: str) -> tuple[date, date]:
    """Get start and end dates for a specified period.

    Args:
        period: One of this-month, this-year, last-month, last-year

    Returns:
        Tuple of (start_date, end_date)

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = date.today()

    if period == "this-month":
        return today.replace(day=1), today
    if period == "this-year":
        return today.replace(month=1, day=1), today
    if period == "last-month":
        start_date = (today - relativedelta(months=1)).replace(day=1)
        return start_date, today.replace(day=1) - timedelta(days=1)
    if period == "last-year":
        start_date = today.replace(month=1, day=1) - relativedelta(years=1)
        return start_date, today.replace(month=1, day=1) - timedelta(days=1)

    raise ValueError(
        f"Unknown period: '{period}'. Supported periods: this-month, this-year, last-month, last-year"
    )
