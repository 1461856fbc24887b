"""CLI helpers for date range and month resolution."""

from datetime import date

import click

from budgetbook.utils.date_parser import (
    get_date_range,
    last_months,
    month_sequence,
    parse_date,
    validate_year_month,
)


def _fail(ctx, message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    ctx.exit(1)


def _parse_bound(ctx, value: str | None, name: str) -> date | None:
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        _fail(ctx, f"Invalid {name}: {e}")


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
) -> tuple[date | None, date | None]:
    """Resolve a date range from one period flag or explicit start/end dates.

    Period flags are keyed by period name ("this-month", "last-year", ...),
    matching the ``--<period>`` options of the calling command.
    """
    periods = [period for period, is_set in period_flags.items() if is_set]
    options = ", ".join(f"--{period}" for period in period_flags)

    if len(periods) > 1:
        _fail(ctx, f"Only one of {options} can be given at a time.")
    if periods and (start_date or end_date):
        _fail(ctx, f"{options} cannot be combined with --start-date or --end-date.")
    if periods:
        return get_date_range(periods[0])

    return _parse_bound(ctx, start_date, "start date"), _parse_bound(ctx, end_date, "end date")


def resolve_cli_months(ctx, *, start_month: str | None, count: int) -> list[str]:
    """Months to show: count months from start_month, else the last count months."""
    if count < 1:
        _fail(ctx, "--months must be at least 1")
    if start_month is None:
        return last_months(count)
    try:
        return month_sequence(validate_year_month(start_month), count)
    except ValueError as e:
        _fail(ctx, str(e))
