"""Monthly budget risk evaluation.

The tiers mirror a spreadsheet IFS formula; the first matching rule wins:

1. planned spending used up while income is short      -> Very High
2. income short and spending ahead of month progress
   by more than 0.2                                    -> High
   (with all income in, early spending alone is not a risk)
3. income shortfall ratio <= 0.2                       -> Low
4. shortfall ratio <= 0.5: High after 70% of the month, else Medium
5. shortfall ratio > 0.5: Medium up to 30% of the month, High up to 70%,
   else Very High
"""

import math
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from budgetbook.domain.entities import RiskLevel, RiskResult
from budgetbook.domain.errors import ValidationError
from budgetbook.utils.date_parser import days_in_month as calendar_days, parse_date

Number = Union[int, float, Decimal, None]

SPENDING_AHEAD_MARGIN = 0.2
LOW_SHORTFALL_RATIO = 0.2
MEDIUM_SHORTFALL_RATIO = 0.5
EARLY_MONTH = 0.3
LATE_MONTH = 0.7


def _safe(value: Number) -> float:
    """Convert to float, mapping missing or non-finite input to 0."""
    if value is None:
        return 0.0
    value = float(value)
    return value if math.isfinite(value) else 0.0


def _round(value: float) -> float:
    return round(value, 6) if math.isfinite(value) else 0.0


def _determine_risk_level(
    missing_income_amount: float,
    missing_income_ratio: float,
    month_progress_ratio: float,
    remaining_planned_spending: float,
    spending_rate: float,
) -> RiskLevel:
    if remaining_planned_spending == 0 and missing_income_amount > 0:
        return RiskLevel.VERY_HIGH
    if missing_income_amount > 0 and spending_rate > month_progress_ratio + SPENDING_AHEAD_MARGIN:
        return RiskLevel.HIGH
    if missing_income_ratio <= LOW_SHORTFALL_RATIO:
        return RiskLevel.LOW
    if missing_income_ratio <= MEDIUM_SHORTFALL_RATIO:
        return RiskLevel.HIGH if month_progress_ratio > LATE_MONTH else RiskLevel.MEDIUM
    if month_progress_ratio <= EARLY_MONTH:
        return RiskLevel.MEDIUM
    if month_progress_ratio <= LATE_MONTH:
        return RiskLevel.HIGH
    return RiskLevel.VERY_HIGH


def evaluate_budget_risk(
    planned_income: Number,
    actual_income: Number,
    planned_spending: Number,
    actual_spending: Number,
    today: Union[date, str],
    days_in_month: Optional[int] = None,
) -> RiskResult:
    """Classify how risky the current month looks.

    Args:
        planned_income: Budgeted income for the month
        actual_income: Income received so far
        planned_spending: Budgeted spending for the month
        actual_spending: Spending so far
        today: Current date (date or parseable string)
        days_in_month: Month length; defaults to the calendar month of today

    Returns:
        RiskResult with the tier and the ratios it was derived from,
        rounded to six decimals

    Raises:
        ValidationError: If today is not a date or days_in_month <= 0
    """
    if not isinstance(today, date):
        try:
            today = parse_date(today)
        except ValueError as e:
            raise ValidationError(f"Invalid date for risk evaluation: {e}") from e

    total_days = days_in_month if days_in_month is not None else calendar_days(today)
    if total_days <= 0:
        raise ValidationError("Days in month must be greater than zero")

    planned_income = _safe(planned_income)
    actual_income = _safe(actual_income)
    planned_spending = _safe(planned_spending)
    actual_spending = _safe(actual_spending)

    current_day = min(max(today.day, 1), total_days)

    missing_income_amount = max(planned_income - actual_income, 0.0)
    missing_income_ratio = missing_income_amount / planned_income if planned_income > 0 else 0.0
    month_progress_ratio = current_day / total_days
    remaining_planned_spending = max(planned_spending - actual_spending, 0.0)
    spending_rate = actual_spending / planned_spending if planned_spending > 0 else 0.0

    metrics = {
        "missing_income_amount": _round(missing_income_amount),
        "missing_income_ratio": _round(missing_income_ratio),
        "month_progress_ratio": _round(month_progress_ratio),
        "remaining_planned_spending": _round(remaining_planned_spending),
        "spending_rate": _round(spending_rate),
    }
    return RiskResult(risk_level=_determine_risk_level(**metrics), **metrics)
