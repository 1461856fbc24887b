"""Budget aggregation, monthly overview and risk integration."""

import math
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from budgetbook.domain.entities import (
    SAVINGS_ID,
    TRANSFERS_ID,
    UNCATEGORIZED_ID,
    BudgetRow,
    MainCategory,
    MonthlySummary,
    RiskResult,
    SeriesStats,
    SubCategory,
    Transaction,
)
from budgetbook.domain.errors import ValidationError
from budgetbook.domain.risk import evaluate_budget_risk
from budgetbook.domain.store import TransactionStore, budget_key
from budgetbook.logging_setup import get_logger
from budgetbook.utils.date_parser import shift_month, to_year_month, validate_year_month

logger = get_logger("budgetbook.budget")

UNCATEGORIZED_NAME = "Uncategorized"
ZERO = Decimal("0")


def _year_month_or_none(txn: Transaction) -> Optional[str]:
    try:
        return to_year_month(txn.date)
    except ValueError:
        logger.warning("Skipping transaction %s with unreadable date '%s'", txn.id, txn.date)
        return None


def compute_monthly_spending(
    transactions: Iterable[Transaction],
    months: Iterable[str],
    editable_category_ids: Iterable[str],
    income_category_ids: Iterable[str] = (),
) -> dict[str, Decimal]:
    """Sum transactions per category and month.

    Income categories add the signed amount, so a deduction nets against
    salary. Every other category subtracts it: a purchase of -1000 counts as
    1000 spent and a refund of +200 brings that down to 800. Uncategorized
    transactions go to the ``__uncategorized`` bucket. Transactions in the
    transfers category, outside the requested months, or in a category that
    is not editable are skipped.

    Returns:
        Mapping of "<categoryId>|<YYYY-MM>" to the accumulated amount
    """
    month_set = set(months)
    editable = set(editable_category_ids)
    income = set(income_category_ids)
    result: dict[str, Decimal] = {}

    for txn in transactions:
        if txn.category_id == TRANSFERS_ID:
            continue
        month = _year_month_or_none(txn)
        if month not in month_set:
            continue
        category_id = txn.category_id or UNCATEGORIZED_ID
        if category_id not in editable:
            continue
        delta = txn.amount if category_id in income else -txn.amount
        key = budget_key(category_id, month)
        result[key] = result.get(key, ZERO) + delta
    return result


def compute_monthly_net_change(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Sum signed amounts per month across all transactions."""
    result: dict[str, Decimal] = {}
    for txn in transactions:
        month = _year_month_or_none(txn)
        if month is None:
            continue
        result[month] = result.get(month, ZERO) + txn.amount
    return dict(sorted(result.items()))


def build_budget_category_tree(
    main_categories: Sequence[MainCategory],
    sub_categories: dict[str, SubCategory],
) -> list[BudgetRow]:
    """Flatten the category tree for budget display.

    Mains with subcategories become collapsible, non-editable containers;
    childless mains are editable leaves. The transfers category is left out
    and a single Uncategorized row is appended.
    """
    rows = []
    for main in sorted(main_categories, key=lambda c: c.sort_order):
        if main.id == TRANSFERS_ID:
            continue
        children = tuple(
            BudgetRow(
                category_id=sub.id,
                name=sub.name,
                level=1,
                is_collapsible=False,
                is_editable=True,
                is_income=main.is_income,
            )
            for sub in (sub_categories.get(i) for i in main.subcategory_ids)
            if sub is not None
        )
        rows.append(
            BudgetRow(
                category_id=main.id,
                name=main.name,
                level=0,
                is_collapsible=bool(children),
                is_editable=not children,
                is_income=main.is_income,
                children=children,
            )
        )

    if not any(row.category_id == UNCATEGORIZED_ID for row in rows):
        rows.append(
            BudgetRow(
                category_id=UNCATEGORIZED_ID,
                name=UNCATEGORIZED_NAME,
                level=0,
                is_collapsible=False,
                is_editable=True,
            )
        )
    return rows


def editable_category_ids(rows: Iterable[BudgetRow]) -> set[str]:
    """Ids of all editable rows, children included."""
    ids = set()
    for row in rows:
        if row.is_editable:
            ids.add(row.category_id)
        ids.update(editable_category_ids(row.children))
    return ids


def calculate_stats(
    values: Sequence[float | Decimal], exclude_indices: Iterable[int] = ()
) -> SeriesStats:
    """Sum, mean, population variance and coefficient of variation.

    Args:
        values: Monthly values
        exclude_indices: Positions to leave out, e.g. the current month

    Returns:
        SeriesStats; cv is the standard deviation as a percentage of the
        absolute mean, or None when the mean is zero
    """
    excluded = set(exclude_indices)
    filtered = [float(v) for i, v in enumerate(values) if i not in excluded]
    total = sum(filtered)
    avg = total / len(filtered) if filtered else 0.0
    variance = sum((v - avg) ** 2 for v in filtered) / len(filtered) if filtered else 0.0
    cv = math.sqrt(variance) / abs(avg) * 100 if avg != 0 else None
    return SeriesStats(sum=total, avg=avg, variance=variance, cv=cv)


class BudgetService:
    """Service computing budget views over the store."""

    def __init__(self, store: TransactionStore):
        """Initialize budget service.

        Args:
            store: Transaction store
        """
        self.store = store

    def income_category_ids(self) -> set[str]:
        """Income mains and their subcategories."""
        ids = set()
        for main in self.store.main_categories:
            if main.is_income:
                ids.add(main.id)
                ids.update(main.subcategory_ids)
        return ids

    def savings_category_ids(self) -> set[str]:
        main = self.store.get_main_category(SAVINGS_ID)
        if main is None:
            return set()
        return {main.id, *main.subcategory_ids}

    def build_budget_category_tree(self) -> list[BudgetRow]:
        return build_budget_category_tree(
            self.store.main_categories,
            {sub.id: sub for sub in self.store.sub_categories},
        )

    def editable_category_ids(self) -> set[str]:
        return editable_category_ids(self.build_budget_category_tree())

    def compute_monthly_spending(
        self,
        months: Iterable[str],
        transactions: Optional[Iterable[Transaction]] = None,
        editable_ids: Optional[Iterable[str]] = None,
    ) -> dict[str, Decimal]:
        """Spending per "<categoryId>|<YYYY-MM>" for the stored transactions.

        Args:
            months: YYYY-MM keys to include
            transactions: Defaults to all stored transactions
            editable_ids: Defaults to the editable rows of the budget tree
        """
        return compute_monthly_spending(
            self.store.transactions if transactions is None else transactions,
            months,
            self.editable_category_ids() if editable_ids is None else editable_ids,
            self.income_category_ids(),
        )

    def compute_monthly_net_change(self) -> dict[str, Decimal]:
        return compute_monthly_net_change(self.store.transactions)

    def set_budget(self, category_id: str, month: str, amount: Decimal) -> None:
        """Plan an amount for a category in a month.

        Raises:
            ValidationError: If the category is a container row or the month is malformed
            NotFoundError: If the category doesn't exist
        """
        if category_id not in self.editable_category_ids():
            self.store.require_category(category_id)
            raise ValidationError(
                f"Category {category_id} is not budgetable; budget its subcategories instead"
            )
        self.store.set_budget(category_id, month, amount)

    def clear_budget(self, category_id: str, month: str) -> None:
        """Remove the planned amount for a category in a month."""
        try:
            month = validate_year_month(month)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        self.store.clear_budget(category_id, month)

    def planned_totals(self, month: str) -> tuple[Decimal, Decimal]:
        """Planned (income, spending) for a month over the editable categories."""
        income_ids = self.income_category_ids()
        income = spending = ZERO
        for category_id in self.editable_category_ids():
            amount = self.store.get_budget(category_id, month)
            if amount is None:
                continue
            if category_id in income_ids:
                income += amount
            else:
                spending += amount
        return income, spending

    def actual_totals(self, month: str) -> tuple[Decimal, Decimal]:
        """Actual (income, spending) for a month over the editable categories."""
        income_ids = self.income_category_ids()
        income = spending = ZERO
        for key, amount in self.compute_monthly_spending([month]).items():
            if key.split("|", 1)[0] in income_ids:
                income += amount
            else:
                spending += amount
        return income, spending

    def monthly_overview(self, months: Sequence[str]) -> list[MonthlySummary]:
        """Income, expenses, savings and balance per month.

        Transfers are excluded. Uncategorized outflows count as expenses and
        are also reported separately; uncategorized inflows are ignored.
        """
        income_ids = self.income_category_ids()
        savings_ids = self.savings_category_ids()
        by_month: dict[str, list[Transaction]] = defaultdict(list)
        for txn in self.store.transactions:
            month = _year_month_or_none(txn)
            if month is not None:
                by_month[month].append(txn)

        summaries = []
        for month in months:
            income = expenses = savings = uncategorized = ZERO
            by_category: dict[str, Decimal] = {}
            for txn in by_month.get(month, []):
                if txn.category_id == TRANSFERS_ID:
                    continue
                if not txn.category_id:
                    if txn.amount < 0:
                        uncategorized += -txn.amount
                        expenses += -txn.amount
                    continue
                if txn.category_id in income_ids:
                    delta = txn.amount
                    income += delta
                elif txn.category_id in savings_ids:
                    delta = -txn.amount
                    savings += delta
                else:
                    delta = -txn.amount
                    expenses += delta
                by_category[txn.category_id] = by_category.get(txn.category_id, ZERO) + delta
            summaries.append(
                MonthlySummary(
                    month=month,
                    income=income,
                    expenses=expenses,
                    savings=savings,
                    uncategorized=uncategorized,
                    balance=income - expenses,
                    by_category=by_category,
                )
            )
        return summaries

    def calculate_stats(
        self, values: Sequence[float | Decimal], exclude_indices: Iterable[int] = ()
    ) -> SeriesStats:
        return calculate_stats(values, exclude_indices)

    def evaluate_month_risk(
        self, month: Optional[str] = None, today: Optional[date] = None
    ) -> RiskResult:
        """Evaluate budget risk for a month from planned budgets and actuals.

        Args:
            month: YYYY-MM; defaults to the month of today
            today: Reference date; defaults to the current date. For a past
                month the last day is used, for a future month the first.
        """
        today = today or date.today()
        if month is None:
            month = to_year_month(today)
        else:
            try:
                month = validate_year_month(month)
            except ValueError as e:
                raise ValidationError(str(e)) from e

        current = to_year_month(today)
        if month < current:
            next_first = date.fromisoformat(f"{shift_month(month, 1)}-01")
            reference = next_first - timedelta(days=1)
        elif month > current:
            reference = date.fromisoformat(f"{month}-01")
        else:
            reference = today

        planned_income, planned_spending = self.planned_totals(month)
        actual_income, actual_spending = self.actual_totals(month)
        return evaluate_budget_risk(
            planned_income=planned_income,
            actual_income=actual_income,
            planned_spending=planned_spending,
            actual_spending=actual_spending,
            today=reference,
        )
