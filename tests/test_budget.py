"""Tests for budget aggregation and the monthly overview."""

import logging
from datetime import date
from decimal import Decimal

import pytest

from budgetbook.domain.budget import (
    build_budget_category_tree,
    calculate_stats,
    compute_monthly_net_change,
    compute_monthly_spending,
)
from budgetbook.domain.entities import (
    TRANSFERS_ID,
    UNCATEGORIZED_ID,
    MainCategory,
    RiskLevel,
    SubCategory,
)
from budgetbook.domain.errors import NotFoundError, ValidationError
from budgetbook.domain.store import budget_key


@pytest.fixture
def categorized(store, make_transaction, sample_categories):
    """Import November transactions with categories set."""
    rows = [
        ("03.11.2025", "-1000", "Purchase", "Food > Groceries"),
        ("10.11.2025", "200", "Refund", "Food > Groceries"),
        ("25.11.2025", "5000", "Salary", "Income > Salary"),
        ("25.11.2025", "-200", "Deduction", "Income > Salary"),
        ("12.11.2025", "-3000", "To savings", "Savings"),
        ("13.11.2025", "-700", "Own account", "Transfers"),
        ("14.11.2025", "-150", "Unknown shop", None),
        ("15.11.2025", "80", "Unknown payer", None),
        ("2025-10-31", "-400", "October groceries", "Food > Groceries"),
    ]
    store.import_transactions(
        make_transaction(d, a, text, category_id=sample_categories[path] if path else None)
        for d, a, text, path in rows
    )
    return sample_categories


def test_refund_reduces_spending(budget_service, categorized):
    """A -1000 purchase and +200 refund count as 800 spent."""
    spending = budget_service.compute_monthly_spending(["2025-11"])

    assert spending[budget_key(categorized["Food > Groceries"], "2025-11")] == Decimal("800")


def test_income_nets_deductions(budget_service, categorized):
    """Income adds the signed amount: 5000 salary minus 200 deduction is 4800."""
    spending = budget_service.compute_monthly_spending(["2025-11"])

    assert spending[budget_key(categorized["Income > Salary"], "2025-11")] == Decimal("4800")


def test_uncategorized_bucket_and_transfers(budget_service, categorized):
    """Uncategorized rows share one bucket; transfers are left out."""
    spending = budget_service.compute_monthly_spending(["2025-11"])

    assert spending[budget_key(UNCATEGORIZED_ID, "2025-11")] == Decimal("70")
    assert not any(key.startswith(f"{TRANSFERS_ID}|") for key in spending)


def test_spending_limited_to_requested_months(budget_service, categorized):
    """Only requested months are reported."""
    spending = budget_service.compute_monthly_spending(["2025-10"])

    assert spending == {budget_key(categorized["Food > Groceries"], "2025-10"): Decimal("400")}


def test_container_categories_not_counted(store, budget_service, make_transaction, sample_categories):
    """Transactions on a main with subcategories are not editable and skipped."""
    store.import_transactions(
        [make_transaction("03.11.2025", "-99", "Food misc", category_id=sample_categories["Food"])]
    )

    assert budget_service.compute_monthly_spending(["2025-11"]) == {}


def test_unreadable_dates_skipped(make_transaction, caplog, monkeypatch):
    """Transactions with unreadable dates are logged and skipped."""
    monkeypatch.setattr(logging.getLogger("budgetbook"), "propagate", True)
    caplog.set_level(logging.WARNING, logger="budgetbook")
    txns = [
        make_transaction("garbage", "-10", "Broken"),
        make_transaction("03.11.2025", "-10", "Fine"),
    ]

    spending = compute_monthly_spending(txns, ["2025-11"], [UNCATEGORIZED_ID])

    assert spending == {budget_key(UNCATEGORIZED_ID, "2025-11"): Decimal("10")}
    assert "unreadable date" in caplog.text


def test_dotted_and_iso_dates_share_a_month(make_transaction):
    """Short and long date formats bucket together."""
    txns = [
        make_transaction("05.11.25", "-1", "A"),
        make_transaction("2025-11-06", "-2", "B"),
    ]

    spending = compute_monthly_spending(txns, ["2025-11"], [UNCATEGORIZED_ID])

    assert spending[budget_key(UNCATEGORIZED_ID, "2025-11")] == Decimal("3")


def test_net_change_per_month(budget_service, categorized):
    """Net change sums all signed amounts per month, transfers included."""
    net = budget_service.compute_monthly_net_change()

    assert list(net) == ["2025-10", "2025-11"]
    assert net["2025-10"] == Decimal("-400")
    assert net["2025-11"] == Decimal("230")


def test_net_change_empty():
    """No transactions give no months."""
    assert compute_monthly_net_change([]) == {}


def test_budget_tree_flattening():
    """Mains with children are containers; transfers dropped; one Uncategorized row."""
    mains = [
        MainCategory(id="food", name="Food", sort_order=1, subcategory_ids=("groc",)),
        MainCategory(id="rent", name="Rent", sort_order=0),
        MainCategory(id=TRANSFERS_ID, name="Transfers", sort_order=2),
    ]
    subs = {"groc": SubCategory(id="groc", name="Groceries", main_category_id="food", sort_order=0)}

    rows = build_budget_category_tree(mains, subs)

    assert [r.category_id for r in rows] == ["rent", "food", UNCATEGORIZED_ID]
    rent, food, uncategorized = rows
    assert rent.is_editable and not rent.is_collapsible
    assert food.is_collapsible and not food.is_editable
    assert [c.category_id for c in food.children] == ["groc"]
    assert food.children[0].level == 1 and food.children[0].is_editable
    assert uncategorized.is_editable


def test_set_budget_rejects_container(budget_service, sample_categories):
    """Budgets go on editable rows only."""
    with pytest.raises(ValidationError):
        budget_service.set_budget(sample_categories["Food"], "2025-11", Decimal("100"))
    with pytest.raises(NotFoundError):
        budget_service.set_budget("missing", "2025-11", Decimal("100"))

    budget_service.set_budget(UNCATEGORIZED_ID, "2025-11", Decimal("100"))


def test_clear_budget(store, budget_service, sample_categories):
    """Clearing removes the planned amount; unknown entries are ignored."""
    groceries = sample_categories["Food > Groceries"]
    budget_service.set_budget(groceries, "2025-11", Decimal("4000"))

    budget_service.clear_budget(groceries, "2025-11")
    budget_service.clear_budget(groceries, "2025-12")

    assert store.get_budget(groceries, "2025-11") is None
    with pytest.raises(ValidationError):
        budget_service.clear_budget(groceries, "2025-13")


def test_planned_and_actual_totals(store, budget_service, categorized):
    """Totals split income from everything else."""
    budget_service.set_budget(categorized["Income > Salary"], "2025-11", Decimal("5000"))
    budget_service.set_budget(categorized["Food > Groceries"], "2025-11", Decimal("4000"))
    budget_service.set_budget(categorized["Savings"], "2025-11", Decimal("3000"))

    assert budget_service.planned_totals("2025-11") == (Decimal("5000"), Decimal("7000"))
    # 800 groceries + 3000 savings + 70 uncategorized
    assert budget_service.actual_totals("2025-11") == (Decimal("4800"), Decimal("3870"))


def test_monthly_overview(budget_service, categorized):
    """Overview separates savings and counts uncategorized outflows as expenses."""
    october, november = budget_service.monthly_overview(["2025-10", "2025-11"])

    assert october.expenses == Decimal("400")
    assert november.income == Decimal("4800")
    assert november.savings == Decimal("3000")
    assert november.uncategorized == Decimal("150")
    assert november.expenses == Decimal("950")
    assert november.balance == Decimal("3850")
    assert november.by_category[categorized["Food > Groceries"]] == Decimal("800")


def test_calculate_stats():
    """Population variance and coefficient of variation, with exclusions."""
    stats = calculate_stats([100, 200, 300, 999], exclude_indices=[3])

    assert stats.sum == 600
    assert stats.avg == 200
    assert stats.variance == pytest.approx(20000 / 3)
    assert stats.cv == pytest.approx((20000 / 3) ** 0.5 / 200 * 100)


def test_calculate_stats_zero_mean():
    """cv is undefined for a zero mean."""
    stats = calculate_stats([Decimal("0"), Decimal("0")])

    assert stats.cv is None
    assert stats.avg == 0


def test_month_risk_uses_last_day_of_past_month(budget_service, categorized):
    """A finished month is evaluated as of its last day."""
    budget_service.set_budget(categorized["Income > Salary"], "2025-11", Decimal("5000"))
    budget_service.set_budget(categorized["Food > Groceries"], "2025-11", Decimal("4000"))

    result = budget_service.evaluate_month_risk("2025-11", today=date(2026, 1, 15))

    assert result.month_progress_ratio == 1.0
    assert result.missing_income_amount == 200.0
    assert result.risk_level == RiskLevel.LOW


def test_month_risk_invalid_month(budget_service):
    """Malformed months are rejected."""
    with pytest.raises(ValidationError):
        budget_service.evaluate_month_risk("2025-13")
