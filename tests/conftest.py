"""Shared pytest fixtures for budgetbook tests."""

from dataclasses import replace
from decimal import Decimal
from pathlib import Path

import pytest

from budgetbook.domain.budget import BudgetService
from budgetbook.domain.categorization import CategorizationService
from budgetbook.domain.category import CategoryService
from budgetbook.domain.entities import Transaction
from budgetbook.domain.fingerprint import fingerprint
from budgetbook.domain.store import TransactionStore
from budgetbook.domain.transaction import TransactionService


@pytest.fixture
def store():
    """Create an empty in-memory store."""
    return TransactionStore()


@pytest.fixture
def category_service(store):
    """Create a CategoryService over the test store."""
    return CategoryService(store)


@pytest.fixture
def categorization_service(store):
    """Create a CategorizationService over the test store."""
    return CategorizationService(store)


@pytest.fixture
def transaction_service(store):
    """Create a TransactionService over the test store."""
    return TransactionService(store)


@pytest.fixture
def budget_service(store):
    """Create a BudgetService over the test store."""
    return BudgetService(store)


@pytest.fixture
def sample_categories(category_service):
    """Initialize default categories and return ids keyed by path."""
    category_service.init_defaults()
    return {
        path: category_service.resolve(path).id
        for path in (
            "Income",
            "Income > Salary",
            "Savings",
            "Transfers",
            "Food",
            "Food > Groceries",
            "Food > Restaurants",
            "Housing > Rent",
            "Leisure > Subscriptions",
        )
    }


@pytest.fixture
def make_transaction():
    """Return a factory building transactions with their fingerprint id."""

    def _make(date, amount, description, **fields):
        txn = Transaction(date=date, amount=Decimal(str(amount)), description=description, **fields)
        if not txn.id:
            txn = replace(txn, id=fingerprint(txn))
        return txn

    return _make


@pytest.fixture
def sample_transactions(store, make_transaction):
    """Import a handful of November 2025 transactions into the store."""
    return store.import_transactions(
        [
            make_transaction("03.11.2025", "-1234.56", "REMA 1000", type="Varekjøp"),
            make_transaction("05.11.2025", "45000", "LØNN", type="Lønn", from_account="ACME AS"),
            make_transaction("07.11.2025", "-89", "SPOTIFY", type="Varekjøp"),
            make_transaction("12.11.2025", "-432.10", "rema 1000", type="Varekjøp"),
            make_transaction("2025-10-28", "-250", "KIWI", type="Varekjøp"),
        ]
    )


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def data_dir(tmp_path):
    """Return a fresh data directory path for CLI and storage tests."""
    return tmp_path / "data"


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
