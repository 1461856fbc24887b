"""Domain layer for budgetbook application."""

from budgetbook.domain.store import TransactionStore
from budgetbook.domain.transaction import TransactionService
from budgetbook.domain.category import CategoryService
from budgetbook.domain.categorization import CategorizationService
from budgetbook.domain.csv_import import CSVImportService
from budgetbook.domain.budget import BudgetService
from budgetbook.domain.risk import evaluate_budget_risk
from budgetbook.domain.fingerprint import fingerprint

__all__ = [
    "TransactionStore",
    "TransactionService",
    "CategoryService",
    "CategorizationService",
    "CSVImportService",
    "BudgetService",
    "evaluate_budget_risk",
    "fingerprint",
]
