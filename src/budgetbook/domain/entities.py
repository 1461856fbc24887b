"""Domain model entities for budgetbook.

These are pure data classes representing business concepts, independent of
how a snapshot is stored. Entities are frozen; the store replaces them with
``dataclasses.replace`` when categorization or lock fields change.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

# Budget bucket for transactions without a category
UNCATEGORIZED_ID = "__uncategorized"
# Designated transfers category, never part of budget views
TRANSFERS_ID = "transfers"
INCOME_ID = "income"
SAVINGS_ID = "savings"


@dataclass(frozen=True)
class Transaction:
    """Bank transaction domain entity.

    ``date`` keeps the bank's own text ("05.11.25" or "2025-11-05"); use
    ``to_year_month`` to bucket it.
    """

    date: str
    amount: Decimal
    description: str
    to_account: str = ""
    to_account_number: str = ""
    from_account: str = ""
    from_account_number: str = ""
    type: str = ""
    category_hint: str = ""
    main_category_hint: Optional[str] = None
    original_amount: Optional[Decimal] = None
    original_currency: Optional[str] = None
    kid: Optional[str] = None
    id: str = ""
    category_id: Optional[str] = None
    is_locked: bool = False


@dataclass(frozen=True)
class MainCategory:
    """Top-level category; owns an ordered tuple of subcategory ids."""

    id: str
    name: str
    sort_order: int
    is_income: bool = False
    is_system: bool = False
    hide_from_category_page: bool = False
    allow_subcategories: bool = True
    subcategory_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class SubCategory:
    """Second-level category owned by exactly one main category."""

    id: str
    name: str
    main_category_id: str
    sort_order: int


@dataclass(frozen=True)
class Rule:
    """Normalized description text mapped to a category."""

    text: str
    category_id: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Lock:
    """Frozen categorization of a single transaction."""

    transaction_id: str
    category_id: str
    locked_at: datetime
    reason: Optional[str] = None


@dataclass(frozen=True)
class Stats:
    """Derived categorization statistics."""

    total: int = 0
    categorized: int = 0
    uncategorized: int = 0
    locked: int = 0
    unique_patterns: int = 0
    patterns_with_rules: int = 0


@dataclass(frozen=True)
class SnapshotMetadata:
    """Bookkeeping written alongside every saved snapshot."""

    last_saved: Optional[datetime] = None
    version: str = "1.0.0"
    transaction_count: int = 0
    category_count: int = 0
    rule_count: int = 0
    lock_count: int = 0


@dataclass
class Snapshot:
    """Full copy of store state handed to and from persistence."""

    transactions: list[Transaction] = field(default_factory=list)
    main_categories: dict[str, MainCategory] = field(default_factory=dict)
    sub_categories: dict[str, SubCategory] = field(default_factory=dict)
    rules: dict[str, Rule] = field(default_factory=dict)
    locks: dict[str, Lock] = field(default_factory=dict)
    budgets: dict[str, Decimal] = field(default_factory=dict)
    metadata: SnapshotMetadata = field(default_factory=SnapshotMetadata)


@dataclass(frozen=True)
class CategoryTreeEntry:
    """Result of a category tree lookup: the category plus its children."""

    category: MainCategory | SubCategory
    children: tuple[SubCategory, ...] = ()


@dataclass(frozen=True)
class ParseResult:
    """Rows parsed from one CSV export."""

    transactions: tuple[Transaction, ...]
    duplicates: tuple[Transaction, ...]
    original_count: int
    unique_count: int
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImportResult:
    """Outcome of importing a CSV export into the store."""

    parsed: int
    duplicates_in_file: int
    already_stored: int
    imported: int
    auto_categorized: int
    imported_ids: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class BulkFailure:
    """One failed item of a bulk categorization."""

    transaction_id: str
    reason: str


@dataclass(frozen=True)
class BulkResult:
    """Report of a bulk categorization: successes applied, failures collected."""

    succeeded: tuple[str, ...]
    failed: tuple[BulkFailure, ...]
    rules_created: int = 0
    locked: int = 0


@dataclass(frozen=True)
class TransactionFilters:
    """Filters for transaction list views."""

    search: str = ""
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    category_ids: tuple[str, ...] = ()
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None
    types: tuple[str, ...] = ()
    only_uncategorized: bool = False
    only_locked: bool = False


@dataclass(frozen=True)
class BudgetRow:
    """One row of the flattened budget category tree."""

    category_id: str
    name: str
    level: int
    is_collapsible: bool
    is_editable: bool
    is_income: bool = False
    children: tuple["BudgetRow", ...] = ()


@dataclass(frozen=True)
class MonthlySummary:
    """Income, spending and savings for one month."""

    month: str
    income: Decimal
    expenses: Decimal
    savings: Decimal
    uncategorized: Decimal
    balance: Decimal
    by_category: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class SeriesStats:
    """Summary statistics over a series of monthly values."""

    sum: float
    avg: float
    variance: float
    cv: Optional[float]


class RiskLevel(str, Enum):
    """Budget risk tiers."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"


@dataclass(frozen=True)
class RiskResult:
    """Risk tier plus the ratios it was derived from."""

    risk_level: RiskLevel
    missing_income_amount: float
    missing_income_ratio: float
    month_progress_ratio: float
    remaining_planned_spending: float
    spending_rate: float
