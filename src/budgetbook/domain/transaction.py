"""Transaction domain service."""

from collections import defaultdict
from typing import Optional

from budgetbook.domain.entities import MainCategory, Transaction, TransactionFilters
from budgetbook.domain.fingerprint import normalize_text
from budgetbook.domain.store import TransactionStore
from budgetbook.utils.date_parser import parse_date


class TransactionService:
    """Service for querying and deleting stored transactions."""

    def __init__(self, store: TransactionStore):
        """Initialize transaction service.

        Args:
            store: Transaction store
        """
        self.store = store

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.store.get_transaction(transaction_id)

    def find_by_prefix(self, prefix: str) -> list[Transaction]:
        """Find transactions whose id starts with prefix."""
        return [t for t in self.store.transactions if t.id.startswith(prefix)]

    def delete_transaction(self, transaction_id: str) -> None:
        """Delete a transaction and its lock.

        Raises:
            NotFoundError: If transaction doesn't exist
        """
        self.store.delete_transaction(transaction_id)

    def clear_transactions(self) -> None:
        """Remove all transactions, keeping rules, categories and budgets."""
        self.store.clear_transactions()

    def _expand_categories(self, category_ids: tuple[str, ...]) -> set[str]:
        expanded = set(category_ids)
        for category_id in category_ids:
            category = self.store.get_category(category_id)
            if isinstance(category, MainCategory):
                expanded.update(category.subcategory_ids)
        return expanded

    def list_transactions(
        self, filters: Optional[TransactionFilters] = None
    ) -> list[Transaction]:
        """List transactions with filters, in import order.

        Args:
            filters: Optional filters. A main category id also matches its
                subcategories. Transactions with unparseable dates never
                match a date bound.

        Returns:
            List of transaction entities
        """
        filters = filters or TransactionFilters()
        search = normalize_text(filters.search)
        category_ids = self._expand_categories(filters.category_ids)
        types = {normalize_text(t) for t in filters.types}

        result = []
        for txn in self.store.transactions:
            if search and not any(
                search in normalize_text(value)
                for value in (txn.description, txn.to_account, txn.from_account)
            ):
                continue
            if filters.only_uncategorized and txn.category_id:
                continue
            if filters.only_locked and not txn.is_locked:
                continue
            if category_ids and txn.category_id not in category_ids:
                continue
            if types and normalize_text(txn.type) not in types:
                continue
            if filters.amount_min is not None and txn.amount < filters.amount_min:
                continue
            if filters.amount_max is not None and txn.amount > filters.amount_max:
                continue
            if filters.date_from is not None or filters.date_to is not None:
                try:
                    txn_date = parse_date(txn.date)
                except ValueError:
                    continue
                if filters.date_from is not None and txn_date < filters.date_from:
                    continue
                if filters.date_to is not None and txn_date > filters.date_to:
                    continue
            result.append(txn)
        return result

    def group_by_description(
        self, transactions: Optional[list[Transaction]] = None
    ) -> dict[str, list[Transaction]]:
        """Group transactions by normalized description, largest groups first."""
        groups: dict[str, list[Transaction]] = defaultdict(list)
        for txn in self.store.transactions if transactions is None else transactions:
            groups[normalize_text(txn.description)].append(txn)
        return dict(sorted(groups.items(), key=lambda item: (-len(item[1]), item[0])))
