"""Rule-based categorization, manual categorization and locks."""

from typing import Iterable, Optional

from budgetbook.domain.entities import BulkFailure, BulkResult, Lock, Rule, Transaction
from budgetbook.domain.errors import DomainError, ValidationError
from budgetbook.domain.fingerprint import normalize_text
from budgetbook.domain.store import TransactionStore
from budgetbook.logging_setup import get_logger

logger = get_logger("budgetbook.categorization")


class CategorizationService:
    """Service applying manual choices and text rules to transactions.

    Rules match on the normalized (trimmed, case-folded) description only.
    Locked transactions are never touched by rules; categorizing one
    directly raises LockedError.
    """

    def __init__(self, store: TransactionStore):
        """Initialize categorization service.

        Args:
            store: Transaction store to categorize in
        """
        self.store = store

    def categorize(
        self, transaction_id: str, category_id: Optional[str], create_rule: bool = False
    ) -> Transaction:
        """Assign a category to one transaction.

        Args:
            transaction_id: Transaction ID
            category_id: Target category ID, or None to clear
            create_rule: Also remember the choice for this description text

        Returns:
            The updated transaction

        Raises:
            NotFoundError: If the transaction or category doesn't exist
            LockedError: If the transaction is locked
            ValidationError: If create_rule is set without a category
                or the transaction has no description
        """
        txn = self.store.require_transaction(transaction_id)
        if create_rule:
            if category_id is None:
                raise ValidationError("Cannot create a rule without a category")
            self._require_rule_text(txn)

        self.store.assign_categories({transaction_id: category_id})
        if create_rule:
            self.store.upsert_rule(txn.description, category_id)
        return self.store.get_transaction(transaction_id)

    def _require_rule_text(self, txn: Transaction) -> None:
        if not normalize_text(txn.description):
            raise ValidationError(
                f"Transaction {txn.id} has no description to base a rule on"
            )

    def _rule_assignments(self, transactions: Iterable[Transaction]) -> dict[str, str]:
        assignments = {}
        for txn in transactions:
            if txn.is_locked:
                continue
            rule = self.store.get_rule(txn.description)
            if rule is not None and rule.category_id != txn.category_id:
                assignments[txn.id] = rule.category_id
        return assignments

    def apply_rules(self, transaction_ids: Optional[Iterable[str]] = None) -> int:
        """Apply rules to unlocked transactions.

        A matching rule overrides an existing, different category; a
        transaction without a matching rule keeps what it has.

        Args:
            transaction_ids: Restrict to these ids (unknown ids are ignored);
                all transactions when None

        Returns:
            Number of transactions whose category changed
        """
        if transaction_ids is None:
            candidates = self.store.transactions
        else:
            candidates = [
                txn
                for txn in (self.store.get_transaction(i) for i in transaction_ids)
                if txn is not None
            ]
        assignments = self._rule_assignments(candidates)
        if not assignments:
            return 0
        changed = self.store.assign_categories(assignments)
        logger.info("Rules categorized %d transactions", changed)
        return changed

    def apply_rules_to_all(self) -> int:
        return self.apply_rules()

    def lock(
        self,
        transaction_id: str,
        category_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Lock:
        """Lock a transaction to a category.

        Args:
            transaction_id: Transaction ID
            category_id: Category to freeze; defaults to the current category
            reason: Optional note stored with the lock

        Raises:
            NotFoundError: If the transaction or category doesn't exist
            ValidationError: If no category is given and the transaction is
                uncategorized
        """
        txn = self.store.require_transaction(transaction_id)
        category_id = category_id or txn.category_id
        if category_id is None:
            raise ValidationError(
                f"Transaction {transaction_id} is uncategorized; choose a category to lock it to"
            )
        return self.store.lock_transaction(transaction_id, category_id, reason)

    def unlock(self, transaction_id: str) -> Transaction:
        """Unlock a transaction, keeping its current category."""
        self.store.unlock_transaction(transaction_id)
        return self.store.get_transaction(transaction_id)

    def bulk_categorize(
        self,
        transaction_ids: Iterable[str],
        category_id: str,
        create_rule: bool = False,
        lock_transactions: bool = False,
        lock_reason: Optional[str] = None,
    ) -> BulkResult:
        """Categorize many transactions, collecting per-item failures.

        When locking, an already locked transaction is re-locked to the new
        category; otherwise locked transactions fail with their reason.

        Raises:
            NotFoundError: If the target category doesn't exist (checked once,
                before any transaction is touched)
        """
        self.store.require_category(category_id)

        succeeded = []
        failed = []
        rule_texts = set()
        locked = 0
        for transaction_id in transaction_ids:
            try:
                if lock_transactions:
                    txn = self.store.require_transaction(transaction_id)
                    if create_rule:
                        self._require_rule_text(txn)
                    self.store.lock_transaction(transaction_id, category_id, lock_reason)
                    locked += 1
                    if create_rule:
                        self.store.upsert_rule(txn.description, category_id)
                        rule_texts.add(normalize_text(txn.description))
                else:
                    txn = self.categorize(transaction_id, category_id, create_rule)
                    if create_rule:
                        rule_texts.add(normalize_text(txn.description))
            except DomainError as e:
                failed.append(BulkFailure(transaction_id=transaction_id, reason=str(e)))
                continue
            succeeded.append(transaction_id)

        if failed:
            logger.warning("Bulk categorize: %d of %d failed", len(failed), len(failed) + len(succeeded))
        return BulkResult(
            succeeded=tuple(succeeded),
            failed=tuple(failed),
            rules_created=len(rule_texts),
            locked=locked,
        )

    def create_rule(self, text: str, category_id: str) -> Rule:
        """Create or overwrite the rule for a description text."""
        return self.store.upsert_rule(text, category_id)

    def delete_rule(self, text: str) -> None:
        self.store.delete_rule(text)

    def get_rule(self, text: str) -> Optional[Rule]:
        return self.store.get_rule(text)

    def list_rules(self) -> list[Rule]:
        """List rules sorted by text."""
        return sorted(self.store.rules, key=lambda r: r.text)
