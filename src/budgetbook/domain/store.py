"""Authoritative in-memory store for transactions, categories, rules and locks.

The store is a plain object handed to the services that need it; there is no
process-wide instance. Every mutating method validates its input before
touching state, recomputes statistics before returning and then notifies
subscribers (the auto-saver). Reads never observe a half-applied mutation.
"""

import threading
import uuid
from dataclasses import replace
from datetime import datetime, UTC
from decimal import Decimal
from functools import wraps
from typing import Callable, Iterable, Optional

from budgetbook.domain import errors
from budgetbook.domain.entities import (
    UNCATEGORIZED_ID,
    CategoryTreeEntry,
    Lock,
    MainCategory,
    Rule,
    Snapshot,
    SnapshotMetadata,
    Stats,
    SubCategory,
    Transaction,
)
from budgetbook.domain.errors import (
    ConflictError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from budgetbook.domain.fingerprint import fingerprint, normalize_text
from budgetbook.logging_setup import get_logger
from budgetbook.utils.date_parser import validate_year_month

logger = get_logger("budgetbook.store")

Listener = Callable[[str], None]


def _mutation(method):
    """Run a store mutation under the store lock, then refresh and notify."""

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            result = method(self, *args, **kwargs)
            self._refresh_stats()
        self._notify(method.__name__)
        return result

    return wrapper


def budget_key(category_id: str, month: str) -> str:
    """Key of a planned budget entry: "<categoryId>|<YYYY-MM>"."""
    return f"{category_id}|{month}"


class TransactionStore:
    """Single-writer snapshot of all budgetbook state."""

    def __init__(self):
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._init_state()

    def _init_state(self) -> None:
        # Insertion ordered: import order is display order
        self._transactions: dict[str, Transaction] = {}
        self._main_categories: dict[str, MainCategory] = {}
        self._sub_categories: dict[str, SubCategory] = {}
        self._rules: dict[str, Rule] = {}
        self._locks: dict[str, Lock] = {}
        self._budgets: dict[str, Decimal] = {}
        self._stats = Stats()

    # Subscriptions
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked with the mutation name after each change.

        Returns:
            Function that removes the subscription
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event)

    # Read views
    @property
    def stats(self) -> Stats:
        return self._stats

    @property
    def transactions(self) -> list[Transaction]:
        with self._lock:
            return list(self._transactions.values())

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    def require_transaction(self, transaction_id: str) -> Transaction:
        """Get a transaction or raise NotFoundError."""
        txn = self._transactions.get(transaction_id)
        if txn is None:
            raise NotFoundError(errors.transaction_not_found(transaction_id))
        return txn

    @property
    def main_categories(self) -> list[MainCategory]:
        """Main categories in display order."""
        with self._lock:
            return sorted(
                self._main_categories.values(), key=lambda c: (c.sort_order, c.name)
            )

    @property
    def sub_categories(self) -> list[SubCategory]:
        with self._lock:
            return list(self._sub_categories.values())

    def get_main_category(self, category_id: str) -> Optional[MainCategory]:
        return self._main_categories.get(category_id)

    def get_sub_category(self, category_id: str) -> Optional[SubCategory]:
        return self._sub_categories.get(category_id)

    def get_category(self, category_id: str) -> Optional[MainCategory | SubCategory]:
        return self._main_categories.get(category_id) or self._sub_categories.get(
            category_id
        )

    def require_category(self, category_id: str) -> MainCategory | SubCategory:
        """Get a main or sub category or raise NotFoundError."""
        category = self.get_category(category_id)
        if category is None:
            raise NotFoundError(errors.category_not_found(category_id))
        return category

    def category_tree_lookup(self, category_id: str) -> Optional[CategoryTreeEntry]:
        """Return a category with its children, or None if unknown.

        Subcategories are returned with an empty children tuple.
        """
        with self._lock:
            main = self._main_categories.get(category_id)
            if main is not None:
                children = tuple(
                    self._sub_categories[sub_id] for sub_id in main.subcategory_ids
                )
                return CategoryTreeEntry(category=main, children=children)
            sub = self._sub_categories.get(category_id)
            if sub is not None:
                return CategoryTreeEntry(category=sub)
            return None

    @property
    def rules(self) -> list[Rule]:
        with self._lock:
            return list(self._rules.values())

    def get_rule(self, text: str) -> Optional[Rule]:
        return self._rules.get(normalize_text(text))

    @property
    def locks(self) -> list[Lock]:
        with self._lock:
            return list(self._locks.values())

    def get_lock(self, transaction_id: str) -> Optional[Lock]:
        return self._locks.get(transaction_id)

    @property
    def budgets(self) -> dict[str, Decimal]:
        with self._lock:
            return dict(self._budgets)

    def get_budget(self, category_id: str, month: str) -> Optional[Decimal]:
        return self._budgets.get(budget_key(category_id, month))

    def snapshot(self) -> Snapshot:
        """Return a full copy of the current state.

        Entities are immutable, so copying the containers is enough to keep
        the snapshot independent of later mutations.
        """
        with self._lock:
            return Snapshot(
                transactions=list(self._transactions.values()),
                main_categories=dict(self._main_categories),
                sub_categories=dict(self._sub_categories),
                rules=dict(self._rules),
                locks=dict(self._locks),
                budgets=dict(self._budgets),
                metadata=SnapshotMetadata(
                    transaction_count=len(self._transactions),
                    category_count=len(self._main_categories) + len(self._sub_categories),
                    rule_count=len(self._rules),
                    lock_count=len(self._locks),
                ),
            )

    # Whole-state operations
    @_mutation
    def reset(self) -> None:
        """Clear transactions, rules, locks, budgets and the category tree."""
        self._init_state()
        logger.info("Store reset")

    @_mutation
    def clear_transactions(self) -> None:
        """Remove all transactions and locks, keeping rules, categories and budgets."""
        self._transactions = {}
        self._locks = {}

    @_mutation
    def restore(self, snapshot: Snapshot) -> None:
        """Replace the whole state with a snapshot.

        The category tree must be referentially intact; otherwise
        ValidationError is raised and the current state is left untouched.
        Lock flags on transactions are re-derived from the locks table.
        """
        problems = check_tree_integrity(snapshot.main_categories, snapshot.sub_categories)
        if problems:
            raise ValidationError("Invalid category tree: " + "; ".join(problems))

        category_ids = set(snapshot.main_categories) | set(snapshot.sub_categories)

        locks = {}
        for txn_id, lock in snapshot.locks.items():
            if lock.category_id in category_ids:
                locks[txn_id] = lock
            else:
                logger.warning("Dropping lock on %s: unknown category %s", txn_id, lock.category_id)

        transactions: dict[str, Transaction] = {}
        for txn in snapshot.transactions:
            txn_id = txn.id or fingerprint(txn)
            if txn_id in transactions:
                continue
            category_id = txn.category_id
            if category_id is not None and category_id not in category_ids:
                logger.warning("Clearing unknown category %s on %s", category_id, txn_id)
                category_id = None
            lock = locks.get(txn_id)
            if lock is not None:
                category_id = lock.category_id
            transactions[txn_id] = replace(
                txn, id=txn_id, category_id=category_id, is_locked=lock is not None
            )

        rules = {}
        for text, rule in snapshot.rules.items():
            if rule.category_id in category_ids:
                rules[normalize_text(text)] = replace(rule, text=normalize_text(text))
            else:
                logger.warning("Dropping rule '%s': unknown category %s", text, rule.category_id)

        budgets = {}
        for key, amount in snapshot.budgets.items():
            category_id = key.rpartition("|")[0]
            if category_id == UNCATEGORIZED_ID or category_id in category_ids:
                budgets[key] = amount
            else:
                logger.warning("Dropping budget %s: unknown category", key)

        self._transactions = transactions
        self._main_categories = dict(snapshot.main_categories)
        self._sub_categories = dict(snapshot.sub_categories)
        self._rules = rules
        self._locks = locks
        self._budgets = budgets

    # Transactions
    @_mutation
    def import_transactions(self, batch: Iterable[Transaction]) -> list[Transaction]:
        """Append transactions whose id is not already stored.

        Transactions without an id get their fingerprint. Ids repeated within
        the batch keep only the first occurrence. A stored lock for an id is
        applied to the incoming transaction.

        Returns:
            The transactions actually added, with ids assigned
        """
        added: list[Transaction] = []
        for txn in batch:
            txn_id = txn.id or fingerprint(txn)
            if txn_id in self._transactions:
                continue
            lock = self._locks.get(txn_id)
            txn = replace(
                txn,
                id=txn_id,
                category_id=lock.category_id if lock else txn.category_id,
                is_locked=lock is not None,
            )
            self._transactions[txn_id] = txn
            added.append(txn)
        logger.debug("Stored %d new transactions", len(added))
        return added

    @_mutation
    def assign_categories(self, assignments: dict[str, Optional[str]]) -> int:
        """Set category ids on several unlocked transactions at once.

        Raises:
            NotFoundError: If a transaction or category id is unknown
            LockedError: If any target transaction is locked

        Returns:
            Number of transactions whose category changed
        """
        for txn_id, category_id in assignments.items():
            txn = self.require_transaction(txn_id)
            if txn.is_locked:
                raise LockedError(errors.transaction_locked(txn_id))
            if category_id is not None:
                self.require_category(category_id)

        changed = 0
        for txn_id, category_id in assignments.items():
            txn = self._transactions[txn_id]
            if txn.category_id != category_id:
                self._transactions[txn_id] = replace(txn, category_id=category_id)
                changed += 1
        return changed

    @_mutation
    def lock_transaction(
        self, transaction_id: str, category_id: str, reason: Optional[str] = None
    ) -> Lock:
        """Freeze a transaction's category, replacing any previous lock."""
        txn = self.require_transaction(transaction_id)
        self.require_category(category_id)
        lock = Lock(
            transaction_id=transaction_id,
            category_id=category_id,
            locked_at=datetime.now(UTC),
            reason=reason,
        )
        self._locks[transaction_id] = lock
        self._transactions[transaction_id] = replace(
            txn, category_id=category_id, is_locked=True
        )
        return lock

    @_mutation
    def unlock_transaction(self, transaction_id: str) -> None:
        """Remove a lock; the category assignment stays as it is."""
        txn = self.require_transaction(transaction_id)
        self._locks.pop(transaction_id, None)
        self._transactions[transaction_id] = replace(txn, is_locked=False)

    @_mutation
    def delete_transaction(self, transaction_id: str) -> None:
        """Delete a transaction together with its lock."""
        self.require_transaction(transaction_id)
        del self._transactions[transaction_id]
        self._locks.pop(transaction_id, None)

    # Rules
    @_mutation
    def upsert_rule(self, text: str, category_id: str) -> Rule:
        """Create or overwrite the rule for a description text."""
        key = normalize_text(text)
        if not key:
            raise ValidationError("Rule text cannot be empty")
        self.require_category(category_id)

        now = datetime.now(UTC)
        existing = self._rules.get(key)
        if existing is not None:
            rule = replace(existing, category_id=category_id, updated_at=now)
        else:
            rule = Rule(text=key, category_id=category_id, created_at=now, updated_at=now)
        self._rules[key] = rule
        return rule

    @_mutation
    def delete_rule(self, text: str) -> None:
        key = normalize_text(text)
        if key not in self._rules:
            raise NotFoundError(f"No rule for '{text}'")
        del self._rules[key]

    # Budgets
    @_mutation
    def set_budget(self, category_id: str, month: str, amount: Decimal) -> None:
        """Set the planned amount for a category in a month."""
        if category_id != UNCATEGORIZED_ID:
            self.require_category(category_id)
        try:
            month = validate_year_month(month)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        self._budgets[budget_key(category_id, month)] = Decimal(amount)

    @_mutation
    def clear_budget(self, category_id: str, month: str) -> None:
        """Remove a planned amount; missing entries are ignored."""
        self._budgets.pop(budget_key(category_id, month), None)

    # Category tree
    def _new_category_id(self) -> str:
        while True:
            category_id = f"cat_{uuid.uuid4().hex[:12]}"
            if self.get_category(category_id) is None:
                return category_id

    def _check_main_name(self, name: str, exclude_id: Optional[str] = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty")
        for main in self._main_categories.values():
            if main.id != exclude_id and main.name.casefold() == name.casefold():
                raise ConflictError(f"Category '{name}' already exists")
        return name

    def _check_sub_name(
        self, name: str, main: MainCategory, exclude_id: Optional[str] = None
    ) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty")
        for sub_id in main.subcategory_ids:
            sub = self._sub_categories[sub_id]
            if sub.id != exclude_id and sub.name.casefold() == name.casefold():
                raise ConflictError(f"Subcategory '{name}' already exists under '{main.name}'")
        return name

    def _require_main(self, category_id: str) -> MainCategory:
        main = self._main_categories.get(category_id)
        if main is None:
            raise NotFoundError(errors.category_not_found(category_id))
        return main

    @_mutation
    def create_main_category(
        self,
        name: str,
        is_income: bool = False,
        is_system: bool = False,
        hide_from_category_page: bool = False,
        allow_subcategories: bool = True,
        category_id: Optional[str] = None,
    ) -> MainCategory:
        """Create a main category at the end of the display order."""
        name = self._check_main_name(name)
        if category_id is not None and self.get_category(category_id) is not None:
            raise ConflictError(f"Category id '{category_id}' already exists")

        sort_order = max((c.sort_order for c in self._main_categories.values()), default=-1) + 1
        main = MainCategory(
            id=category_id or self._new_category_id(),
            name=name,
            sort_order=sort_order,
            is_income=is_income,
            is_system=is_system,
            hide_from_category_page=hide_from_category_page,
            allow_subcategories=allow_subcategories,
        )
        self._main_categories[main.id] = main
        return main

    @_mutation
    def update_main_category(
        self,
        category_id: str,
        name: Optional[str] = None,
        hide_from_category_page: Optional[bool] = None,
        allow_subcategories: Optional[bool] = None,
    ) -> MainCategory:
        """Rename a main category or change its display flags."""
        main = self._require_main(category_id)
        changes = {}
        if name is not None:
            if main.is_system:
                raise ValidationError(f"Category '{main.name}' is a system category and cannot be renamed")
            changes["name"] = self._check_main_name(name, exclude_id=category_id)
        if hide_from_category_page is not None:
            changes["hide_from_category_page"] = hide_from_category_page
        if allow_subcategories is not None:
            changes["allow_subcategories"] = allow_subcategories
        main = replace(main, **changes)
        self._main_categories[category_id] = main
        return main

    @_mutation
    def create_sub_category(self, name: str, parent_id: str) -> SubCategory:
        """Create a subcategory at the end of its parent's child list.

        Raises:
            NotFoundError: If the parent main category doesn't exist
            ValidationError: If the parent does not allow subcategories
            ConflictError: If the parent already has a child with that name
        """
        main = self._require_main(parent_id)
        if not main.allow_subcategories:
            raise ValidationError(f"Category '{main.name}' does not allow subcategories")
        name = self._check_sub_name(name, main)

        sub = SubCategory(
            id=self._new_category_id(),
            name=name,
            main_category_id=parent_id,
            sort_order=len(main.subcategory_ids),
        )
        self._sub_categories[sub.id] = sub
        self._main_categories[parent_id] = replace(
            main, subcategory_ids=main.subcategory_ids + (sub.id,)
        )
        return sub

    @_mutation
    def rename_sub_category(self, category_id: str, name: str) -> SubCategory:
        sub = self._sub_categories.get(category_id)
        if sub is None:
            raise NotFoundError(errors.category_not_found(category_id))
        main = self._main_categories[sub.main_category_id]
        sub = replace(sub, name=self._check_sub_name(name, main, exclude_id=category_id))
        self._sub_categories[category_id] = sub
        return sub

    def _detach_category_refs(self, category_ids: set[str]) -> None:
        """Clear transaction, lock, rule and budget references to deleted ids."""
        cleared = 0
        for txn_id, txn in list(self._transactions.items()):
            if txn.category_id in category_ids:
                self._transactions[txn_id] = replace(txn, category_id=None, is_locked=False)
                cleared += 1
        for txn_id, lock in list(self._locks.items()):
            if lock.category_id in category_ids:
                del self._locks[txn_id]
        for text, rule in list(self._rules.items()):
            if rule.category_id in category_ids:
                del self._rules[text]
        for key in list(self._budgets):
            if key.split("|", 1)[0] in category_ids:
                del self._budgets[key]
        logger.debug(
            "Detached %d transactions from deleted categories %s", cleared, sorted(category_ids)
        )

    @_mutation
    def delete_main_category(self, category_id: str) -> None:
        """Delete a main category and all of its subcategories.

        Transactions pointing at any removed id become uncategorized and
        unlocked; rules, locks and budgets for those ids are removed.
        """
        main = self._require_main(category_id)
        if main.is_system:
            raise ValidationError(errors.category_protected(main.name))

        removed = {category_id, *main.subcategory_ids}
        for sub_id in main.subcategory_ids:
            del self._sub_categories[sub_id]
        del self._main_categories[category_id]
        self._detach_category_refs(removed)

    @_mutation
    def delete_sub_category(self, category_id: str) -> None:
        """Delete a subcategory and detach it from its parent and references."""
        sub = self._sub_categories.get(category_id)
        if sub is None:
            raise NotFoundError(errors.category_not_found(category_id))

        main = self._main_categories[sub.main_category_id]
        remaining = tuple(i for i in main.subcategory_ids if i != category_id)
        self._main_categories[main.id] = replace(main, subcategory_ids=remaining)
        del self._sub_categories[category_id]
        self._renumber_subs(remaining)
        self._detach_category_refs({category_id})

    def _renumber_subs(self, sub_ids: Iterable[str]) -> None:
        for index, sub_id in enumerate(sub_ids):
            self._sub_categories[sub_id] = replace(self._sub_categories[sub_id], sort_order=index)

    @_mutation
    def reorder_main_categories(self, ordered_ids: list[str]) -> None:
        """Set the display order from a full list of main category ids.

        Raises:
            ValidationError: If the ids are not exactly the existing main ids
        """
        if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != set(
            self._main_categories
        ):
            raise ValidationError(
                "Reorder list must contain every main category id exactly once"
            )
        for index, category_id in enumerate(ordered_ids):
            self._main_categories[category_id] = replace(
                self._main_categories[category_id], sort_order=index
            )

    @_mutation
    def reorder_sub_categories(self, parent_id: str, ordered_ids: list[str]) -> None:
        """Set the child order of a main category from a full list of its ids."""
        main = self._require_main(parent_id)
        if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != set(
            main.subcategory_ids
        ):
            raise ValidationError(
                f"Reorder list must contain every subcategory of '{main.name}' exactly once"
            )
        self._main_categories[parent_id] = replace(main, subcategory_ids=tuple(ordered_ids))
        self._renumber_subs(ordered_ids)

    @_mutation
    def move_sub_category(self, category_id: str, new_parent_id: str) -> SubCategory:
        """Move a subcategory to the end of another main category."""
        sub = self._sub_categories.get(category_id)
        if sub is None:
            raise NotFoundError(errors.category_not_found(category_id))
        new_parent = self._require_main(new_parent_id)
        if new_parent_id == sub.main_category_id:
            return sub
        if not new_parent.allow_subcategories:
            raise ValidationError(f"Category '{new_parent.name}' does not allow subcategories")
        self._check_sub_name(sub.name, new_parent)

        old_parent = self._main_categories[sub.main_category_id]
        remaining = tuple(i for i in old_parent.subcategory_ids if i != category_id)
        self._main_categories[old_parent.id] = replace(old_parent, subcategory_ids=remaining)
        self._renumber_subs(remaining)

        self._main_categories[new_parent_id] = replace(
            new_parent, subcategory_ids=new_parent.subcategory_ids + (category_id,)
        )
        sub = replace(
            sub,
            main_category_id=new_parent_id,
            sort_order=len(new_parent.subcategory_ids),
        )
        self._sub_categories[category_id] = sub
        return sub

    def check_integrity(self) -> list[str]:
        """Return referential-integrity problems of the current tree (empty if none)."""
        with self._lock:
            return check_tree_integrity(self._main_categories, self._sub_categories)

    # Derived statistics
    def _refresh_stats(self) -> None:
        txns = self._transactions.values()
        total = len(self._transactions)
        categorized = sum(1 for t in txns if t.category_id)
        patterns = {normalize_text(t.description) for t in txns}
        self._stats = Stats(
            total=total,
            categorized=categorized,
            uncategorized=total - categorized,
            locked=sum(1 for t in txns if t.is_locked),
            unique_patterns=len(patterns),
            patterns_with_rules=len(patterns & self._rules.keys()),
        )


def check_tree_integrity(
    main_categories: dict[str, MainCategory], sub_categories: dict[str, SubCategory]
) -> list[str]:
    """Check that child lists and parent back-references agree.

    Every id in a main category's child list must name an existing
    subcategory pointing back at that main category, appear in only one
    list, and every subcategory must be listed by its parent.
    """
    problems = []
    listed: dict[str, str] = {}
    for main in main_categories.values():
        for sub_id in main.subcategory_ids:
            sub = sub_categories.get(sub_id)
            if sub is None:
                problems.append(f"{main.id} lists missing subcategory {sub_id}")
            elif sub.main_category_id != main.id:
                problems.append(f"{sub_id} is listed by {main.id} but belongs to {sub.main_category_id}")
            if sub_id in listed:
                problems.append(f"{sub_id} is listed by both {listed[sub_id]} and {main.id}")
            listed[sub_id] = main.id
    for sub in sub_categories.values():
        if sub.id not in listed:
            problems.append(f"{sub.id} is not listed by its parent {sub.main_category_id}")
    return problems
