"""Tests for the in-memory transaction store."""

from dataclasses import replace
from decimal import Decimal

import pytest

from budgetbook.domain.entities import UNCATEGORIZED_ID, Snapshot, SubCategory, Transaction
from budgetbook.domain.errors import (
    ConflictError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from budgetbook.domain.fingerprint import fingerprint
from budgetbook.domain.store import budget_key


def test_import_skips_known_ids(store, make_transaction):
    """Importing a transaction twice stores it once."""
    txn = make_transaction("03.11.2025", "-10", "KIOSK")

    first = store.import_transactions([txn, txn])
    second = store.import_transactions([txn])

    assert len(first) == 1
    assert second == []
    assert store.stats.total == 1


def test_import_assigns_fingerprint_ids(store):
    """Transactions without an id get their fingerprint."""
    txn = Transaction(date="03.11.2025", amount=Decimal("-10"), description="KIOSK")

    added = store.import_transactions([txn])

    assert added[0].id == fingerprint(txn)


def test_stats_follow_mutations(store, sample_transactions, sample_categories):
    """Stats are recomputed after every mutation."""
    assert store.stats.total == 5
    assert store.stats.uncategorized == 5

    store.assign_categories({sample_transactions[0].id: sample_categories["Food > Groceries"]})
    store.upsert_rule("rema 1000", sample_categories["Food > Groceries"])

    assert store.stats.categorized == 1
    # "REMA 1000" and "rema 1000" share a pattern
    assert store.stats.unique_patterns == 4
    assert store.stats.patterns_with_rules == 1


def test_subscribers_notified_after_mutation(store, make_transaction):
    """Listeners receive the mutation name; failed mutations are silent."""
    events = []
    unsubscribe = store.subscribe(events.append)

    store.import_transactions([make_transaction("03.11.2025", "-10", "KIOSK")])
    with pytest.raises(NotFoundError):
        store.delete_transaction("missing")
    unsubscribe()
    store.reset()

    assert events == ["import_transactions"]


def test_assign_categories_validates_before_applying(store, sample_transactions, sample_categories):
    """One bad item leaves every transaction untouched."""
    groceries = sample_categories["Food > Groceries"]

    with pytest.raises(NotFoundError):
        store.assign_categories({sample_transactions[0].id: groceries, "missing": groceries})

    assert store.get_transaction(sample_transactions[0].id).category_id is None


def test_assign_to_locked_transaction_raises(store, sample_transactions, sample_categories):
    """Locked transactions refuse direct assignment."""
    txn_id = sample_transactions[0].id
    store.lock_transaction(txn_id, sample_categories["Food > Groceries"])

    with pytest.raises(LockedError):
        store.assign_categories({txn_id: sample_categories["Housing > Rent"]})

    assert store.get_transaction(txn_id).category_id == sample_categories["Food > Groceries"]


def test_delete_transaction_removes_lock(store, sample_transactions, sample_categories):
    """Deleting a transaction deletes its lock too."""
    txn = sample_transactions[0]
    store.lock_transaction(txn.id, sample_categories["Food > Groceries"], reason="checked")

    store.delete_transaction(txn.id)

    assert store.get_transaction(txn.id) is None
    assert store.get_lock(txn.id) is None
    assert store.stats.locked == 0


def test_stored_lock_applies_on_import(store, sample_transactions, sample_categories):
    """A lock restored without its transaction is applied when it is imported."""
    txn = sample_transactions[0]
    groceries = sample_categories["Food > Groceries"]
    store.lock_transaction(txn.id, groceries, reason="checked")
    snapshot = store.snapshot()
    snapshot.transactions = [t for t in snapshot.transactions if t.id != txn.id]
    store.restore(snapshot)

    store.import_transactions([replace(txn, category_id=None, is_locked=False)])

    imported = store.get_transaction(txn.id)
    assert imported.is_locked is True
    assert imported.category_id == groceries


def test_unlock_keeps_category(store, sample_transactions, sample_categories):
    """Unlocking only removes the lock."""
    txn_id = sample_transactions[0].id
    store.lock_transaction(txn_id, sample_categories["Food > Groceries"])

    store.unlock_transaction(txn_id)

    txn = store.get_transaction(txn_id)
    assert txn.is_locked is False
    assert txn.category_id == sample_categories["Food > Groceries"]
    assert store.get_lock(txn_id) is None


def test_clear_transactions_keeps_configuration(store, sample_transactions, sample_categories):
    """Clearing transactions keeps categories, rules and budgets."""
    groceries = sample_categories["Food > Groceries"]
    store.upsert_rule("kiwi", groceries)
    store.set_budget(groceries, "2025-11", Decimal("4000"))
    store.lock_transaction(sample_transactions[0].id, groceries)

    store.clear_transactions()

    assert store.transactions == []
    assert store.locks == []
    assert store.get_rule("KIWI") is not None
    assert store.get_budget(groceries, "2025-11") == Decimal("4000")
    assert store.get_category(groceries) is not None


def test_reset_clears_everything(store, sample_transactions, sample_categories):
    """Reset empties the whole store."""
    store.reset()

    assert store.transactions == []
    assert store.main_categories == []
    assert store.stats.total == 0


def test_set_budget_validates_month(store, sample_categories):
    """Budgets need a YYYY-MM month and a known category."""
    groceries = sample_categories["Food > Groceries"]

    with pytest.raises(ValidationError):
        store.set_budget(groceries, "2025-13", Decimal("1"))
    with pytest.raises(NotFoundError):
        store.set_budget("missing", "2025-11", Decimal("1"))

    store.set_budget(UNCATEGORIZED_ID, "2025-11", Decimal("500"))
    assert store.budgets == {budget_key(UNCATEGORIZED_ID, "2025-11"): Decimal("500")}


def test_main_category_names_unique(store):
    """Main category names are unique regardless of case."""
    store.create_main_category("Food")

    with pytest.raises(ConflictError):
        store.create_main_category("food")


def test_sub_category_rules(store):
    """Subcategories need an accepting parent and a unique name there."""
    food = store.create_main_category("Food")
    closed = store.create_main_category("Closed", allow_subcategories=False)
    store.create_sub_category("Groceries", food.id)

    with pytest.raises(ConflictError):
        store.create_sub_category("groceries", food.id)
    with pytest.raises(ValidationError):
        store.create_sub_category("Anything", closed.id)
    with pytest.raises(NotFoundError):
        store.create_sub_category("Anything", "missing")


def test_delete_sub_category_detaches_references(store, sample_transactions, sample_categories):
    """Deleting a category clears transactions, rules, locks and budgets using it."""
    groceries = sample_categories["Food > Groceries"]
    txn_id = sample_transactions[0].id
    store.lock_transaction(txn_id, groceries)
    store.upsert_rule("kiwi", groceries)
    store.set_budget(groceries, "2025-11", Decimal("4000"))

    store.delete_sub_category(groceries)

    txn = store.get_transaction(txn_id)
    assert txn.category_id is None
    assert txn.is_locked is False
    assert store.locks == []
    assert store.get_rule("kiwi") is None
    assert store.budgets == {}
    food = store.get_main_category(sample_categories["Food"])
    assert groceries not in food.subcategory_ids
    assert store.check_integrity() == []


def test_delete_main_category_removes_children(store, sample_categories):
    """Deleting a main category deletes its subcategories."""
    food = store.get_main_category(sample_categories["Food"])

    store.delete_main_category(food.id)

    assert all(store.get_category(i) is None for i in food.subcategory_ids)
    assert store.check_integrity() == []


def test_system_category_protected(store, sample_categories):
    """System categories cannot be deleted or renamed."""
    with pytest.raises(ValidationError):
        store.delete_main_category(sample_categories["Transfers"])
    with pytest.raises(ValidationError):
        store.update_main_category(sample_categories["Income"], name="Money in")


def test_reorder_main_categories_requires_full_list(store):
    """Reordering needs every main id exactly once."""
    a = store.create_main_category("A")
    b = store.create_main_category("B")

    with pytest.raises(ValidationError):
        store.reorder_main_categories([a.id])

    store.reorder_main_categories([b.id, a.id])
    assert [c.name for c in store.main_categories] == ["B", "A"]


def test_move_sub_category(store):
    """Moving updates both child lists and the back-reference."""
    a = store.create_main_category("A")
    b = store.create_main_category("B")
    sub = store.create_sub_category("Child", a.id)

    moved = store.move_sub_category(sub.id, b.id)

    assert moved.main_category_id == b.id
    assert store.get_main_category(a.id).subcategory_ids == ()
    assert store.get_main_category(b.id).subcategory_ids == (sub.id,)
    assert store.check_integrity() == []


def test_snapshot_is_independent(store, sample_transactions):
    """Later mutations do not leak into an earlier snapshot."""
    snapshot = store.snapshot()

    store.clear_transactions()

    assert len(snapshot.transactions) == 5
    assert snapshot.metadata.transaction_count == 5


def test_restore_rederives_locks_and_drops_dangling(store, sample_transactions, sample_categories):
    """Restore trusts the locks table and drops unknown category references."""
    groceries = sample_categories["Food > Groceries"]
    store.lock_transaction(sample_transactions[0].id, groceries)
    snapshot = store.snapshot()
    snapshot.transactions = [
        replace(t, is_locked=False) if t.id == sample_transactions[0].id else t
        for t in snapshot.transactions
    ]
    snapshot.transactions[1] = replace(snapshot.transactions[1], category_id="cat_gone")
    snapshot.budgets = {
        budget_key("cat_gone", "2025-11"): Decimal("100"),
        budget_key(UNCATEGORIZED_ID, "2025-11"): Decimal("50"),
    }

    store.reset()
    store.restore(snapshot)

    assert store.get_transaction(sample_transactions[0].id).is_locked is True
    assert store.get_transaction(sample_transactions[1].id).category_id is None
    assert store.budgets == {budget_key(UNCATEGORIZED_ID, "2025-11"): Decimal("50")}


def test_restore_rejects_broken_tree(store, sample_transactions, sample_categories):
    """A snapshot with inconsistent parent links is refused and state is kept."""
    snapshot = store.snapshot()
    groceries = snapshot.sub_categories[sample_categories["Food > Groceries"]]
    snapshot.sub_categories[groceries.id] = SubCategory(
        id=groceries.id, name=groceries.name, main_category_id="elsewhere", sort_order=0
    )

    with pytest.raises(ValidationError):
        store.restore(snapshot)

    assert store.stats.total == 5


def test_restore_empty_snapshot(store, sample_transactions):
    """Restoring an empty snapshot empties the store."""
    store.restore(Snapshot())

    assert store.transactions == []
