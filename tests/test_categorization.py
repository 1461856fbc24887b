"""Tests for rule-based categorization and locks."""

import pytest

from budgetbook.domain.errors import LockedError, NotFoundError, ValidationError


def test_categorize_with_rule(store, categorization_service, sample_transactions, sample_categories):
    """Categorizing with create_rule remembers the normalized description."""
    groceries = sample_categories["Food > Groceries"]

    txn = categorization_service.categorize(sample_transactions[0].id, groceries, create_rule=True)

    assert txn.category_id == groceries
    rule = categorization_service.get_rule("  Rema 1000 ")
    assert rule.text == "rema 1000"
    assert rule.category_id == groceries


def test_rule_without_category_rejected(categorization_service, sample_transactions):
    """A rule needs a category."""
    with pytest.raises(ValidationError):
        categorization_service.categorize(sample_transactions[0].id, None, create_rule=True)


def test_categorize_locked_raises(categorization_service, sample_transactions, sample_categories):
    """Direct categorization of a locked transaction fails."""
    txn_id = sample_transactions[0].id
    categorization_service.lock(txn_id, sample_categories["Food > Groceries"])

    with pytest.raises(LockedError):
        categorization_service.categorize(txn_id, sample_categories["Housing > Rent"])


def test_apply_rules_matches_case_insensitively(
    store, categorization_service, sample_transactions, sample_categories
):
    """Both spellings of the description are categorized by one rule."""
    groceries = sample_categories["Food > Groceries"]
    categorization_service.create_rule("REMA 1000", groceries)

    changed = categorization_service.apply_rules_to_all()

    assert changed == 2
    assert {t.description for t in store.transactions if t.category_id == groceries} == {
        "REMA 1000",
        "rema 1000",
    }


def test_apply_rules_skips_locked(store, categorization_service, sample_transactions, sample_categories):
    """Rules never override a locked transaction."""
    rent = sample_categories["Housing > Rent"]
    locked_id = sample_transactions[0].id
    categorization_service.lock(locked_id, rent, reason="shared flat")
    categorization_service.create_rule("rema 1000", sample_categories["Food > Groceries"])

    changed = categorization_service.apply_rules()

    assert changed == 1
    assert store.get_transaction(locked_id).category_id == rent


def test_apply_rules_overrides_unlocked_category(
    store, categorization_service, sample_transactions, sample_categories
):
    """A matching rule replaces a different manual choice on unlocked rows."""
    txn_id = sample_transactions[2].id
    categorization_service.categorize(txn_id, sample_categories["Housing > Rent"])
    categorization_service.create_rule("spotify", sample_categories["Leisure > Subscriptions"])

    categorization_service.apply_rules([txn_id, "unknown"])

    assert store.get_transaction(txn_id).category_id == sample_categories["Leisure > Subscriptions"]


def test_apply_rules_without_match_keeps_category(
    store, categorization_service, sample_transactions, sample_categories
):
    """Transactions with no rule keep what they have."""
    txn_id = sample_transactions[4].id
    categorization_service.categorize(txn_id, sample_categories["Food > Groceries"])

    assert categorization_service.apply_rules() == 0
    assert store.get_transaction(txn_id).category_id == sample_categories["Food > Groceries"]


def test_lock_defaults_to_current_category(categorization_service, sample_transactions, sample_categories):
    """Locking without a category freezes the current one."""
    txn_id = sample_transactions[0].id
    categorization_service.categorize(txn_id, sample_categories["Food > Groceries"])

    lock = categorization_service.lock(txn_id, reason="verified")

    assert lock.category_id == sample_categories["Food > Groceries"]
    assert lock.reason == "verified"


def test_lock_uncategorized_requires_category(categorization_service, sample_transactions):
    """An uncategorized transaction cannot be locked without a category."""
    with pytest.raises(ValidationError):
        categorization_service.lock(sample_transactions[0].id)


def test_bulk_categorize_collects_failures(
    store, categorization_service, sample_transactions, sample_categories
):
    """Bulk categorization applies what it can and reports the rest."""
    groceries = sample_categories["Food > Groceries"]
    locked_id = sample_transactions[1].id
    categorization_service.lock(locked_id, sample_categories["Income > Salary"])

    result = categorization_service.bulk_categorize(
        [sample_transactions[0].id, locked_id, "missing"], groceries, create_rule=True
    )

    assert result.succeeded == (sample_transactions[0].id,)
    assert [f.transaction_id for f in result.failed] == [locked_id, "missing"]
    assert result.rules_created == 1
    assert store.get_transaction(locked_id).category_id == sample_categories["Income > Salary"]


def test_bulk_categorize_with_lock(store, categorization_service, sample_transactions, sample_categories):
    """Locking in bulk re-locks already locked transactions."""
    groceries = sample_categories["Food > Groceries"]
    ids = [sample_transactions[0].id, sample_transactions[3].id]
    categorization_service.lock(ids[0], sample_categories["Housing > Rent"])

    result = categorization_service.bulk_categorize(
        ids, groceries, lock_transactions=True, lock_reason="groceries"
    )

    assert result.failed == ()
    assert result.locked == 2
    assert all(store.get_lock(i).category_id == groceries for i in ids)


def test_bulk_categorize_unknown_category(categorization_service, sample_transactions):
    """The target category is checked before any transaction."""
    with pytest.raises(NotFoundError):
        categorization_service.bulk_categorize([sample_transactions[0].id], "missing")


def test_delete_rule(categorization_service, sample_categories):
    """Rules can be deleted by any spelling of their text."""
    categorization_service.create_rule("Kiwi", sample_categories["Food > Groceries"])

    categorization_service.delete_rule("KIWI ")

    assert categorization_service.list_rules() == []
    with pytest.raises(NotFoundError):
        categorization_service.delete_rule("kiwi")


def test_rule_from_blank_description_changes_nothing(
    store, categorization_service, make_transaction, sample_categories
):
    """A rule needs description text; the transaction is left untouched."""
    (txn,) = store.import_transactions([make_transaction("03.11.2025", "-10", "   ")])
    groceries = sample_categories["Food > Groceries"]

    with pytest.raises(ValidationError):
        categorization_service.categorize(txn.id, groceries, create_rule=True)

    assert store.get_transaction(txn.id).category_id is None
    assert categorization_service.list_rules() == []


def test_bulk_lock_with_blank_description_changes_nothing(
    store, categorization_service, make_transaction, sample_categories
):
    """A failed item in a locking bulk run is neither locked nor categorized."""
    (txn,) = store.import_transactions([make_transaction("03.11.2025", "-10", "   ")])

    result = categorization_service.bulk_categorize(
        [txn.id],
        sample_categories["Food > Groceries"],
        create_rule=True,
        lock_transactions=True,
    )

    assert [f.transaction_id for f in result.failed] == [txn.id]
    assert result.locked == 0
    stored = store.get_transaction(txn.id)
    assert stored.category_id is None
    assert stored.is_locked is False
    assert store.get_lock(txn.id) is None
