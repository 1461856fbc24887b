"""Tests for the category service."""

import pytest

from budgetbook.domain.entities import INCOME_ID, SAVINGS_ID, TRANSFERS_ID, MainCategory
from budgetbook.domain.errors import ConflictError, NotFoundError, ValidationError


def test_init_defaults_is_idempotent(category_service):
    """Defaults are created once; a second run creates nothing."""
    created = category_service.init_defaults()

    assert created > 0
    assert category_service.init_defaults() == 0


def test_init_defaults_system_categories(store, category_service):
    """System categories get their fixed ids and flags."""
    category_service.init_defaults()

    income = store.get_main_category(INCOME_ID)
    transfers = store.get_main_category(TRANSFERS_ID)
    assert income.is_income and income.is_system
    assert store.get_main_category(SAVINGS_ID).is_system
    assert transfers.hide_from_category_page
    assert not transfers.allow_subcategories
    assert store.check_integrity() == []


def test_create_and_resolve_by_path(category_service):
    """Categories resolve by id or by "Main > Sub" path, ignoring case."""
    main = category_service.create_main_category("Health")
    sub = category_service.create_sub_category("Pharmacy", "health")

    assert category_service.resolve("Health").id == main.id
    assert category_service.resolve("health > pharmacy") == sub
    assert category_service.resolve(sub.id) == sub
    assert category_service.format_category_path(sub.id) == "Health > Pharmacy"


def test_resolve_unknown_path(category_service):
    """Unknown paths raise NotFoundError."""
    with pytest.raises(NotFoundError):
        category_service.resolve("Nope > Nothing")
    assert category_service.get_category_by_path("A > B > C") is None


def test_add_subcategories_bulk_skips_duplicates(category_service):
    """Bulk add trims names and skips blanks and existing children."""
    main = category_service.create_main_category("Kids")
    category_service.create_sub_category("School", main.id)

    created = category_service.add_subcategories_bulk(
        main.id, [" Clothes", "school", "", "Toys", "toys "]
    )

    assert [s.name for s in created] == ["Clothes", "Toys"]


def test_rename_main_and_sub(category_service):
    """Rename works for both levels and keeps names unique."""
    category_service.create_main_category("Food")
    category_service.create_main_category("Drinks")
    sub = category_service.create_sub_category("Groceries", "Food")

    category_service.rename("Food > Groceries", "Supermarket")
    category_service.rename("Food", "Eating")

    assert category_service.format_category_path(sub.id) == "Eating > Supermarket"
    with pytest.raises(ConflictError):
        category_service.rename("Eating", "drinks")


def test_move_main_category_rejected(category_service):
    """Only subcategories can be moved."""
    category_service.create_main_category("A")
    category_service.create_main_category("B")

    with pytest.raises(ValidationError):
        category_service.move("A", "B")


def test_reorder_subcategories_by_name(store, category_service):
    """Children can be reordered by name."""
    main = category_service.create_main_category("Home")
    category_service.add_subcategories_bulk(main.id, ["Rent", "Power", "Internet"])

    category_service.reorder_subcategories("Home", ["Internet", "Rent", "Power"])

    entry = store.category_tree_lookup(main.id)
    assert [c.name for c in entry.children] == ["Internet", "Rent", "Power"]
    assert [c.sort_order for c in entry.children] == [0, 1, 2]


def test_category_tree_hides_hidden(category_service):
    """Hidden mains are left out unless asked for."""
    category_service.init_defaults()

    visible = [e.category.id for e in category_service.get_category_tree(include_hidden=False)]
    everything = [e.category.id for e in category_service.get_category_tree()]

    assert TRANSFERS_ID not in visible
    assert TRANSFERS_ID in everything
    assert all(isinstance(e.category, MainCategory) for e in category_service.get_category_tree())


def test_delete_by_path(store, category_service, sample_transactions):
    """Deleting a category uncategorizes its transactions."""
    category_service.create_main_category("Misc")
    store.assign_categories({sample_transactions[0].id: category_service.resolve("Misc").id})

    category_service.delete("Misc")

    assert category_service.find_main("Misc") is None
    assert store.get_transaction(sample_transactions[0].id).category_id is None
