"""Category domain service."""

from typing import Iterable, Optional

from budgetbook.domain import errors
from budgetbook.domain.entities import (
    INCOME_ID,
    SAVINGS_ID,
    TRANSFERS_ID,
    CategoryTreeEntry,
    MainCategory,
    SubCategory,
)
from budgetbook.domain.errors import NotFoundError
from budgetbook.domain.store import TransactionStore
from budgetbook.logging_setup import get_logger

logger = get_logger("budgetbook.category")

PATH_SEPARATOR = " > "

# System mains created with fixed ids, then a starter set of expense mains
SYSTEM_CATEGORIES = (
    {"category_id": INCOME_ID, "name": "Income", "is_income": True},
    {"category_id": SAVINGS_ID, "name": "Savings"},
    {
        "category_id": TRANSFERS_ID,
        "name": "Transfers",
        "hide_from_category_page": True,
        "allow_subcategories": False,
    },
)

DEFAULT_SUBCATEGORIES = {
    "Income": ["Salary", "Other income"],
    "Housing": ["Rent", "Electricity", "Insurance"],
    "Food": ["Groceries", "Restaurants"],
    "Transport": ["Fuel", "Public transport"],
    "Leisure": ["Subscriptions", "Travel"],
}


class CategoryService:
    """Service for managing the two-level category tree."""

    def __init__(self, store: TransactionStore):
        """Initialize category service.

        Args:
            store: Transaction store holding the category tree
        """
        self.store = store

    def init_defaults(self) -> int:
        """Create the system categories and a starter set of expense categories.

        Existing mains (matched by name, case-insensitive) are kept, so running
        this twice creates nothing the second time.

        Returns:
            Number of categories created
        """
        created = 0
        for definition in SYSTEM_CATEGORIES:
            if self.store.get_category(definition["category_id"]) is None and self.find_main(definition["name"]) is None:
                self.store.create_main_category(is_system=True, **definition)
                created += 1

        for main_name, sub_names in DEFAULT_SUBCATEGORIES.items():
            main = self.find_main(main_name)
            if main is None:
                main = self.store.create_main_category(main_name)
                created += 1
            created += len(self.add_subcategories_bulk(main.id, sub_names))

        logger.info("Initialized default categories (%d created)", created)
        return created

    def create_main_category(self, name: str, is_income: bool = False) -> MainCategory:
        return self.store.create_main_category(name, is_income=is_income)

    def create_sub_category(self, name: str, parent: str) -> SubCategory:
        """Create a subcategory under a main category given by id or name."""
        main = self.resolve_main(parent)
        return self.store.create_sub_category(name, main.id)

    def add_subcategories_bulk(self, parent_id: str, names: Iterable[str]) -> list[SubCategory]:
        """Create several subcategories, skipping blanks and duplicates.

        Names are trimmed; names matching an existing child of the parent or
        an earlier name in the input (case-insensitive) are skipped.

        Returns:
            The subcategories actually created
        """
        entry = self.store.category_tree_lookup(parent_id)
        if entry is None or not isinstance(entry.category, MainCategory):
            raise NotFoundError(errors.category_not_found(parent_id))

        seen = {child.name.casefold() for child in entry.children}
        created = []
        for name in names:
            name = (name or "").strip()
            if not name or name.casefold() in seen:
                continue
            seen.add(name.casefold())
            created.append(self.store.create_sub_category(name, parent_id))
        return created

    def rename(self, category_ref: str, name: str) -> MainCategory | SubCategory:
        """Rename a main or sub category given by id or path."""
        category = self.resolve(category_ref)
        if isinstance(category, MainCategory):
            return self.store.update_main_category(category.id, name=name)
        return self.store.rename_sub_category(category.id, name)

    def update_main_category(
        self,
        category_ref: str,
        name: Optional[str] = None,
        hide_from_category_page: Optional[bool] = None,
        allow_subcategories: Optional[bool] = None,
    ) -> MainCategory:
        main = self.resolve_main(category_ref)
        return self.store.update_main_category(
            main.id,
            name=name,
            hide_from_category_page=hide_from_category_page,
            allow_subcategories=allow_subcategories,
        )

    def delete(self, category_ref: str) -> None:
        """Delete a category; references to it are cleared."""
        category = self.resolve(category_ref)
        if isinstance(category, MainCategory):
            self.store.delete_main_category(category.id)
        else:
            self.store.delete_sub_category(category.id)
        logger.info("Deleted category %s", category.name)

    def reorder(self, ordered_refs: list[str]) -> None:
        """Set the main category order from a full list of ids or names."""
        self.store.reorder_main_categories([self.resolve_main(ref).id for ref in ordered_refs])

    def reorder_subcategories(self, parent_ref: str, ordered_refs: list[str]) -> None:
        main = self.resolve_main(parent_ref)
        ids = [self._resolve_child(main, ref).id for ref in ordered_refs]
        self.store.reorder_sub_categories(main.id, ids)

    def move(self, sub_ref: str, new_parent_ref: str) -> SubCategory:
        """Move a subcategory to another main category."""
        sub = self.resolve(sub_ref)
        if not isinstance(sub, SubCategory):
            raise errors.ValidationError(f"'{sub.name}' is a main category and cannot be moved")
        return self.store.move_sub_category(sub.id, self.resolve_main(new_parent_ref).id)

    def get_category(self, category_id: str) -> Optional[MainCategory | SubCategory]:
        return self.store.get_category(category_id)

    def find_main(self, name: str) -> Optional[MainCategory]:
        """Find a main category by name (case-insensitive)."""
        wanted = name.strip().casefold()
        for main in self.store.main_categories:
            if main.name.casefold() == wanted:
                return main
        return None

    def get_category_by_path(self, path: str) -> Optional[MainCategory | SubCategory]:
        """Get category by path.

        Args:
            path: Category path (e.g., "Food > Groceries" or "Food")

        Returns:
            The category or None if not found
        """
        parts = [p.strip() for p in path.split(">")]
        if not 1 <= len(parts) <= 2 or not all(parts):
            return None
        main = self.find_main(parts[0])
        if main is None or len(parts) == 1:
            return main
        for sub_id in main.subcategory_ids:
            sub = self.store.get_sub_category(sub_id)
            if sub.name.casefold() == parts[1].casefold():
                return sub
        return None

    def resolve(self, ref: str) -> MainCategory | SubCategory:
        """Resolve a category given by id or "Main > Sub" path.

        Raises:
            NotFoundError: If nothing matches
        """
        category = self.store.get_category(ref) or self.get_category_by_path(ref)
        if category is None:
            raise NotFoundError(errors.category_path_not_found(ref))
        return category

    def resolve_main(self, ref: str) -> MainCategory:
        category = self.resolve(ref)
        if not isinstance(category, MainCategory):
            raise NotFoundError(f"Main category '{ref}' not found")
        return category

    def _resolve_child(self, main: MainCategory, ref: str) -> SubCategory:
        if ref in main.subcategory_ids:
            return self.store.get_sub_category(ref)
        category = self.get_category_by_path(f"{main.name}{PATH_SEPARATOR}{ref}")
        if category is None:
            raise NotFoundError(errors.category_path_not_found(f"{main.name}{PATH_SEPARATOR}{ref}"))
        return category

    def get_category_tree(self, include_hidden: bool = True) -> list[CategoryTreeEntry]:
        """Get the full tree in display order.

        Args:
            include_hidden: Include mains flagged hide_from_category_page
        """
        return [
            self.store.category_tree_lookup(main.id)
            for main in self.store.main_categories
            if include_hidden or not main.hide_from_category_page
        ]

    def format_category_path(self, category_id: Optional[str]) -> str:
        """Get full path for a category.

        Returns:
            "Main > Sub" for subcategories, the name for mains, "" if unknown
        """
        if not category_id:
            return ""
        category = self.store.get_category(category_id)
        if category is None:
            return ""
        if isinstance(category, SubCategory):
            parent = self.store.get_main_category(category.main_category_id)
            return f"{parent.name}{PATH_SEPARATOR}{category.name}"
        return category.name
