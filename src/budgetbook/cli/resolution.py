"""CLI helpers for resolving categories and transaction ids."""

from __future__ import annotations

import click

from budgetbook.domain.category import CategoryService
from budgetbook.domain.entities import MainCategory, SubCategory
from budgetbook.domain.errors import NotFoundError
from budgetbook.domain.transaction import TransactionService
from budgetbook.cli.error_handling import handle_domain_error


def resolve_category_or_exit(
    ctx: click.Context, category_service: CategoryService, ref: str
) -> MainCategory | SubCategory:
    """Resolve a category id or "Main > Sub" path, or exit with a CLI error."""
    try:
        return category_service.resolve(ref)
    except NotFoundError as exc:
        handle_domain_error(ctx, exc)


def resolve_transaction_id(transaction_service: TransactionService, ref: str) -> str:
    """Resolve a full transaction id or a unique prefix of one.

    Raises:
        NotFoundError: If nothing or more than one transaction matches
    """
    if transaction_service.get_transaction(ref) is not None:
        return ref
    matches = transaction_service.find_by_prefix(ref) if ref else []
    if len(matches) == 1:
        return matches[0].id
    if not matches:
        raise NotFoundError(f"Transaction {ref} not found")
    raise NotFoundError(f"Transaction id prefix '{ref}' is ambiguous ({len(matches)} matches)")


def resolve_transaction_or_exit(
    ctx: click.Context, transaction_service: TransactionService, ref: str
) -> str:
    try:
        return resolve_transaction_id(transaction_service, ref)
    except NotFoundError as exc:
        handle_domain_error(ctx, exc)
