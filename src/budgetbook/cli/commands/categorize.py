"""Categorization, rule application and lock commands."""

import click

from budgetbook.cli.error_handling import handle_domain_error
from budgetbook.cli.resolution import (
    resolve_category_or_exit,
    resolve_transaction_id,
    resolve_transaction_or_exit,
)
from budgetbook.domain.categorization import CategorizationService
from budgetbook.domain.category import CategoryService
from budgetbook.domain.errors import DomainError
from budgetbook.domain.transaction import TransactionService


@click.command("categorize")
@click.argument("transaction_ids", nargs=-1, required=True)
@click.argument("category_ref", nargs=1)
@click.option("--rule", "create_rule", is_flag=True, help="Remember this category for the same description")
@click.option("--lock", "lock_transactions", is_flag=True, help="Lock the transactions to this category")
@click.option("--reason", help="Reason stored with the lock")
@click.pass_context
def categorize_transactions(
    ctx,
    transaction_ids: tuple[str, ...],
    category_ref: str,
    create_rule: bool,
    lock_transactions: bool,
    reason: str | None,
):
    """Assign a category to one or more transactions.

    Transaction ids may be shortened to any unique prefix.

    Examples:
        budgetbook categorize 3f2a9c "Food > Groceries"
        budgetbook categorize 3f2a9c 81bd04 "Food > Groceries" --rule
    """
    store = ctx.obj["store"]
    service = CategorizationService(store)
    transaction_service = TransactionService(store)
    category_service = CategoryService(store)

    # Validate category exists before processing any transactions
    category = resolve_category_or_exit(ctx, category_service, category_ref)
    path = category_service.format_category_path(category.id)

    # Remove duplicates while preserving order; unresolvable refs are
    # passed through and reported by the bulk operation
    unique_ids = []
    for ref in transaction_ids:
        try:
            txn_id = resolve_transaction_id(transaction_service, ref)
        except DomainError:
            txn_id = ref
        if txn_id not in unique_ids:
            unique_ids.append(txn_id)

    if len(unique_ids) > 1:
        click.echo(f"Categorizing {len(unique_ids)} transactions as '{path}'...")

    result = service.bulk_categorize(
        unique_ids,
        category.id,
        create_rule=create_rule,
        lock_transactions=lock_transactions,
        lock_reason=reason,
    )

    if len(unique_ids) == 1:
        if result.failed:
            handle_domain_error(ctx, DomainError(result.failed[0].reason))
        click.echo(f"Transaction {unique_ids[0]} categorized as '{path}'")
    else:
        for txn_id in result.succeeded:
            click.echo(f"✓ Transaction {txn_id} categorized")
        for failure in result.failed:
            click.echo(f"✗ Transaction {failure.transaction_id}: {failure.reason}")
        click.echo(f"\nResults: {len(result.succeeded)} succeeded, {len(result.failed)} failed")

    if result.rules_created:
        click.echo(f"Saved {result.rules_created} rule(s)")
    if result.locked:
        click.echo(f"Locked {result.locked} transaction(s)")
    if result.failed:
        ctx.exit(1)


@click.command("apply-rules")
@click.pass_context
def apply_rules(ctx):
    """Apply saved rules to every unlocked transaction."""
    service = CategorizationService(ctx.obj["store"])
    changed = service.apply_rules_to_all()
    click.echo(f"Rules applied: {changed} transaction(s) updated")


@click.command("lock")
@click.argument("transaction_ref")
@click.argument("category_ref", required=False)
@click.option("--reason", help="Reason stored with the lock")
@click.pass_context
def lock_transaction(ctx, transaction_ref: str, category_ref: str | None, reason: str | None):
    """Lock a transaction so rules never change its category.

    Without CATEGORY_REF the current category is locked in.
    """
    store = ctx.obj["store"]
    service = CategorizationService(store)
    category_service = CategoryService(store)

    txn_id = resolve_transaction_or_exit(ctx, TransactionService(store), transaction_ref)
    category_id = None
    if category_ref is not None:
        category_id = resolve_category_or_exit(ctx, category_service, category_ref).id

    try:
        lock = service.lock(txn_id, category_id, reason)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(
        f"Transaction {txn_id} locked to '{category_service.format_category_path(lock.category_id)}'"
    )


@click.command("unlock")
@click.argument("transaction_ref")
@click.pass_context
def unlock_transaction(ctx, transaction_ref: str):
    """Unlock a transaction; its category is kept."""
    store = ctx.obj["store"]
    txn_id = resolve_transaction_or_exit(ctx, TransactionService(store), transaction_ref)
    try:
        CategorizationService(store).unlock(txn_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Transaction {txn_id} unlocked")


def register_commands(cli):
    """Register categorization commands with main CLI."""
    cli.add_command(categorize_transactions)
    cli.add_command(apply_rules)
    cli.add_command(lock_transaction)
    cli.add_command(unlock_transaction)
