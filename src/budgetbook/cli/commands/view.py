"""Transaction viewing and statistics commands."""

from decimal import Decimal

import click

from budgetbook.cli.date_filters import resolve_cli_date_range
from budgetbook.cli.resolution import resolve_category_or_exit
from budgetbook.domain.category import CategoryService
from budgetbook.domain.entities import TransactionFilters
from budgetbook.domain.transaction import TransactionService
from budgetbook.utils.amount_parser import format_amount, parse_amount


def _parse_amount_option(ctx, value: str | None, name: str):
    if value is None:
        return None
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {name}: {e}", err=True)
        ctx.exit(1)


@click.command("view")
@click.option("--start-date", help="Start date (DD.MM.YYYY, YYYY-MM-DD or relative like 'last month')")
@click.option("--end-date", help="End date (DD.MM.YYYY, YYYY-MM-DD or relative like 'today')")
@click.option("--this-month", is_flag=True, help="Filter to current month")
@click.option("--this-year", is_flag=True, help="Filter to current year")
@click.option("--last-month", is_flag=True, help="Filter to previous month")
@click.option("--last-year", is_flag=True, help="Filter to previous year")
@click.option("--category", help="Category path (e.g., 'Food > Groceries') or ID")
@click.option("--search", default="", help="Text to look for in description and account names")
@click.option("--type", "types", multiple=True, help="Transaction type (repeatable)")
@click.option("--min-amount", help="Minimum amount")
@click.option("--max-amount", help="Maximum amount")
@click.option("--uncategorized", is_flag=True, help="Only uncategorized transactions")
@click.option("--locked", is_flag=True, help="Only locked transactions")
@click.option("--group", is_flag=True, help="Group by description instead of listing")
@click.option("--verbose", "-v", is_flag=True, help="Show all fields")
@click.pass_context
def view_transactions(
    ctx,
    start_date: str,
    end_date: str,
    this_month: bool,
    this_year: bool,
    last_month: bool,
    last_year: bool,
    category: str,
    search: str,
    types: tuple[str, ...],
    min_amount: str,
    max_amount: str,
    uncategorized: bool,
    locked: bool,
    group: bool,
    verbose: bool,
):
    """View transactions with optional filters.

    Use --group to see how many transactions share each description, which
    is a quick way to find good candidates for rules.
    """
    store = ctx.obj["store"]
    service = TransactionService(store)
    category_service = CategoryService(store)

    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags={
            "this-month": this_month,
            "this-year": this_year,
            "last-month": last_month,
            "last-year": last_year,
        },
    )
    category_ids = ()
    if category:
        category_ids = (resolve_category_or_exit(ctx, category_service, category).id,)

    filters = TransactionFilters(
        search=search,
        date_from=start,
        date_to=end,
        category_ids=category_ids,
        amount_min=_parse_amount_option(ctx, min_amount, "minimum amount"),
        amount_max=_parse_amount_option(ctx, max_amount, "maximum amount"),
        types=types,
        only_uncategorized=uncategorized,
        only_locked=locked,
    )
    transactions = service.list_transactions(filters)

    if not transactions:
        click.echo("No transactions found.")
        return

    if group:
        groups = service.group_by_description(transactions)
        click.echo(f"\n{len(groups)} description(s) in {len(transactions)} transaction(s):")
        click.echo("-" * 80)
        click.echo(f"{'Count':<7} {'Total':>14}  {'Description':<40}")
        click.echo("-" * 80)
        for text, members in groups.items():
            total = sum((t.amount for t in members), Decimal("0"))
            click.echo(f"{len(members):<7} {format_amount(total):>14}  {text[:40]:<40}")
        return

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    if verbose:
        click.echo("=" * 100)
        for txn in transactions:
            click.echo(f"\nTransaction ID: {txn.id}")
            click.echo(f"  Date: {txn.date}")
            click.echo(f"  Amount: {format_amount(txn.amount)}")
            click.echo(f"  Description: {txn.description}")
            click.echo(f"  Type: {txn.type}")
            click.echo(f"  From: {txn.from_account} {txn.from_account_number}".rstrip())
            click.echo(f"  To: {txn.to_account} {txn.to_account_number}".rstrip())
            click.echo(
                f"  Category: {category_service.format_category_path(txn.category_id) or 'Uncategorized'}"
            )
            if txn.category_hint:
                click.echo(f"  Bank category: {txn.category_hint}")
            if txn.is_locked:
                lock = store.get_lock(txn.id)
                reason = f" ({lock.reason})" if lock and lock.reason else ""
                click.echo(f"  Locked{reason}")
            click.echo("-" * 100)
        return

    click.echo("-" * 110)
    click.echo(f"{'ID':<10} {'Date':<12} {'Amount':>12}  {'Category':<30} {'Description':<40}")
    click.echo("-" * 110)
    for txn in transactions:
        category_name = category_service.format_category_path(txn.category_id)
        marker = "*" if txn.is_locked else " "
        click.echo(
            f"{txn.id[:8]:<10} {txn.date:<12} {format_amount(txn.amount):>12} "
            f"{marker}{category_name[:30]:<30} {txn.description[:40]:<40}"
        )


@click.command("stats")
@click.pass_context
def show_stats(ctx):
    """Show categorization statistics."""
    stats = ctx.obj["store"].stats
    click.echo(f"Transactions:        {stats.total}")
    click.echo(f"Categorized:         {stats.categorized}")
    click.echo(f"Uncategorized:       {stats.uncategorized}")
    click.echo(f"Locked:              {stats.locked}")
    click.echo(f"Unique descriptions: {stats.unique_patterns}")
    click.echo(f"  with a rule:       {stats.patterns_with_rules}")


def register_commands(cli):
    """Register view and stats commands with main CLI."""
    cli.add_command(view_transactions)
    cli.add_command(show_stats)
