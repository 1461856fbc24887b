"""Budget commands: monthly spending, planning, overview and risk."""

from datetime import date
from decimal import Decimal

import click

from budgetbook.cli.date_filters import resolve_cli_months
from budgetbook.cli.error_handling import handle_domain_error
from budgetbook.cli.resolution import resolve_category_or_exit
from budgetbook.domain.budget import BudgetService
from budgetbook.domain.category import CategoryService
from budgetbook.domain.entities import UNCATEGORIZED_ID
from budgetbook.domain.errors import DomainError
from budgetbook.domain.store import budget_key
from budgetbook.utils.amount_parser import format_amount, parse_amount
from budgetbook.utils.date_parser import parse_date, to_year_month, validate_year_month

ZERO = Decimal("0")
NAME_WIDTH = 28
COLUMN_WIDTH = 24


def _months_option(f):
    f = click.option(
        "--months", "count", type=int, default=3, show_default=True, help="Number of months"
    )(f)
    f = click.option("--start-month", help="First month (YYYY-MM); defaults to the last N months")(f)
    return f


def _cell(actual: Decimal, planned: Decimal | None) -> str:
    if planned is None:
        return format_amount(actual)
    return f"{format_amount(actual)}/{format_amount(planned)}"


@click.group()
def budget_group():
    """Plan and follow monthly budgets."""
    pass


@budget_group.command("spending")
@_months_option
@click.pass_context
def show_spending(ctx, start_month: str | None, count: int):
    """Show spending per category and month.

    Cells read "actual/planned" where a budget is set. Income rows show
    money received; all other rows show money spent net of refunds.
    """
    store = ctx.obj["store"]
    service = BudgetService(store)
    months = resolve_cli_months(ctx, start_month=start_month, count=count)

    rows = service.build_budget_category_tree()
    spending = service.compute_monthly_spending(months)

    click.echo(f"{'Category':<{NAME_WIDTH}}" + "".join(f"{m:>{COLUMN_WIDTH}}" for m in months))
    click.echo("-" * (NAME_WIDTH + COLUMN_WIDTH * len(months)))
    for row in rows:
        if row.children:
            totals = [
                sum(
                    (spending.get(budget_key(child.category_id, m), ZERO) for child in row.children),
                    ZERO,
                )
                for m in months
            ]
            click.echo(
                f"{row.name[:NAME_WIDTH]:<{NAME_WIDTH}}"
                + "".join(f"{format_amount(t):>{COLUMN_WIDTH}}" for t in totals)
            )
            for child in row.children:
                cells = [
                    _cell(
                        spending.get(budget_key(child.category_id, m), ZERO),
                        store.get_budget(child.category_id, m),
                    )
                    for m in months
                ]
                name = f"  {child.name}"[:NAME_WIDTH]
                click.echo(f"{name:<{NAME_WIDTH}}" + "".join(f"{c:>{COLUMN_WIDTH}}" for c in cells))
        else:
            cells = [
                _cell(
                    spending.get(budget_key(row.category_id, m), ZERO),
                    store.get_budget(row.category_id, m),
                )
                for m in months
            ]
            click.echo(
                f"{row.name[:NAME_WIDTH]:<{NAME_WIDTH}}"
                + "".join(f"{c:>{COLUMN_WIDTH}}" for c in cells)
            )


@budget_group.command("set")
@click.argument("category_ref")
@click.argument("month")
@click.argument("amount")
@click.pass_context
def set_budget(ctx, category_ref: str, month: str, amount: str):
    """Plan AMOUNT for a category in MONTH (YYYY-MM).

    Use "Uncategorized" to plan for transactions without a category.
    """
    store = ctx.obj["store"]
    service = BudgetService(store)
    category_service = CategoryService(store)

    try:
        value = parse_amount(amount)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if category_ref.strip().casefold() == "uncategorized":
        category_id = UNCATEGORIZED_ID
        label = "Uncategorized"
    else:
        category_id = resolve_category_or_exit(ctx, category_service, category_ref).id
        label = category_service.format_category_path(category_id)

    try:
        service.set_budget(category_id, month, value)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Budget for '{label}' in {month}: {format_amount(value)}")


@budget_group.command("clear")
@click.argument("category_ref")
@click.argument("month")
@click.pass_context
def clear_budget(ctx, category_ref: str, month: str):
    """Remove the planned amount for a category in MONTH (YYYY-MM)."""
    store = ctx.obj["store"]
    category_service = CategoryService(store)

    if category_ref.strip().casefold() == "uncategorized":
        category_id = UNCATEGORIZED_ID
        label = "Uncategorized"
    else:
        category_id = resolve_category_or_exit(ctx, category_service, category_ref).id
        label = category_service.format_category_path(category_id)

    try:
        BudgetService(store).clear_budget(category_id, month)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Cleared budget for '{label}' in {month}")


@budget_group.command("net")
@click.pass_context
def show_net_change(ctx):
    """Show the net change of all accounts per month."""
    net = BudgetService(ctx.obj["store"]).compute_monthly_net_change()
    if not net:
        click.echo("No transactions found.")
        return
    click.echo(f"{'Month':<10} {'Net change':>14}")
    click.echo("-" * 25)
    for month, amount in net.items():
        click.echo(f"{month:<10} {format_amount(amount):>14}")


@budget_group.command("overview")
@_months_option
@click.pass_context
def show_overview(ctx, start_month: str | None, count: int):
    """Show income, expenses, savings and balance per month.

    Averages leave out the current month since it is still in progress.
    """
    service = BudgetService(ctx.obj["store"])
    months = resolve_cli_months(ctx, start_month=start_month, count=count)
    summaries = service.monthly_overview(months)

    click.echo(
        f"{'Month':<10} {'Income':>14} {'Expenses':>14} {'Savings':>14} "
        f"{'Balance':>14} {'Uncategorized':>14}"
    )
    click.echo("-" * 85)
    for s in summaries:
        click.echo(
            f"{s.month:<10} {format_amount(s.income):>14} {format_amount(s.expenses):>14} "
            f"{format_amount(s.savings):>14} {format_amount(s.balance):>14} "
            f"{format_amount(s.uncategorized):>14}"
        )

    current = to_year_month(date.today())
    excluded = [i for i, m in enumerate(months) if m == current]
    if len(excluded) == len(months):
        return
    click.echo("-" * 85)
    for label, values in (
        ("Income", [s.income for s in summaries]),
        ("Expenses", [s.expenses for s in summaries]),
        ("Balance", [s.balance for s in summaries]),
    ):
        stats = service.calculate_stats(values, excluded)
        cv = f"{stats.cv:.1f}%" if stats.cv is not None else "-"
        click.echo(f"{label:<10} avg {stats.avg:>12,.2f}   variation {cv}")


@budget_group.command("risk")
@click.option("--month", help="Month (YYYY-MM); defaults to the current month")
@click.option("--today", "today_str", help="Reference date; defaults to today")
@click.pass_context
def show_risk(ctx, month: str | None, today_str: str | None):
    """Estimate the risk of overspending this month's budget."""
    service = BudgetService(ctx.obj["store"])
    today = None
    try:
        if today_str:
            today = parse_date(today_str)
        if month:
            month = validate_year_month(month)
    except ValueError as e:
        handle_domain_error(ctx, e)

    try:
        result = service.evaluate_month_risk(month, today)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Risk level:              {result.risk_level.value}")
    click.echo(f"Month progress:          {result.month_progress_ratio:.0%}")
    click.echo(f"Spending rate:           {result.spending_rate:.0%}")
    click.echo(f"Missing income:          {result.missing_income_amount:,.2f}")
    click.echo(f"Missing income ratio:    {result.missing_income_ratio:.0%}")
    click.echo(f"Remaining planned spend: {result.remaining_planned_spending:,.2f}")


def register_commands(cli):
    """Register budget commands with main CLI."""
    cli.add_command(budget_group, name="budget")
