"""Data management commands: info, backup, export, restore and clear."""

import click

from budgetbook.cli.error_handling import handle_domain_error
from budgetbook.domain.errors import DomainError


@click.group()
def data_group():
    """Manage stored data."""
    pass


@data_group.command("info")
@click.pass_context
def show_info(ctx):
    """Show where data is stored and what it holds."""
    store = ctx.obj["store"]
    gateway = ctx.obj["gateway"]
    snapshot = store.snapshot()

    click.echo(f"Location:     {gateway.location}")
    if gateway.exists():
        try:
            saved = gateway.load().metadata
        except DomainError as e:
            handle_domain_error(ctx, e)
        click.echo(f"Last saved:   {saved.last_saved or 'unknown'}")
    else:
        click.echo("Last saved:   never")
    click.echo(f"Transactions: {len(snapshot.transactions)}")
    click.echo(f"Categories:   {len(snapshot.main_categories) + len(snapshot.sub_categories)}")
    click.echo(f"Rules:        {len(snapshot.rules)}")
    click.echo(f"Locks:        {len(snapshot.locks)}")
    click.echo(f"Budgets:      {len(snapshot.budgets)}")


@data_group.command("backup")
@click.pass_context
def backup_data(ctx):
    """Save, then copy the stored data aside."""
    try:
        ctx.obj["autosaver"].flush()
        location = ctx.obj["gateway"].backup()
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Backup written to {location}")


@data_group.command("export")
@click.argument("path", type=click.Path(dir_okay=False))
@click.pass_context
def export_data(ctx, path: str):
    """Write all data to a single JSON file at PATH."""
    try:
        target = ctx.obj["gateway"].export_to(ctx.obj["store"].snapshot(), path)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Exported data to {target}")


@data_group.command("restore")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def restore_data(ctx, path: str, yes: bool):
    """Replace all data with the contents of an exported JSON file."""
    store = ctx.obj["store"]
    if not yes:
        click.confirm("This replaces all current data. Continue?", abort=True)
    try:
        snapshot = ctx.obj["gateway"].import_from(path)
        store.restore(snapshot)
        ctx.obj["autosaver"].force_save()
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Restored {store.stats.total} transaction(s) from {path}")


@data_group.command("clear")
@click.option("--transactions-only", is_flag=True, help="Keep categories, rules and budgets")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear_data(ctx, transactions_only: bool, yes: bool):
    """Delete stored data.

    With --transactions-only, transactions and their locks are removed and
    everything else is kept. Otherwise all data files are deleted.
    """
    store = ctx.obj["store"]
    autosaver = ctx.obj["autosaver"]
    what = "all transactions" if transactions_only else "ALL data"
    if not yes:
        click.confirm(f"Delete {what}?", abort=True)

    try:
        if transactions_only:
            store.clear_transactions()
            autosaver.force_save()
        else:
            store.reset()
            ctx.obj["gateway"].clear()
            autosaver.discard()
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted {what}")


def register_commands(cli):
    """Register data commands with main CLI."""
    cli.add_command(data_group, name="data")
