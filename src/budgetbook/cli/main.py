"""Main CLI entry point."""

import click

from budgetbook.cli.error_handling import handle_domain_error
from budgetbook.domain.errors import DomainError, PersistenceError
from budgetbook.domain.store import TransactionStore
from budgetbook.logging_setup import configure_logging, get_logger
from budgetbook.storage.autosave import AutoSaver
from budgetbook.storage.factories import BACKENDS, create_store

# Import and register all commands at module level
from budgetbook.cli.commands import (
    import_cmd,
    init_categories,
    category,
    categorize,
    rule,
    view,
    budget,
    data,
)

logger = get_logger("budgetbook.cli")


def _flush_on_exit(ctx: click.Context) -> None:
    """Write pending changes when the command finishes."""
    autosaver: AutoSaver = ctx.obj["autosaver"]
    autosaver.stop()
    try:
        autosaver.flush()
    except PersistenceError as e:
        handle_domain_error(ctx, e)


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    help="Data directory (overrides BUDGETBOOK_DATA_DIR environment variable)",
    envvar="BUDGETBOOK_DATA_DIR",
)
@click.option(
    "--backend",
    type=click.Choice(BACKENDS),
    default="json",
    show_default=True,
    envvar="BUDGETBOOK_BACKEND",
    help="Storage backend",
)
@click.option(
    "--log-level",
    envvar="BUDGETBOOK_LOG_LEVEL",
    default="WARNING",
    show_default=True,
    help="Logging level (DEBUG, INFO, WARNING, ERROR)",
)
@click.pass_context
def cli(ctx, data_dir: str | None, backend: str, log_level: str):
    """Budgetbook - household budget tool.

    Import bank CSV exports, categorize transactions with reusable rules,
    and follow monthly spending against your budget.
    """
    ctx.ensure_object(dict)
    configure_logging(log_level)

    # Load data only when actually running a command (not when showing help)
    if ctx.invoked_subcommand is None:
        return

    store = TransactionStore()
    try:
        gateway = create_store(backend, data_dir)
        if gateway.exists():
            store.restore(gateway.load())
    except DomainError as e:
        handle_domain_error(ctx, e)

    ctx.obj["store"] = store
    ctx.obj["gateway"] = gateway
    ctx.obj["autosaver"] = AutoSaver(store, gateway).start()
    ctx.call_on_close(lambda: _flush_on_exit(ctx))
    logger.debug("Using %s storage at %s", backend, gateway.location)


# Register all commands
import_cmd.register_commands(cli)
init_categories.register_commands(cli)
category.register_commands(cli)
categorize.register_commands(cli)
rule.register_commands(cli)
view.register_commands(cli)
budget.register_commands(cli)
data.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
