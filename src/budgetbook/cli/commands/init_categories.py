"""Initialize default categories."""

import click

from budgetbook.domain.category import CategoryService


@click.command("init-categories")
@click.pass_context
def init_categories(ctx):
    """Create the system categories and a starter category tree.

    Categories that already exist are left alone.
    """
    service = CategoryService(ctx.obj["store"])
    created = service.init_defaults()
    if created:
        click.echo(f"Successfully created {created} categories.")
    else:
        click.echo("Default categories already exist.")


def register_commands(cli):
    """Register init-categories command with main CLI."""
    cli.add_command(init_categories)
