"""CSV import command."""

import click

from budgetbook.cli.error_handling import handle_domain_error
from budgetbook.domain.csv_import import CSVImportService
from budgetbook.domain.errors import DomainError


@click.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_csv(ctx, csv_file: str):
    """Import transactions from a bank CSV export.

    Rows already imported are skipped, so importing the same file twice
    changes nothing. Existing rules are applied to the new transactions.
    """
    service = CSVImportService(ctx.obj["store"])

    try:
        result = service.import_file(csv_file)
    except (DomainError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)

    click.echo("\nImport complete:")
    click.echo(f"  Parsed: {result.parsed} rows")
    click.echo(f"  Duplicates in file: {result.duplicates_in_file}")
    click.echo(f"  Already imported: {result.already_stored}")
    click.echo(f"  Imported: {result.imported} transactions")
    click.echo(f"  Auto-categorized: {result.auto_categorized}")
    if result.errors:
        click.echo(f"  Rejected: {len(result.errors)}")
        for error in result.errors:
            click.echo(f"    {error}", err=True)


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_csv)
