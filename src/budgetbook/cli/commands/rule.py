"""Rule management commands."""

import click

from budgetbook.cli.error_handling import handle_domain_error
from budgetbook.cli.resolution import resolve_category_or_exit
from budgetbook.domain.categorization import CategorizationService
from budgetbook.domain.category import CategoryService
from budgetbook.domain.errors import DomainError


@click.group()
def rule_group():
    """Manage description-to-category rules."""
    pass


@rule_group.command("list")
@click.pass_context
def list_rules(ctx):
    """List all rules."""
    store = ctx.obj["store"]
    rules = CategorizationService(store).list_rules()
    if not rules:
        click.echo("No rules found.")
        return

    category_service = CategoryService(store)
    click.echo(f"{'Description':<40} {'Category':<40}")
    click.echo("-" * 80)
    for rule in rules:
        click.echo(f"{rule.text[:40]:<40} {category_service.format_category_path(rule.category_id):<40}")


@rule_group.command("create")
@click.argument("text")
@click.argument("category_ref")
@click.option("--apply", "apply_now", is_flag=True, help="Apply rules to existing transactions")
@click.pass_context
def create_rule(ctx, text: str, category_ref: str, apply_now: bool):
    """Categorize transactions whose description equals TEXT (case-insensitive)."""
    store = ctx.obj["store"]
    service = CategorizationService(store)
    category_service = CategoryService(store)
    category = resolve_category_or_exit(ctx, category_service, category_ref)
    try:
        rule = service.create_rule(text, category.id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Rule '{rule.text}' -> '{category_service.format_category_path(category.id)}'")
    if apply_now:
        click.echo(f"Rules applied: {service.apply_rules_to_all()} transaction(s) updated")


@rule_group.command("delete")
@click.argument("text")
@click.pass_context
def delete_rule(ctx, text: str):
    """Delete the rule for TEXT."""
    try:
        CategorizationService(ctx.obj["store"]).delete_rule(text)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted rule '{text}'")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
