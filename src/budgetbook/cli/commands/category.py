"""Category management commands."""

import click

from budgetbook.cli.error_handling import handle_domain_error
from budgetbook.domain.category import CategoryService
from budgetbook.domain.entities import CategoryTreeEntry
from budgetbook.domain.errors import DomainError


def print_category_tree(entries: list[CategoryTreeEntry]) -> None:
    """Print mains with their subcategories indented below."""
    for entry in entries:
        main = entry.category
        flags = []
        if main.is_income:
            flags.append("income")
        if main.is_system:
            flags.append("system")
        if main.hide_from_category_page:
            flags.append("hidden")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"{main.name} (ID: {main.id}){suffix}")
        for child in entry.children:
            click.echo(f"  {child.name} (ID: {child.id})")


@click.group()
def category_group():
    """Manage categories."""
    pass


@category_group.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include hidden categories")
@click.pass_context
def list_categories(ctx, show_all: bool):
    """List all categories in tree format."""
    service = CategoryService(ctx.obj["store"])

    tree = service.get_category_tree(include_hidden=show_all)
    if not tree:
        click.echo("No categories found. Run 'init-categories' to create default categories.")
        return

    click.echo("\nCategories:")
    print_category_tree(tree)


@category_group.command("create")
@click.argument("name")
@click.option("--income", is_flag=True, help="Mark as an income category")
@click.pass_context
def create_category(ctx, name: str, income: bool):
    """Create a new main category."""
    service = CategoryService(ctx.obj["store"])
    try:
        category = service.create_main_category(name, is_income=income)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created category '{category.name}' (ID: {category.id})")


@category_group.command("create-sub")
@click.argument("parent")
@click.argument("name")
@click.pass_context
def create_sub_category(ctx, parent: str, name: str):
    """Create a subcategory under PARENT (name or ID)."""
    service = CategoryService(ctx.obj["store"])
    try:
        sub = service.create_sub_category(name, parent)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created category '{service.format_category_path(sub.id)}' (ID: {sub.id})")


@category_group.command("add-subs")
@click.argument("parent")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def add_subcategories(ctx, parent: str, names: tuple[str, ...]):
    """Create several subcategories under PARENT, skipping existing names.

    Names may also be given comma-separated, e.g. "Rent, Electricity".
    """
    service = CategoryService(ctx.obj["store"])
    split_names = [part for name in names for part in name.split(",")]
    try:
        main = service.resolve_main(parent)
        created = service.add_subcategories_bulk(main.id, split_names)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Added {len(created)} subcategories to '{main.name}'")
    for sub in created:
        click.echo(f"  {sub.name} (ID: {sub.id})")


@category_group.command("rename")
@click.argument("category_ref")
@click.argument("new_name")
@click.pass_context
def rename_category(ctx, category_ref: str, new_name: str):
    """Rename a category given by ID or path."""
    service = CategoryService(ctx.obj["store"])
    try:
        category = service.rename(category_ref, new_name)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Renamed to '{service.format_category_path(category.id)}'")


@category_group.command("delete")
@click.argument("category_ref")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_category(ctx, category_ref: str, yes: bool):
    """Delete a category.

    Transactions in the category become uncategorized; its rules, locks and
    budgets are removed. Deleting a main category deletes its subcategories.
    """
    service = CategoryService(ctx.obj["store"])
    try:
        category = service.resolve(category_ref)
        path = service.format_category_path(category.id)
        if not yes:
            click.confirm(f"Delete '{path}'?", abort=True)
        service.delete(category.id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted category '{path}'")


@category_group.command("reorder")
@click.argument("category_refs", nargs=-1, required=True)
@click.pass_context
def reorder_categories(ctx, category_refs: tuple[str, ...]):
    """Set the order of main categories; every main category must be listed."""
    service = CategoryService(ctx.obj["store"])
    try:
        service.reorder(list(category_refs))
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo("Main categories reordered")


@category_group.command("reorder-subs")
@click.argument("parent")
@click.argument("sub_refs", nargs=-1, required=True)
@click.pass_context
def reorder_subcategories(ctx, parent: str, sub_refs: tuple[str, ...]):
    """Set the order of PARENT's subcategories; every one must be listed."""
    service = CategoryService(ctx.obj["store"])
    try:
        service.reorder_subcategories(parent, list(sub_refs))
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo("Subcategories reordered")


@category_group.command("move")
@click.argument("sub_ref")
@click.argument("new_parent")
@click.pass_context
def move_subcategory(ctx, sub_ref: str, new_parent: str):
    """Move a subcategory under another main category."""
    service = CategoryService(ctx.obj["store"])
    try:
        sub = service.move(sub_ref, new_parent)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Moved to '{service.format_category_path(sub.id)}'")


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")
