"""Property management commands."""

import click

from bankfeed.cli.error_handling import handle_domain_error
from bankfeed.domain.errors import DomainError
from bankfeed.domain.rules import PropertyService


@click.group()
def property_group():
    """Manage properties."""
    pass


@property_group.command("add")
@click.argument("name")
@click.pass_context
def add_property(ctx, name: str):
    """Add a property that ledger entries can be booked against."""
    service = PropertyService(ctx.obj["db"])
    try:
        property_id = service.create_property(name)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created property '{name}' (ID: {property_id})")


@property_group.command("list")
@click.pass_context
def list_properties(ctx):
    """List properties."""
    properties = PropertyService(ctx.obj["db"]).list_properties()
    if not properties:
        click.echo("No properties found.")
        return
    for prop in properties:
        click.echo(f"ID: {prop.id} | {prop.name}")


def register_commands(cli):
    """Register property commands with main CLI."""
    cli.add_command(property_group, name="property")
