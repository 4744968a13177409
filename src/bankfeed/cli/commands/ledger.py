"""Ledger commands."""

import click

from bankfeed.utils.date_parser import format_timestamp


@click.group()
def ledger_group():
    """View ledger entries."""
    pass


@ledger_group.command("list")
@click.option("--property", "property_id", help="Only entries for this property")
@click.pass_context
def list_ledger(ctx, property_id: str | None):
    """List ledger entries, newest first."""
    entries = ctx.obj["db"].list_ledger_entries(property_id)
    if not entries:
        click.echo("No ledger entries.")
        return

    for entry in entries:
        click.echo(
            f"{format_timestamp(entry.transaction_date)} | {entry.amount:>10} | {entry.type.value:7s} | "
            f"{entry.category:16s} | {entry.description[:30]} | property: {entry.property_id}"
        )


def register_commands(cli):
    """Register ledger commands with main CLI."""
    cli.add_command(ledger_group, name="ledger")
