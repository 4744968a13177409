"""Pending entry commands."""

import click

from bankfeed.domain.reprocessing import RuleReprocessor
from bankfeed.utils.date_parser import format_timestamp


@click.group()
def pending_group():
    """Review and reprocess pending entries."""
    pass


@pending_group.command("list")
@click.option("--account", "account_id", help="Only entries from this linked account")
@click.pass_context
def list_pending(ctx, account_id: str | None):
    """List pending entries awaiting classification."""
    entries = ctx.obj["db"].list_pending_entries(account_id)
    if not entries:
        click.echo("No pending entries.")
        return

    for entry in entries:
        click.echo(
            f"{format_timestamp(entry.transaction_date)} | {entry.description[:30]:30s} | "
            f"property: {entry.property_id or '-'} | type: {entry.type.value if entry.type else '-'} | "
            f"category: {entry.category or '-'} | ID: {entry.id}"
        )


@pending_group.command("reprocess")
@click.option("--account", "account_id", help="Only entries from this linked account")
@click.pass_context
def reprocess(ctx, account_id: str | None):
    """Re-run matching rules over pending entries."""
    result = RuleReprocessor(ctx.obj["db"]).reprocess_pending(account_id)
    click.echo(f"Reprocessed {result.processed} pending entries")
    click.echo(f"  Approved: {result.approved}")
    if result.failed:
        click.echo(f"  Failed: {result.failed}", err=True)
        ctx.exit(1)


def register_commands(cli):
    """Register pending commands with main CLI."""
    cli.add_command(pending_group, name="pending")
