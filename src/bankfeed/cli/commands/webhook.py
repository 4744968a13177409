"""Webhook ingestion command."""

import json

import click

from bankfeed.cli.error_handling import handle_domain_error
from bankfeed.domain.errors import DomainError
from bankfeed.domain.webhooks import WebhookHandler


@click.group()
def webhook_group():
    """Process webhook deliveries."""
    pass


@webhook_group.command("ingest")
@click.argument("payload_file", type=click.File("r"))
@click.pass_context
def ingest(ctx, payload_file):
    """Ingest a transaction.created webhook payload from PAYLOAD_FILE ('-' for stdin)."""
    try:
        payload = json.load(payload_file)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Payload is not valid JSON: {e.msg}", err=True)
        ctx.exit(1)

    try:
        result = WebhookHandler(ctx.obj["db"]).handle(payload)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not result.accepted:
        click.echo(f"Error: {result.message}", err=True)
        ctx.exit(1)
    click.echo(result.message)
    if result.process_result is not None and result.process_result.duplicates_skipped:
        click.echo("Transaction was already imported")


def register_commands(cli):
    """Register webhook commands with main CLI."""
    cli.add_command(webhook_group, name="webhook")
