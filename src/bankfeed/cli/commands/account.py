"""Linked account management commands."""

import click
import httpx

from bankfeed.cli.error_handling import handle_domain_error, handle_upstream_error
from bankfeed.cli.services import build_linker, get_settings
from bankfeed.domain.errors import DomainError, NotFoundError, account_not_found
from bankfeed.upstream.errors import UpstreamError
from bankfeed.utils.date_parser import format_timestamp


@click.group()
def account_group():
    """Manage linked bank accounts."""
    pass


@account_group.command("authorize-url")
@click.option("--redirect-uri", help="OAuth redirect URI (defaults to BANKFEED_REDIRECT_URI)")
@click.option("--state", help="State value to embed (random if omitted)")
@click.pass_context
def authorize_url(ctx, redirect_uri: str | None, state: str | None):
    """Print the URL to visit to grant access to a bank account."""
    try:
        redirect_uri = redirect_uri or get_settings(ctx).require_redirect_uri()
        url, state = build_linker(ctx).authorization_url(redirect_uri, state)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(url)
    click.echo(f"State: {state}")


@account_group.command("link")
@click.argument("code")
@click.option("--redirect-uri", help="OAuth redirect URI (defaults to BANKFEED_REDIRECT_URI)")
@click.option(
    "--sync-from-days",
    type=click.IntRange(1, 1825),
    default=90,
    show_default=True,
    help="How many days of history the first sync fetches",
)
@click.pass_context
def link_account(ctx, code: str, redirect_uri: str | None, sync_from_days: int):
    """Link a bank account using the authorization CODE from the OAuth callback.

    Examples:
        bankfeed account link abc123
        bankfeed account link abc123 --sync-from-days 30
    """
    try:
        redirect_uri = redirect_uri or get_settings(ctx).require_redirect_uri()
        account = build_linker(ctx).link_account(code, redirect_uri, sync_from_days=sync_from_days)
    except DomainError as e:
        handle_domain_error(ctx, e)
    except (UpstreamError, httpx.HTTPError) as e:
        handle_upstream_error(ctx, e)
    click.echo(f"Linked account '{account.account_name}' (ID: {account.id})")
    click.echo(f"Transactions will be synced from {account.sync_from_date.date().isoformat()}")


@account_group.command("list")
@click.pass_context
def list_accounts(ctx):
    """List linked accounts."""
    db = ctx.obj["db"]
    accounts = db.list_linked_accounts()
    if not accounts:
        click.echo("No linked accounts found.")
        return

    click.echo("\nLinked accounts:")
    click.echo("-" * 100)
    for acc in accounts:
        last_sync = format_timestamp(acc.last_sync_at) if acc.last_sync_at else "never"
        enabled = "enabled" if acc.sync_enabled else "disabled"
        webhook = "webhook" if acc.webhook_id else "no webhook"
        click.echo(
            f"ID: {acc.id} | {acc.account_name:20s} | {acc.last_sync_status.value:12s} | "
            f"last sync: {last_sync} | {enabled} | {webhook}"
        )


def _set_sync_enabled(ctx, account_id: str, enabled: bool) -> None:
    db = ctx.obj["db"]
    try:
        db.set_account_sync_enabled(account_id, enabled)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Sync {'enabled' if enabled else 'disabled'} for account {account_id}")


@account_group.command("enable")
@click.argument("account_id")
@click.pass_context
def enable_account(ctx, account_id: str):
    """Enable syncing for an account."""
    _set_sync_enabled(ctx, account_id, True)


@account_group.command("disable")
@click.argument("account_id")
@click.pass_context
def disable_account(ctx, account_id: str):
    """Disable syncing for an account."""
    _set_sync_enabled(ctx, account_id, False)


@account_group.command("register-webhook")
@click.argument("account_id")
@click.argument("url")
@click.pass_context
def register_webhook(ctx, account_id: str, url: str):
    """Register a transaction webhook for an account."""
    try:
        webhook_id = build_linker(ctx).register_webhook(account_id, url)
    except DomainError as e:
        handle_domain_error(ctx, e)
    except (UpstreamError, httpx.HTTPError) as e:
        handle_upstream_error(ctx, e)
    click.echo(f"Registered webhook {webhook_id}")


@account_group.command("remove-webhook")
@click.argument("account_id")
@click.pass_context
def remove_webhook(ctx, account_id: str):
    """Remove the registered webhook of an account."""
    try:
        build_linker(ctx).remove_webhook(account_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    except (UpstreamError, httpx.HTTPError) as e:
        handle_upstream_error(ctx, e)
    click.echo(f"Removed webhook for account {account_id}")


@account_group.command("logs")
@click.argument("account_id", required=False)
@click.option("--limit", type=int, default=20, show_default=True, help="Number of logs to show")
@click.pass_context
def sync_logs(ctx, account_id: str | None, limit: int):
    """Show recent sync logs, optionally for one account."""
    db = ctx.obj["db"]
    if account_id is not None and db.get_linked_account(account_id) is None:
        handle_domain_error(ctx, NotFoundError(account_not_found(account_id)))

    logs = db.list_sync_logs(account_id, limit=limit)
    if not logs:
        click.echo("No sync logs found.")
        return

    for log in logs:
        line = (
            f"{format_timestamp(log.started_at)} | {log.sync_type:7s} | {log.status.value:11s} | "
            f"fetched {log.transactions_fetched}, skipped {log.transactions_skipped}, "
            f"matched {log.transactions_matched}, pending {log.transactions_pending}"
        )
        if log.error_message:
            line += f" | {log.error_message}"
        click.echo(line)


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
