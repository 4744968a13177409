"""Sync command."""

import click

from bankfeed.cli.error_handling import handle_domain_error
from bankfeed.cli.services import build_sync_service
from bankfeed.domain.errors import DomainError
from bankfeed.domain.progress import ProgressStatus, ProgressUpdate


def _echo_progress(update: ProgressUpdate) -> None:
    if update.status is ProgressStatus.PROCESSING:
        click.echo(
            f"  Batch {update.current_batch}: {update.transactions_fetched} fetched, "
            f"{update.transactions_processed} processed, {update.duplicates_skipped} duplicates"
        )


@click.command("sync")
@click.argument("account_id", required=False)
@click.option("--all", "sync_all", is_flag=True, help="Sync every enabled account")
@click.option("--page-size", type=click.IntRange(1, 100), default=100, show_default=True)
@click.option("--max-pages", type=click.IntRange(1), default=50, show_default=True)
@click.pass_context
def sync(ctx, account_id: str | None, sync_all: bool, page_size: int, max_pages: int):
    """Fetch new transactions for ACCOUNT_ID (or --all) and classify them.

    Examples:
        bankfeed sync 3f0c...
        bankfeed sync --all
    """
    if (account_id is None) == (not sync_all):
        click.echo("Error: Give either ACCOUNT_ID or --all", err=True)
        ctx.exit(1)

    db = ctx.obj["db"]
    try:
        service = build_sync_service(ctx)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if sync_all:
        account_ids = [acc.id for acc in db.list_linked_accounts(sync_enabled_only=True)]
        if not account_ids:
            click.echo("No enabled accounts to sync.")
            return
    else:
        account_ids = [account_id]

    failed = False
    for target in account_ids:
        click.echo(f"Syncing account {target}...")
        try:
            result = service.sync_account(
                target, page_size=page_size, max_pages=max_pages, on_progress=_echo_progress
            )
        except DomainError as e:
            if not sync_all:
                handle_domain_error(ctx, e)
            click.echo(f"Error: {e}", err=True)
            failed = True
            continue

        if not result.succeeded:
            click.echo(f"Error: {result.error_message}", err=True)
            failed = True
            continue

        click.echo("\nSync complete:")
        click.echo(f"  Fetched: {result.transactions_fetched} transactions")
        click.echo(f"  Processed: {result.processed} ({result.matched} matched, {result.pending} pending)")
        click.echo(f"  Skipped: {result.duplicates_skipped} duplicates")
        if result.errors:
            click.echo(f"  Errors: {len(result.errors)}")
            for error in result.errors:
                click.echo(f"    {error.transaction_id}: {error.error}", err=True)

    if failed:
        ctx.exit(1)


def register_commands(cli):
    """Register sync command with main CLI."""
    cli.add_command(sync)
