"""Main CLI entry point."""

import click

from bankfeed.config import load_settings
from bankfeed.database.factories import create_sqlite_database
from bankfeed.logging_setup import configure_logging

# Import and register all commands at module level
from bankfeed.cli.commands import (
    account,
    property_cmd,
    rule,
    sync,
    webhook,
    pending,
    ledger,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides BANKFEED_DB_PATH environment variable)",
    envvar="BANKFEED_DB_PATH",
)
@click.option(
    "--log-level",
    help="Logging level, e.g. INFO or DEBUG (overrides BANKFEED_LOG_LEVEL environment variable)",
    envvar="BANKFEED_LOG_LEVEL",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """Bankfeed - bank transaction ingestion.

    Link upstream bank accounts, pull their transactions and classify them
    into ledger entries with matching rules.
    """
    ctx.ensure_object(dict)
    settings = ctx.obj.setdefault("settings", load_settings())
    configure_logging(log_level or settings.log_level)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None and "db" not in ctx.obj:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
property_cmd.register_commands(cli)
rule.register_commands(cli)
sync.register_commands(cli)
webhook.register_commands(cli)
pending.register_commands(cli)
ledger.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
