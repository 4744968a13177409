"""CLI error handling helpers."""

import click
import httpx

from bankfeed.domain.errors import DomainError
from bankfeed.upstream.errors import UpstreamError, upstream_error_message


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def handle_upstream_error(ctx: click.Context, error: UpstreamError | httpx.HTTPError) -> None:
    """Render an upstream failure with its user-facing message and exit with failure."""
    click.echo(f"Error: {upstream_error_message(error)}", err=True)
    ctx.exit(1)
