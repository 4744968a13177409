"""Wiring of upstream-facing services for CLI commands."""

import time

import click

from bankfeed.config import Settings
from bankfeed.domain.linking import AccountLinker
from bankfeed.domain.sync import SyncService
from bankfeed.upstream.client import UpstreamClient
from bankfeed.upstream.fetcher import TransactionFetcher
from bankfeed.upstream.tokens import TokenRefresher
from bankfeed.utils.crypto import CredentialCipher


def get_settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def get_cipher(ctx: click.Context) -> CredentialCipher:
    """Cipher from BANKFEED_TOKEN_ENCRYPTION_KEY; raises ConfigurationError if unset."""
    if ctx.obj.get("cipher") is None:
        ctx.obj["cipher"] = CredentialCipher.from_hex(get_settings(ctx).token_encryption_key)
    return ctx.obj["cipher"]


def get_client(ctx: click.Context) -> UpstreamClient:
    """Upstream client; tests may supply ``http_client`` in the context object."""
    if ctx.obj.get("client") is None:
        settings = get_settings(ctx)
        ctx.obj["client"] = UpstreamClient(
            base_url=settings.api_base_url,
            http_client=ctx.obj.get("http_client"),
            auth_base_url=settings.auth_base_url,
        )
        ctx.find_root().call_on_close(ctx.obj["client"].close)
    return ctx.obj["client"]


def build_linker(ctx: click.Context) -> AccountLinker:
    settings = get_settings(ctx)
    return AccountLinker(
        ctx.obj["db"], get_client(ctx), get_cipher(ctx), settings.client_id, settings.client_secret
    )


def build_sync_service(ctx: click.Context) -> SyncService:
    settings = get_settings(ctx)
    db = ctx.obj["db"]
    client = get_client(ctx)
    cipher = get_cipher(ctx)
    refresher = TokenRefresher(db, client, cipher, settings.client_id, settings.client_secret)
    fetcher = TransactionFetcher(client, refresher, sleep=ctx.obj.get("sleep", time.sleep))
    return SyncService(db, fetcher, cipher, refresher)
