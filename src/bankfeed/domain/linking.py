"""Linking upstream accounts via OAuth and managing their webhooks."""

import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from bankfeed.database.base import Database
from bankfeed.domain.entities import LinkedAccount
from bankfeed.domain.errors import (
    ConfigurationError,
    NotFoundError,
    ValidationError,
    account_not_found,
    oauth_config_missing,
)
from bankfeed.logging_setup import get_logger
from bankfeed.upstream.client import UpstreamClient
from bankfeed.upstream.tokens import TokenRefresher
from bankfeed.utils.crypto import CredentialCipher
from bankfeed.utils.date_parser import utcnow

logger = get_logger(__name__)

MIN_SYNC_FROM_DAYS = 1
MAX_SYNC_FROM_DAYS = 1825
DEFAULT_SYNC_FROM_DAYS = 90


class AccountLinker:
    """Service for connecting upstream accounts."""

    def __init__(
        self,
        db: Database,
        client: UpstreamClient,
        cipher: CredentialCipher,
        client_id: Optional[str],
        client_secret: Optional[str],
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.client = client
        self.cipher = cipher
        self.client_id = client_id
        self.client_secret = client_secret
        self.clock = clock
        self.token_refresher = TokenRefresher(db, client, cipher, client_id, client_secret, clock=clock)

    def _require_client(self) -> tuple[str, str]:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(oauth_config_missing("BANKFEED_CLIENT_ID", "BANKFEED_CLIENT_SECRET"))
        return self.client_id, self.client_secret

    def authorization_url(self, redirect_uri: str, state: Optional[str] = None) -> tuple[str, str]:
        """Build the consent URL.

        Returns:
            (url, state); ``state`` is random unless supplied and must be
            checked against the callback
        """
        client_id, _ = self._require_client()
        state = state or secrets.token_hex(32)
        return self.client.build_authorization_url(client_id, redirect_uri, state), state

    def link_account(
        self, code: str, redirect_uri: str, sync_from_days: int = DEFAULT_SYNC_FROM_DAYS
    ) -> LinkedAccount:
        """Exchange an authorization code and store the first upstream account.

        Re-linking an upstream account that is already stored replaces its
        tokens and re-enables syncing.

        Args:
            code: Authorization code from the OAuth callback
            redirect_uri: Redirect URI used to obtain the code
            sync_from_days: How far back the first sync reaches

        Returns:
            The linked account

        Raises:
            ValidationError: If sync_from_days is out of range or code is empty
            ConfigurationError: If the OAuth client is not configured
            NotFoundError: If the token grants access to no accounts
        """
        if not code:
            raise ValidationError("Authorization code is required")
        if not MIN_SYNC_FROM_DAYS <= sync_from_days <= MAX_SYNC_FROM_DAYS:
            raise ValidationError(
                f"sync_from_days must be between {MIN_SYNC_FROM_DAYS} and {MAX_SYNC_FROM_DAYS}"
            )
        client_id, client_secret = self._require_client()

        tokens = self.client.exchange_code_for_tokens(code, client_id, client_secret, redirect_uri)
        accounts = self.client.get_accounts(tokens.access_token)
        if not accounts:
            raise NotFoundError("No accounts found")

        upstream = accounts[0]
        now = self.clock()
        expires_at = now + timedelta(seconds=tokens.expires_in) if tokens.expires_in is not None else None
        encrypted_access = self.cipher.encrypt(tokens.access_token)
        encrypted_refresh = self.cipher.encrypt(tokens.refresh_token) if tokens.refresh_token else None

        existing = self.db.get_linked_account_by_upstream_id(upstream["id"])
        if existing is not None:
            self.db.update_account_tokens(
                existing.id,
                access_token=encrypted_access,
                refresh_token=encrypted_refresh or existing.refresh_token,
                token_expires_at=expires_at,
            )
            self.db.set_account_sync_enabled(existing.id, True)
            logger.info("Re-linked upstream account %s", upstream["id"])
            return self.db.get_linked_account(existing.id)

        account_id = self.db.create_linked_account(
            upstream_account_id=upstream["id"],
            account_name=upstream.get("description") or upstream.get("type") or "Monzo Account",
            account_type=upstream.get("type") or "current",
            access_token=encrypted_access,
            refresh_token=encrypted_refresh,
            token_expires_at=expires_at,
            sync_from_date=now - timedelta(days=sync_from_days),
        )
        return self.db.get_linked_account(account_id)

    def _require_account(self, account_id: str) -> LinkedAccount:
        account = self.db.get_linked_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def register_webhook(self, account_id: str, url: str) -> str:
        """Register a transaction webhook upstream. Returns the webhook ID."""
        account = self._require_account(account_id)
        if not url:
            raise ValidationError("Webhook URL is required")
        access_token = self.token_refresher.get_access_token(account_id)
        webhook = self.client.register_webhook(access_token, account.upstream_account_id, url)
        webhook_id = webhook.get("id")
        if not webhook_id:
            raise ValidationError("Upstream did not return a webhook id")
        self.db.update_account_webhook(account_id, webhook_id, url)
        logger.info("Registered webhook %s for account %s", webhook_id, account_id)
        return webhook_id

    def remove_webhook(self, account_id: str) -> None:
        """Delete the account's webhook upstream and forget it."""
        account = self._require_account(account_id)
        if not account.webhook_id:
            raise ValidationError(f"Account {account_id} has no registered webhook")
        access_token = self.token_refresher.get_access_token(account_id)
        self.client.delete_webhook(access_token, account.webhook_id)
        self.db.update_account_webhook(account_id, None, None)
        logger.info("Removed webhook %s for account %s", account.webhook_id, account_id)
