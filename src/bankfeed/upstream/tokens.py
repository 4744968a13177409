"""Access token expiry checks and refresh."""

from datetime import datetime, timedelta
from typing import Callable, Optional

from bankfeed.database.base import Database
from bankfeed.domain.errors import (
    ConfigurationError,
    NoRefreshTokenError,
    NotFoundError,
    account_not_found,
    oauth_config_missing,
)
from bankfeed.logging_setup import get_logger
from bankfeed.upstream.client import UpstreamClient
from bankfeed.utils.crypto import CredentialCipher
from bankfeed.utils.date_parser import ensure_utc, utcnow

logger = get_logger(__name__)

DEFAULT_EXPIRY_BUFFER_SECONDS = 60


def is_token_expired(
    expires_at: Optional[datetime],
    buffer_seconds: int = DEFAULT_EXPIRY_BUFFER_SECONDS,
    now: Optional[datetime] = None,
) -> bool:
    """True when ``expires_at`` falls within ``buffer_seconds`` of ``now``.

    An unknown expiry is treated as not expired.
    """
    if expires_at is None:
        return False
    now = ensure_utc(now) if now is not None else utcnow()
    return ensure_utc(expires_at) - timedelta(seconds=buffer_seconds) <= now


class TokenRefresher:
    """Refreshes and persists an account's upstream credentials."""

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

    def refresh(self, account_id: str) -> str:
        """Refresh the account's access token.

        The new access token, the refresh token (the old one when upstream
        returns none) and the expiry are written together.

        Returns:
            The new plaintext access token

        Raises:
            NotFoundError: If the account does not exist
            NoRefreshTokenError: If no refresh token is stored
            ConfigurationError: If the OAuth client is not configured
            DecryptionError: If the stored refresh token cannot be decrypted
        """
        account = self.db.get_linked_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        if not account.refresh_token:
            raise NoRefreshTokenError()
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(oauth_config_missing("BANKFEED_CLIENT_ID", "BANKFEED_CLIENT_SECRET"))

        refresh_token = self.cipher.decrypt(account.refresh_token)
        tokens = self.client.refresh_access_token(refresh_token, self.client_id, self.client_secret)

        if tokens.refresh_token:
            stored_refresh = self.cipher.encrypt(tokens.refresh_token)
        else:
            stored_refresh = account.refresh_token
        expires_at = None
        if tokens.expires_in is not None:
            expires_at = self.clock() + timedelta(seconds=tokens.expires_in)

        self.db.update_account_tokens(
            account_id,
            access_token=self.cipher.encrypt(tokens.access_token),
            refresh_token=stored_refresh,
            token_expires_at=expires_at,
        )
        logger.info("Refreshed access token for account %s", account_id)
        return tokens.access_token

    def get_access_token(self, account_id: str) -> str:
        """Return a usable plaintext access token, refreshing it first if it is about to expire."""
        account = self.db.get_linked_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        if is_token_expired(account.token_expires_at, now=self.clock()):
            logger.info("Access token for account %s is expired; refreshing", account_id)
            return self.refresh(account_id)
        return self.cipher.decrypt(account.access_token)
