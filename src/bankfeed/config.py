"""Runtime configuration read from the process environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from bankfeed.domain.errors import ConfigurationError, oauth_config_missing

DEFAULT_API_BASE_URL = "https://api.monzo.com"
DEFAULT_AUTH_BASE_URL = "https://auth.monzo.com"


@dataclass(frozen=True)
class Settings:
    """Environment-derived settings.

    ``token_encryption_key`` is held as the raw hex string; it is only turned
    into a cipher by ``CredentialCipher.from_hex``.
    """

    database_path: Optional[str]
    token_encryption_key: Optional[str]
    client_id: Optional[str]
    client_secret: Optional[str]
    redirect_uri: Optional[str]
    api_base_url: str = DEFAULT_API_BASE_URL
    auth_base_url: str = DEFAULT_AUTH_BASE_URL
    log_level: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"Settings(database_path={self.database_path!r}, api_base_url={self.api_base_url!r}, "
            f"client_id={self.client_id!r}, redirect_uri={self.redirect_uri!r})"
        )

    def require_oauth_client(self) -> tuple[str, str]:
        """Return (client_id, client_secret) or raise ConfigurationError."""
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(oauth_config_missing("BANKFEED_CLIENT_ID", "BANKFEED_CLIENT_SECRET"))
        return self.client_id, self.client_secret

    def require_redirect_uri(self) -> str:
        if not self.redirect_uri:
            raise ConfigurationError(oauth_config_missing("BANKFEED_REDIRECT_URI"))
        return self.redirect_uri


def default_database_path() -> str:
    """Default to ~/.bankfeed/bankfeed.db, creating the directory."""
    db_dir = Path.home() / ".bankfeed"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "bankfeed.db")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment.

    Args:
        environ: Mapping to read from; defaults to ``os.environ``
    """
    env = os.environ if environ is None else environ
    return Settings(
        database_path=env.get("BANKFEED_DB_PATH"),
        token_encryption_key=env.get("BANKFEED_TOKEN_ENCRYPTION_KEY"),
        client_id=env.get("BANKFEED_CLIENT_ID"),
        client_secret=env.get("BANKFEED_CLIENT_SECRET"),
        redirect_uri=env.get("BANKFEED_REDIRECT_URI"),
        api_base_url=env.get("BANKFEED_API_BASE_URL") or DEFAULT_API_BASE_URL,
        auth_base_url=env.get("BANKFEED_AUTH_BASE_URL") or DEFAULT_AUTH_BASE_URL,
        log_level=env.get("BANKFEED_LOG_LEVEL"),
    )
