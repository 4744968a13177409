"""HTTP client for the Monzo API.

See https://docs.monzo.com/ for the endpoints used here.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from bankfeed.config import DEFAULT_API_BASE_URL, DEFAULT_AUTH_BASE_URL
from bankfeed.logging_setup import get_logger
from bankfeed.upstream.errors import UpstreamError, UpstreamHTTPError
from bankfeed.utils.date_parser import format_timestamp

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenResponse:
    """OAuth token endpoint response."""

    access_token: str
    refresh_token: Optional[str]
    expires_in: Optional[int]
    token_type: str = "Bearer"
    user_id: Optional[str] = None

    def __repr__(self) -> str:
        return f"TokenResponse(token_type={self.token_type!r}, expires_in={self.expires_in!r})"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenResponse":
        access_token = payload.get("access_token")
        if not access_token:
            raise UpstreamError("Token response did not include an access token")
        expires_in = payload.get("expires_in")
        return cls(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or None,
            expires_in=int(expires_in) if expires_in is not None else None,
            token_type=payload.get("token_type") or "Bearer",
            user_id=payload.get("user_id"),
        )


def _timestamp_param(value: str | datetime) -> str:
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


class UpstreamClient:
    """Thin synchronous wrapper over the upstream REST API.

    Every call raises ``UpstreamHTTPError`` on a non-2xx status and lets
    httpx transport errors propagate, so callers can retry or classify them.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        auth_base_url: str = DEFAULT_AUTH_BASE_URL,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_base_url = auth_base_url.rstrip("/")
        self._http = http_client if http_client is not None else httpx.Client(timeout=timeout)
        self._owns_http = http_client is None

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "UpstreamClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        access_token: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        headers = {}
        if access_token is not None:
            headers["Authorization"] = f"Bearer {access_token}"
        response = self._http.request(
            method, f"{self.base_url}{path}", headers=headers, params=params, data=data
        )
        if response.is_error:
            logger.debug("%s %s returned %d", method, path, response.status_code)
            raise UpstreamHTTPError(response.status_code, dict(response.headers.items()), response.text)
        if not response.content:
            return {}
        return response.json()

    # OAuth
    def build_authorization_url(self, client_id: str, redirect_uri: str, state: str) -> str:
        """URL the account holder visits to grant access."""
        params = urlencode(
            {"client_id": client_id, "redirect_uri": redirect_uri, "response_type": "code", "state": state}
        )
        return f"{self.auth_base_url}/?{params}"

    def exchange_code_for_tokens(
        self, code: str, client_id: str, client_secret: str, redirect_uri: str
    ) -> TokenResponse:
        """Exchange an authorization code for a token pair."""
        payload = self._request(
            "POST",
            "/oauth2/token",
            data={
                "grant_type": "authorization_code",
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )
        return TokenResponse.from_payload(payload)

    def refresh_access_token(self, refresh_token: str, client_id: str, client_secret: str) -> TokenResponse:
        """Exchange a refresh token for a new access token."""
        payload = self._request(
            "POST",
            "/oauth2/token",
            data={
                "grant_type": "refresh_token",
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
            },
        )
        return TokenResponse.from_payload(payload)

    # Resources
    def get_accounts(self, access_token: str) -> list[dict[str, Any]]:
        """List the accounts visible to this token."""
        return self._request("GET", "/accounts", access_token=access_token).get("accounts", [])

    def get_transactions(
        self,
        access_token: str,
        account_id: str,
        since: str | datetime,
        before: Optional[str | datetime] = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """List transactions for an account.

        Args:
            since: RFC3339 timestamp or a transaction id to page after
            before: Optional RFC3339 upper bound
            limit: Page size
        """
        params = {"account_id": account_id, "since": _timestamp_param(since), "limit": str(limit)}
        if before is not None:
            params["before"] = _timestamp_param(before)
        return self._request("GET", "/transactions", access_token=access_token, params=params).get(
            "transactions", []
        )

    def register_webhook(self, access_token: str, account_id: str, url: str) -> dict[str, Any]:
        """Register a webhook; returns the webhook object (with its ``id``)."""
        payload = self._request(
            "POST", "/webhooks", access_token=access_token, data={"account_id": account_id, "url": url}
        )
        return payload.get("webhook", payload)

    def delete_webhook(self, access_token: str, webhook_id: str) -> None:
        """Delete a registered webhook."""
        self._request("DELETE", f"/webhooks/{webhook_id}", access_token=access_token)
