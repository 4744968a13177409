"""Upstream failure types and their user-facing messages."""

from enum import Enum
from typing import Mapping, Optional

import httpx


class UpstreamError(Exception):
    """Base class for failures talking to the upstream bank API."""


class UpstreamHTTPError(UpstreamError):
    """Upstream answered with a non-2xx status.

    Attributes:
        status_code: HTTP status code
        headers: Response headers with lower-cased names
        body: Raw response body, kept for debugging only
    """

    def __init__(self, status_code: int, headers: Optional[Mapping[str, str]] = None, body: str = ""):
        self.status_code = status_code
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.body = body
        super().__init__(f"Request failed with status {status_code}")


class UpstreamFailure(str, Enum):
    """Category of an upstream failure."""

    AUTH_EXPIRED = "auth_expired"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    HTTP_STATUS = "http_status"
    CONNECTION_REFUSED = "connection_refused"
    TIMED_OUT = "timed_out"
    CONNECTION_RESET = "connection_reset"
    UNKNOWN = "unknown"


_STATUS_FAILURES = {
    401: UpstreamFailure.AUTH_EXPIRED,
    403: UpstreamFailure.ACCESS_DENIED,
    404: UpstreamFailure.NOT_FOUND,
    429: UpstreamFailure.RATE_LIMITED,
}

_MESSAGES = {
    UpstreamFailure.AUTH_EXPIRED: "Access token has expired. Please reconnect your bank account.",
    UpstreamFailure.ACCESS_DENIED: "Access denied. Please reconnect your bank account.",
    UpstreamFailure.NOT_FOUND: "Resource not found. The account or transaction may have been deleted.",
    UpstreamFailure.RATE_LIMITED: "Rate limit exceeded. Please try again later.",
    UpstreamFailure.UNAVAILABLE: "Monzo service is temporarily unavailable. Please try again later.",
    UpstreamFailure.CONNECTION_REFUSED: "Could not connect to Monzo. Please check your internet connection.",
    UpstreamFailure.TIMED_OUT: "Request timed out. Please try again.",
    UpstreamFailure.CONNECTION_RESET: "Connection was reset. Please try again.",
}

GENERIC_SYNC_ERROR = "An error occurred while syncing transactions"


def classify_upstream_error(error: BaseException) -> UpstreamFailure:
    """Map an exception raised while talking to upstream onto a failure category."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        if status in _STATUS_FAILURES:
            return _STATUS_FAILURES[status]
        if status >= 500:
            return UpstreamFailure.UNAVAILABLE
        return UpstreamFailure.HTTP_STATUS

    # Order matters: httpx timeouts are not connect errors, but ConnectTimeout is both
    if isinstance(error, (httpx.TimeoutException, TimeoutError)):
        return UpstreamFailure.TIMED_OUT
    if isinstance(error, (httpx.ConnectError, ConnectionRefusedError)):
        return UpstreamFailure.CONNECTION_REFUSED
    if isinstance(error, (httpx.ReadError, httpx.RemoteProtocolError, ConnectionResetError)):
        return UpstreamFailure.CONNECTION_RESET
    return UpstreamFailure.UNKNOWN


def upstream_error_message(error: BaseException) -> str:
    """Return the user-facing message for an upstream failure."""
    failure = classify_upstream_error(error)
    if failure is UpstreamFailure.HTTP_STATUS:
        return f"Request failed with status {error.status_code}"
    if failure in _MESSAGES:
        return _MESSAGES[failure]
    return str(error) or GENERIC_SYNC_ERROR
