"""Upstream bank API access: HTTP client, retry, token refresh and fetching."""

from bankfeed.upstream.client import TokenResponse, UpstreamClient
from bankfeed.upstream.errors import (
    UpstreamError,
    UpstreamFailure,
    UpstreamHTTPError,
    classify_upstream_error,
    upstream_error_message,
)
from bankfeed.upstream.fetcher import TransactionFetcher
from bankfeed.upstream.retry import RetryOptions, compute_backoff_delay, parse_retry_after, retry_with_backoff
from bankfeed.upstream.tokens import TokenRefresher, is_token_expired

__all__ = [
    "TokenResponse",
    "UpstreamClient",
    "UpstreamError",
    "UpstreamFailure",
    "UpstreamHTTPError",
    "classify_upstream_error",
    "upstream_error_message",
    "TransactionFetcher",
    "RetryOptions",
    "compute_backoff_delay",
    "parse_retry_after",
    "retry_with_backoff",
    "TokenRefresher",
    "is_token_expired",
]
