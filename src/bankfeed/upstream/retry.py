"""Exponential backoff for transient upstream failures.

Delays are expressed in milliseconds. The retrier holds no state between
calls, so one ``RetryOptions`` instance can be shared across threads.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Optional, TypeVar

import httpx

from bankfeed.logging_setup import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
DEFAULT_RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
)


@dataclass(frozen=True)
class RetryOptions:
    """Retry policy.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay before the first retry, in ms
        max_delay: Upper bound for any delay, in ms
        retryable_statuses: HTTP statuses worth retrying
        retryable_exceptions: Exception types treated as transient network failures
        on_retry: Called as ``on_retry(error, attempt_number, delay_ms)`` before each retry
    """

    max_attempts: int = 3
    base_delay: int = 1000
    max_delay: int = 30000
    retryable_statuses: frozenset[int] = DEFAULT_RETRYABLE_STATUSES
    retryable_exceptions: tuple[type[BaseException], ...] = field(default=DEFAULT_RETRYABLE_EXCEPTIONS)
    on_retry: Optional[Callable[[BaseException, int, int], None]] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Delays cannot be negative")


def is_retryable(error: BaseException, options: RetryOptions) -> bool:
    """Whether ``error`` is a transient failure under ``options``."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status in options.retryable_statuses
    return isinstance(error, options.retryable_exceptions)


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    """Parse a Retry-After header into a non-negative delay in ms.

    Accepts delta-seconds or an HTTP-date. Returns None when the value is
    missing or unparseable.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        seconds = int(value)
    except ValueError:
        pass
    else:
        return max(0, seconds * 1000)

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0, int((when - now).total_seconds() * 1000))


def compute_backoff_delay(attempt: int, options: RetryOptions, error: Optional[BaseException] = None) -> int:
    """Delay in ms before retrying after the 0-indexed ``attempt`` failed.

    A 429 carrying a usable Retry-After header overrides the exponential
    delay. Either way the result never exceeds ``max_delay``.
    """
    delay = min(options.base_delay * (2**attempt), options.max_delay)
    if error is not None and getattr(error, "status_code", None) == 429:
        headers = getattr(error, "headers", None) or {}
        retry_after = parse_retry_after(headers.get("retry-after"))
        if retry_after is not None:
            delay = min(retry_after, options.max_delay)
    return delay


def retry_with_backoff(
    operation: Callable[[], T],
    options: Optional[RetryOptions] = None,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """Run ``operation`` until it succeeds, fails permanently, or attempts run out.

    Args:
        operation: Zero-argument callable
        options: Retry policy; defaults to ``RetryOptions()``
        sleep: Called with the delay in seconds; injectable for tests

    Returns:
        Whatever ``operation`` returns

    Raises:
        The last error raised by ``operation``, unchanged
    """
    options = options or RetryOptions()
    for attempt in range(options.max_attempts):
        try:
            return operation()
        except Exception as error:
            if not is_retryable(error, options) or attempt + 1 >= options.max_attempts:
                raise
            delay = compute_backoff_delay(attempt, options, error)
            logger.debug("Attempt %d failed (%s); retrying in %d ms", attempt + 1, error, delay)
            if options.on_retry is not None:
                options.on_retry(error, attempt + 1, delay)
            sleep(delay / 1000)
    # Unreachable: the final attempt either returns or raises
    raise RuntimeError("retry loop exited without a result")
