"""Fetch transactions from upstream with retry and one-shot token refresh."""

import dataclasses
import time
from datetime import datetime
from typing import Any, Callable, Optional

from bankfeed.logging_setup import get_logger
from bankfeed.upstream.client import UpstreamClient
from bankfeed.upstream.errors import UpstreamHTTPError
from bankfeed.upstream.retry import RetryOptions, retry_with_backoff
from bankfeed.upstream.tokens import TokenRefresher

logger = get_logger(__name__)


class TransactionFetcher:
    """Fetches transaction pages for a linked account."""

    def __init__(
        self,
        client: UpstreamClient,
        token_refresher: TokenRefresher,
        retry_options: Optional[RetryOptions] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        self.client = client
        self.token_refresher = token_refresher
        self.retry_options = retry_options or RetryOptions()
        self.sleep = sleep

    def _options_with_logging(self) -> RetryOptions:
        caller_on_retry = self.retry_options.on_retry

        def on_retry(error: BaseException, attempt: int, delay: int) -> None:
            logger.warning("Upstream request failed (%s); retry %d in %d ms", error, attempt, delay)
            if caller_on_retry is not None:
                caller_on_retry(error, attempt, delay)

        return dataclasses.replace(self.retry_options, on_retry=on_retry)

    def fetch_transactions(
        self,
        account_id: str,
        upstream_account_id: str,
        access_token: str,
        since: str | datetime,
        before: Optional[str | datetime] = None,
        limit: int = 100,
    ) -> tuple[list[dict[str, Any]], str]:
        """Fetch one page of transactions.

        A 401 triggers a single token refresh followed by an immediate
        re-request; that re-request does not count as a retry attempt. Any
        other transient failure goes through the backoff retrier.

        Returns:
            (transactions, access_token) where access_token is the token that
            succeeded, so callers can reuse a refreshed one
        """
        token = access_token
        refreshed = False

        def request() -> list[dict[str, Any]]:
            nonlocal token, refreshed
            try:
                return self.client.get_transactions(token, upstream_account_id, since, before, limit)
            except UpstreamHTTPError as e:
                if e.status_code != 401 or refreshed:
                    raise
                refreshed = True
                logger.info("Access token rejected for account %s; refreshing", account_id)
                token = self.token_refresher.refresh(account_id)
                return self.client.get_transactions(token, upstream_account_id, since, before, limit)

        transactions = retry_with_backoff(request, self._options_with_logging(), sleep=self.sleep)
        return transactions, token
