"""Tests for fetching transactions and classifying upstream failures."""

import httpx
import pytest

from bankfeed.upstream.errors import (
    GENERIC_SYNC_ERROR,
    UpstreamFailure,
    UpstreamHTTPError,
    classify_upstream_error,
    upstream_error_message,
)
from bankfeed.upstream.fetcher import TransactionFetcher
from bankfeed.upstream.retry import RetryOptions
from bankfeed.upstream.tokens import TokenRefresher


@pytest.fixture
def fetcher(temp_db, upstream_client, cipher, no_sleep):
    refresher = TokenRefresher(temp_db, upstream_client, cipher, "cid", "secret")
    return TransactionFetcher(upstream_client, refresher, sleep=no_sleep)


def _fetch(fetcher, account):
    return fetcher.fetch_transactions(
        account.id, account.upstream_account_id, "access-1", since="2024-01-01T00:00:00Z"
    )


class TestTransactionFetcher:
    def test_returns_page_and_token(self, fetcher, linked_account, fake_upstream, make_transaction):
        fake_upstream.queue("GET", "/transactions", json={"transactions": [make_transaction()]})

        transactions, token = _fetch(fetcher, linked_account)

        assert [t["id"] for t in transactions] == ["tx_0001"]
        assert token == "access-1"

    def test_401_refreshes_once_and_retries(self, fetcher, linked_account, fake_upstream, no_sleep):
        fake_upstream.queue("GET", "/transactions", status=401, json={"code": "unauthorized"})
        fake_upstream.queue("GET", "/transactions", json={"transactions": []})
        fake_upstream.queue("POST", "/oauth2/token", json={"access_token": "access-2", "expires_in": 3600})

        transactions, token = _fetch(fetcher, linked_account)

        assert transactions == []
        assert token == "access-2"
        calls = fake_upstream.calls("GET", "/transactions")
        assert [c.headers["authorization"] for c in calls] == ["Bearer access-1", "Bearer access-2"]
        assert len(fake_upstream.calls("POST", "/oauth2/token")) == 1
        assert no_sleep.delays == []

    def test_second_401_is_raised(self, fetcher, linked_account, fake_upstream):
        fake_upstream.queue("GET", "/transactions", status=401, json={})
        fake_upstream.queue("POST", "/oauth2/token", json={"access_token": "access-2"})

        with pytest.raises(UpstreamHTTPError) as exc_info:
            _fetch(fetcher, linked_account)

        assert exc_info.value.status_code == 401
        assert len(fake_upstream.calls("POST", "/oauth2/token")) == 1
        assert len(fake_upstream.calls("GET", "/transactions")) == 2

    def test_transient_status_is_retried(self, fetcher, linked_account, fake_upstream, no_sleep):
        fake_upstream.queue("GET", "/transactions", status=503, json={})
        fake_upstream.queue("GET", "/transactions", json={"transactions": [{"id": "tx_1"}]})

        transactions, _ = _fetch(fetcher, linked_account)

        assert transactions == [{"id": "tx_1"}]
        assert no_sleep.delays == [1.0]

    def test_retries_exhausted(self, fetcher, linked_account, fake_upstream, no_sleep):
        fake_upstream.queue("GET", "/transactions", status=500, json={})

        with pytest.raises(UpstreamHTTPError):
            _fetch(fetcher, linked_account)

        assert len(fake_upstream.calls("GET", "/transactions")) == 3
        assert no_sleep.delays == [1.0, 2.0]

    def test_network_error_is_retried(self, fetcher, linked_account, fake_upstream):
        fake_upstream.queue_error("GET", "/transactions", httpx.ConnectError)
        fake_upstream.queue("GET", "/transactions", json={"transactions": []})

        transactions, _ = _fetch(fetcher, linked_account)

        assert transactions == []

    def test_caller_on_retry_still_called(self, temp_db, upstream_client, cipher, linked_account, fake_upstream, no_sleep):
        seen = []
        refresher = TokenRefresher(temp_db, upstream_client, cipher, "cid", "secret")
        fetcher = TransactionFetcher(
            upstream_client,
            refresher,
            retry_options=RetryOptions(on_retry=lambda error, attempt, delay: seen.append((attempt, delay))),
            sleep=no_sleep,
        )
        fake_upstream.queue("GET", "/transactions", status=502, json={})
        fake_upstream.queue("GET", "/transactions", json={"transactions": []})

        _fetch(fetcher, linked_account)

        assert seen == [(1, 1000)]


class TestErrorClassification:
    @pytest.mark.parametrize(
        "status,failure",
        [
            (401, UpstreamFailure.AUTH_EXPIRED),
            (403, UpstreamFailure.ACCESS_DENIED),
            (404, UpstreamFailure.NOT_FOUND),
            (429, UpstreamFailure.RATE_LIMITED),
            (500, UpstreamFailure.UNAVAILABLE),
            (503, UpstreamFailure.UNAVAILABLE),
            (400, UpstreamFailure.HTTP_STATUS),
        ],
    )
    def test_status_classification(self, status, failure):
        assert classify_upstream_error(UpstreamHTTPError(status)) is failure

    @pytest.mark.parametrize(
        "error,failure",
        [
            (httpx.ConnectTimeout("slow"), UpstreamFailure.TIMED_OUT),
            (httpx.ReadTimeout("slow"), UpstreamFailure.TIMED_OUT),
            (TimeoutError(), UpstreamFailure.TIMED_OUT),
            (httpx.ConnectError("refused"), UpstreamFailure.CONNECTION_REFUSED),
            (ConnectionRefusedError(), UpstreamFailure.CONNECTION_REFUSED),
            (httpx.ReadError("reset"), UpstreamFailure.CONNECTION_RESET),
            (ConnectionResetError(), UpstreamFailure.CONNECTION_RESET),
            (RuntimeError("boom"), UpstreamFailure.UNKNOWN),
        ],
    )
    def test_transport_classification(self, error, failure):
        assert classify_upstream_error(error) is failure

    def test_messages(self):
        assert upstream_error_message(UpstreamHTTPError(401)) == (
            "Access token has expired. Please reconnect your bank account."
        )
        assert upstream_error_message(UpstreamHTTPError(429)) == "Rate limit exceeded. Please try again later."
        assert upstream_error_message(UpstreamHTTPError(502)) == (
            "Monzo service is temporarily unavailable. Please try again later."
        )
        assert upstream_error_message(UpstreamHTTPError(418)) == "Request failed with status 418"
        assert upstream_error_message(httpx.ConnectError("x")) == (
            "Could not connect to Monzo. Please check your internet connection."
        )
        assert upstream_error_message(httpx.ReadTimeout("x")) == "Request timed out. Please try again."
        assert upstream_error_message(ConnectionResetError()) == "Connection was reset. Please try again."

    def test_unknown_error_keeps_its_message(self):
        assert upstream_error_message(RuntimeError("disk full")) == "disk full"
        assert upstream_error_message(RuntimeError()) == GENERIC_SYNC_ERROR
