"""Shared pytest fixtures for bankfeed tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
import pytest

from bankfeed.database.factories import create_sqlite_database
from bankfeed.upstream.client import UpstreamClient
from bankfeed.utils.crypto import CredentialCipher

TEST_KEY_HEX = "0123456789abcdef" * 4


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def cipher():
    """Credential cipher with a fixed test key."""
    return CredentialCipher.from_hex(TEST_KEY_HEX)


@pytest.fixture
def linked_account(temp_db, cipher):
    """Linked account with encrypted tokens valid for another hour."""
    account_id = temp_db.create_linked_account(
        upstream_account_id="acc_upstream_1",
        account_name="Joint Account",
        account_type="uk_retail_joint",
        access_token=cipher.encrypt("access-1"),
        refresh_token=cipher.encrypt("refresh-1"),
        token_expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        sync_from_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    return temp_db.get_linked_account(account_id)


@pytest.fixture
def sample_property(temp_db):
    """Create a sample property."""
    property_id = temp_db.create_property("12 Acacia Avenue")
    return temp_db.get_property(property_id)


@pytest.fixture
def make_transaction():
    """Factory for upstream transaction payloads (amounts in minor units)."""

    def _make(
        id: str = "tx_0001",
        amount: int = -1250,
        description: str = "TESCO STORES 123",
        created: str = "2024-03-01T10:00:00.000Z",
        account_id: str = "acc_upstream_1",
        **extra: Any,
    ) -> dict[str, Any]:
        payload = {
            "id": id,
            "account_id": account_id,
            "created": created,
            "description": description,
            "amount": amount,
            "currency": "GBP",
            "notes": "",
            "merchant": None,
            "counterparty": {},
            "category": "groceries",
            "settled": "",
        }
        payload.update(extra)
        return payload

    return _make


class FakeUpstream:
    """Scripted upstream API for ``httpx.MockTransport``.

    Responses are queued per (method, path). Each request takes the next
    queued response; the last one repeats once the queue is down to it.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._queues: dict[tuple[str, str], list[Any]] = {}

    def queue(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> "FakeUpstream":
        self._queues.setdefault((method, path), []).append((status, json, headers))
        return self

    def queue_error(self, method: str, path: str, error_cls: type[Exception]) -> "FakeUpstream":
        self._queues.setdefault((method, path), []).append(error_cls)
        return self

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._queues.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"code": "not_found"})
        scripted = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(scripted, type) and issubclass(scripted, Exception):
            raise scripted("simulated failure", request=request)
        status, body, headers = scripted
        return httpx.Response(status, json=body if body is not None else {}, headers=headers)


@pytest.fixture
def fake_upstream():
    """Scripted upstream API."""
    return FakeUpstream()


@pytest.fixture
def http_client(fake_upstream):
    """httpx client routed to the fake upstream."""
    client = httpx.Client(transport=httpx.MockTransport(fake_upstream))
    yield client
    client.close()


@pytest.fixture
def upstream_client(http_client):
    """Upstream API client backed by the fake upstream."""
    return UpstreamClient(base_url="https://api.example.test", http_client=http_client)


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays in seconds."""
    delays: list[float] = []

    def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
