"""Tests for the manual sync service."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from bankfeed.domain.entities import SyncStatus
from bankfeed.domain.errors import ConflictError, NotFoundError, ValidationError
from bankfeed.domain.progress import ProgressStatus, ProgressTracker
from bankfeed.domain.sync import SyncService
from bankfeed.upstream.fetcher import TransactionFetcher
from bankfeed.upstream.tokens import TokenRefresher


@pytest.fixture
def progress():
    return ProgressTracker()


@pytest.fixture
def sync_service(temp_db, upstream_client, cipher, no_sleep, progress):
    refresher = TokenRefresher(temp_db, upstream_client, cipher, "cid", "secret")
    fetcher = TransactionFetcher(upstream_client, refresher, sleep=no_sleep)
    return SyncService(temp_db, fetcher, cipher, refresher, progress=progress)


def page(make_transaction, *ids):
    return {"transactions": [make_transaction(id=i, description=f"PAYMENT {i}", amount=-100 * n) for n, i in enumerate(ids, 1)]}


class TestSyncAccount:
    def test_successful_sync(self, sync_service, temp_db, linked_account, fake_upstream, make_transaction):
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_1", "tx_2"))

        result = sync_service.sync_account(linked_account.id)

        assert result.succeeded
        assert result.transactions_fetched == 2
        assert result.processed == 2
        assert result.pending == 2

        request = fake_upstream.calls("GET", "/transactions")[0]
        assert request.url.params["since"] == "2024-01-01T00:00:00Z"
        assert request.url.params["account_id"] == "acc_upstream_1"
        assert request.headers["authorization"] == "Bearer access-1"

        account = temp_db.get_linked_account(linked_account.id)
        assert account.last_sync_status is SyncStatus.SUCCESS
        assert account.last_sync_at is not None

        log = temp_db.get_sync_log(result.sync_log_id)
        assert log.sync_type == "manual"
        assert log.status is SyncStatus.SUCCESS
        assert log.transactions_fetched == 2
        assert log.transactions_pending == 2
        assert log.completed_at is not None

    def test_next_sync_starts_from_last_sync(self, sync_service, temp_db, linked_account, fake_upstream, make_transaction):
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_1"))
        first = sync_service.sync_account(linked_account.id)

        sync_service.sync_account(linked_account.id)

        second_request = fake_upstream.calls("GET", "/transactions")[1]
        expected = first.last_sync_at.strftime("%Y-%m-%dT%H:%M:%SZ")
        assert second_request.url.params["since"] == expected

    def test_resync_skips_duplicates(self, sync_service, linked_account, fake_upstream, make_transaction):
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_1", "tx_2"))

        sync_service.sync_account(linked_account.id)
        result = sync_service.sync_account(linked_account.id)

        assert result.processed == 0
        assert result.duplicates_skipped == 2

    def test_pages_forward_by_transaction_id(self, sync_service, linked_account, fake_upstream, make_transaction):
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_1", "tx_2"))
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_3"))

        result = sync_service.sync_account(linked_account.id, page_size=2)

        calls = fake_upstream.calls("GET", "/transactions")
        assert len(calls) == 2
        assert calls[1].url.params["since"] == "tx_2"
        assert calls[0].url.params["limit"] == "2"
        assert result.transactions_fetched == 3

    def test_empty_page_stops(self, sync_service, linked_account, fake_upstream, make_transaction):
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_1"))
        fake_upstream.queue("GET", "/transactions", json={"transactions": []})

        result = sync_service.sync_account(linked_account.id, page_size=1)

        assert result.succeeded
        assert len(fake_upstream.calls("GET", "/transactions")) == 2

    def test_max_pages_bounds_the_sync(self, sync_service, linked_account, fake_upstream, make_transaction):
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_1"))

        result = sync_service.sync_account(linked_account.id, page_size=1, max_pages=3)

        assert result.succeeded
        assert len(fake_upstream.calls("GET", "/transactions")) == 3

    def test_upstream_failure_marks_failed(self, sync_service, temp_db, linked_account, fake_upstream):
        fake_upstream.queue("GET", "/transactions", status=403, json={"code": "forbidden"})

        result = sync_service.sync_account(linked_account.id)

        assert result.status is SyncStatus.FAILED
        assert result.error_message == "Access denied. Please reconnect your bank account."
        account = temp_db.get_linked_account(linked_account.id)
        assert account.last_sync_status is SyncStatus.FAILED
        assert account.last_sync_at is None
        log = temp_db.get_sync_log(result.sync_log_id)
        assert log.status is SyncStatus.FAILED
        assert log.error_message == result.error_message

    def test_failed_sync_can_be_retried(self, sync_service, linked_account, fake_upstream, make_transaction):
        fake_upstream.queue("GET", "/transactions", status=404, json={})
        fake_upstream.queue("GET", "/transactions", json={"transactions": []})

        assert not sync_service.sync_account(linked_account.id).succeeded
        assert sync_service.sync_account(linked_account.id).succeeded

    def test_expired_token_refreshed_first(self, sync_service, temp_db, cipher, fake_upstream):
        account_id = temp_db.create_linked_account(
            upstream_account_id="acc_expired",
            account_name="Expired",
            account_type="uk_retail",
            access_token=cipher.encrypt("stale"),
            refresh_token=cipher.encrypt("refresh-1"),
            token_expires_at=datetime.now(timezone.utc) - timedelta(minutes=5),
            sync_from_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        fake_upstream.queue("POST", "/oauth2/token", json={"access_token": "fresh", "expires_in": 3600})
        fake_upstream.queue("GET", "/transactions", json={"transactions": []})

        result = sync_service.sync_account(account_id)

        assert result.succeeded
        request = fake_upstream.calls("GET", "/transactions")[0]
        assert request.headers["authorization"] == "Bearer fresh"

    def test_unknown_account(self, sync_service):
        with pytest.raises(NotFoundError):
            sync_service.sync_account("missing")

    def test_disabled_account(self, sync_service, temp_db, linked_account, fake_upstream):
        temp_db.set_account_sync_enabled(linked_account.id, False)
        with pytest.raises(ValidationError):
            sync_service.sync_account(linked_account.id)
        assert fake_upstream.requests == []

    def test_sync_already_running(self, sync_service, temp_db, linked_account, fake_upstream):
        assert temp_db.try_begin_account_sync(linked_account.id) is True

        with pytest.raises(ConflictError):
            sync_service.sync_account(linked_account.id)
        assert fake_upstream.requests == []
        assert temp_db.list_sync_logs(linked_account.id) == []

    def test_sync_log_failure_releases_lock(self, sync_service, temp_db, linked_account, fake_upstream, make_transaction, monkeypatch):
        real_create_sync_log = temp_db.create_sync_log
        calls = []

        def flaky_create_sync_log(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise OperationalError("INSERT INTO sync_logs", {}, Exception("database is locked"))
            return real_create_sync_log(*args, **kwargs)

        monkeypatch.setattr(temp_db, "create_sync_log", flaky_create_sync_log)
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_1"))

        with pytest.raises(OperationalError):
            sync_service.sync_account(linked_account.id)
        assert temp_db.get_linked_account(linked_account.id).last_sync_status is SyncStatus.FAILED

        assert sync_service.sync_account(linked_account.id).succeeded

    def test_finish_failure_releases_lock(self, sync_service, temp_db, linked_account, fake_upstream, make_transaction, monkeypatch):
        def broken_complete_sync_log(*args, **kwargs):
            raise OperationalError("UPDATE sync_logs", {}, Exception("disk I/O error"))

        monkeypatch.setattr(temp_db, "complete_sync_log", broken_complete_sync_log)
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_1"))

        with pytest.raises(OperationalError):
            sync_service.sync_account(linked_account.id)

        account = temp_db.get_linked_account(linked_account.id)
        assert account.last_sync_status is SyncStatus.FAILED
        assert account.last_sync_at is None

    def test_progress_updates(self, sync_service, progress, linked_account, fake_upstream, make_transaction):
        fake_upstream.queue("GET", "/transactions", json=page(make_transaction, "tx_1"))
        updates = []

        result = sync_service.sync_account(linked_account.id, on_progress=updates.append)

        assert [u.status for u in updates] == [
            ProgressStatus.FETCHING,
            ProgressStatus.PROCESSING,
            ProgressStatus.COMPLETED,
        ]
        assert all(u.job_id == result.sync_log_id for u in updates)
        assert updates[1].current_batch == 1
        assert updates[-1].transactions_processed == 1
        assert progress.subscriber_count(result.sync_log_id) == 0

    def test_progress_reports_failure(self, sync_service, linked_account, fake_upstream):
        fake_upstream.queue("GET", "/transactions", status=401, json={})
        fake_upstream.queue("POST", "/oauth2/token", status=400, json={"error": "invalid_grant"})
        updates = []

        result = sync_service.sync_account(linked_account.id, on_progress=updates.append)

        assert updates[-1].status is ProgressStatus.FAILED
        assert updates[-1].error == result.error_message
