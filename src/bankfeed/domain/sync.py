"""Manual sync: page through upstream transactions and ingest them."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from bankfeed.database.base import Database
from bankfeed.domain.entities import LinkedAccount, SyncStatus
from bankfeed.domain.errors import ConflictError, NotFoundError, ValidationError, account_not_found, sync_in_progress
from bankfeed.domain.pipeline import IngestionPipeline, ProcessingError
from bankfeed.domain.progress import ProgressCallback, ProgressStatus, ProgressTracker, ProgressUpdate
from bankfeed.logging_setup import get_logger
from bankfeed.upstream.errors import upstream_error_message
from bankfeed.upstream.fetcher import TransactionFetcher
from bankfeed.upstream.tokens import TokenRefresher, is_token_expired
from bankfeed.utils.crypto import CredentialCipher
from bankfeed.utils.date_parser import format_timestamp, utcnow

logger = get_logger(__name__)

SYNC_TYPE_MANUAL = "manual"
DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_PAGES = 50


@dataclass
class SyncResult:
    """Outcome of one account sync."""

    sync_log_id: str
    status: SyncStatus
    transactions_fetched: int = 0
    processed: int = 0
    duplicates_skipped: int = 0
    matched: int = 0
    pending: int = 0
    errors: list[ProcessingError] = field(default_factory=list)
    error_message: Optional[str] = None
    last_sync_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status is SyncStatus.SUCCESS


class SyncService:
    """Service for syncing a linked account from upstream."""

    def __init__(
        self,
        db: Database,
        fetcher: TransactionFetcher,
        cipher: CredentialCipher,
        token_refresher: TokenRefresher,
        progress: Optional[ProgressTracker] = None,
        pipeline: Optional[IngestionPipeline] = None,
    ):
        self.db = db
        self.fetcher = fetcher
        self.cipher = cipher
        self.token_refresher = token_refresher
        self.progress = progress or ProgressTracker()
        self.pipeline = pipeline or IngestionPipeline(db)

    def sync_account(
        self,
        account_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SyncResult:
        """Fetch and ingest new transactions for an account.

        Transactions are fetched from the last successful sync (or the
        account's sync-from date) onwards. Upstream failures do not raise;
        they mark the account and the sync log failed and come back in the
        result.

        Args:
            account_id: Linked account ID
            page_size: Transactions requested per upstream call
            max_pages: Upper bound on upstream calls in one sync
            on_progress: Optional callback subscribed for this sync only

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If syncing is disabled for the account
            ConflictError: If a sync is already running for the account
        """
        account = self.db.get_linked_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        if not account.sync_enabled:
            raise ValidationError(f"Sync is disabled for account {account_id}")
        if not self.db.try_begin_account_sync(account_id):
            raise ConflictError(sync_in_progress(account_id))

        try:
            sync_log_id = self.db.create_sync_log(account_id, SYNC_TYPE_MANUAL)
        except Exception:
            self._release_lock(account_id)
            raise

        result = SyncResult(sync_log_id=sync_log_id, status=SyncStatus.IN_PROGRESS)
        if on_progress is not None:
            self.progress.subscribe(sync_log_id, on_progress)
        try:
            return self._run(account, result, page_size, max_pages)
        except Exception:
            self._release_lock(account_id)
            raise
        finally:
            if on_progress is not None:
                self.progress.unsubscribe(sync_log_id, on_progress)

    def _run(self, account: LinkedAccount, result: SyncResult, page_size: int, max_pages: int) -> SyncResult:
        account_id = account.id
        started_at = utcnow()
        try:
            self._publish(result, ProgressStatus.FETCHING, message="Fetching transactions")
            if is_token_expired(account.token_expires_at, now=started_at):
                access_token = self.token_refresher.refresh(account_id)
            else:
                access_token = self.cipher.decrypt(account.access_token)

            since: str = format_timestamp(account.last_sync_at or account.sync_from_date)
            for page_number in range(1, max_pages + 1):
                page, access_token = self.fetcher.fetch_transactions(
                    account_id, account.upstream_account_id, access_token, since, limit=page_size
                )
                if not page:
                    break

                result.transactions_fetched += len(page)
                batch = self.pipeline.process(page, account_id)
                result.processed += batch.processed
                result.duplicates_skipped += batch.duplicates_skipped
                result.matched += batch.matched
                result.pending += batch.pending
                result.errors.extend(batch.errors)
                self._publish(result, ProgressStatus.PROCESSING, current_batch=page_number)

                if len(page) < page_size:
                    break
                # Upstream pages forward from a transaction id
                since = page[-1].get("id") or since
            else:
                logger.warning("Sync for account %s stopped after %d pages", account_id, max_pages)
        except Exception as e:
            message = upstream_error_message(e)
            logger.error("Sync failed for account %s: %s", account_id, message)
            result.status = SyncStatus.FAILED
            result.error_message = message
            self._finish(account_id, result)
            self._publish(result, ProgressStatus.FAILED, error=message)
            return result

        result.status = SyncStatus.SUCCESS
        result.last_sync_at = started_at
        self._finish(account_id, result)
        self._publish(result, ProgressStatus.COMPLETED, message="Sync completed")
        logger.info(
            "Synced account %s: %d fetched, %d processed, %d duplicates, %d errors",
            account_id,
            result.transactions_fetched,
            result.processed,
            result.duplicates_skipped,
            len(result.errors),
        )
        return result

    def _finish(self, account_id: str, result: SyncResult) -> None:
        self.db.complete_sync_log(
            result.sync_log_id,
            result.status,
            transactions_fetched=result.transactions_fetched,
            transactions_skipped=result.duplicates_skipped,
            transactions_matched=result.matched,
            transactions_pending=result.pending,
            error_message=result.error_message,
        )
        self.db.update_account_sync_status(account_id, result.status, last_sync_at=result.last_sync_at)

    def _release_lock(self, account_id: str) -> None:
        """Mark a sync that died before finishing as failed."""
        try:
            account = self.db.get_linked_account(account_id)
            if account is not None and account.last_sync_status is SyncStatus.IN_PROGRESS:
                self.db.update_account_sync_status(account_id, SyncStatus.FAILED)
        except Exception:
            logger.exception("Could not release sync lock for account %s", account_id)

    @staticmethod
    def _update(result: SyncResult, status: ProgressStatus, **extra) -> ProgressUpdate:
        return ProgressUpdate(
            job_id=result.sync_log_id,
            status=status,
            transactions_fetched=result.transactions_fetched,
            transactions_processed=result.processed,
            duplicates_skipped=result.duplicates_skipped,
            **extra,
        )

    def _publish(self, result: SyncResult, status: ProgressStatus, **extra) -> None:
        self.progress.publish(self._update(result, status, **extra))
