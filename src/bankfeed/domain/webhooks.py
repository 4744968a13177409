"""Inbound transaction.created webhook handling.

Authenticity of the delivery is checked by whoever receives the HTTP request;
this module only validates the payload shape.
"""

from dataclasses import dataclass
from typing import Any, Optional

from bankfeed.database.base import Database
from bankfeed.domain.entities import LinkedAccount, SyncStatus
from bankfeed.domain.errors import ValidationError
from bankfeed.domain.pipeline import IngestionPipeline, ProcessResult
from bankfeed.logging_setup import get_logger

logger = get_logger(__name__)

TRANSACTION_CREATED = "transaction.created"
SYNC_TYPE_WEBHOOK = "webhook"


@dataclass(frozen=True)
class WebhookResult:
    """Acknowledgement for one webhook delivery."""

    accepted: bool
    message: str
    account_id: Optional[str] = None
    sync_log_id: Optional[str] = None
    process_result: Optional[ProcessResult] = None


class WebhookHandler:
    """Feeds webhook transactions into the ingestion pipeline."""

    def __init__(self, db: Database, pipeline: Optional[IngestionPipeline] = None):
        self.db = db
        self.pipeline = pipeline or IngestionPipeline(db)

    def handle(self, payload: Any) -> WebhookResult:
        """Process one webhook delivery.

        Deliveries for upstream accounts that are not linked are acknowledged
        without doing anything.

        Raises:
            ValidationError: If the payload is not a transaction.created event
                with an account id, transaction id and amount
        """
        if not isinstance(payload, dict) or payload.get("type") != TRANSACTION_CREATED:
            raise ValidationError("Invalid webhook payload")
        transaction = payload.get("data")
        if not isinstance(transaction, dict) or not transaction:
            raise ValidationError("Invalid webhook payload")
        if not transaction.get("account_id") or not transaction.get("id") or transaction.get("amount") is None:
            raise ValidationError("Missing required transaction fields")

        account = self.db.get_linked_account_by_upstream_id(transaction["account_id"])
        if account is None:
            logger.warning("Webhook received for unknown account %s", transaction["account_id"])
            return WebhookResult(accepted=True, message="Webhook received but account not found")

        sync_log_id = self.db.create_sync_log(
            account.id, SYNC_TYPE_WEBHOOK, webhook_event_id=str(transaction["id"])
        )
        result = self.pipeline.process([transaction], account.id)

        if result.errors:
            error_message = result.errors[0].error
            self.db.complete_sync_log(
                sync_log_id,
                SyncStatus.FAILED,
                transactions_fetched=1,
                error_message=error_message,
            )
            self._record_account_status(account, SyncStatus.FAILED)
            logger.error("Webhook transaction %s failed: %s", transaction["id"], error_message)
            return WebhookResult(
                accepted=False,
                message=error_message,
                account_id=account.id,
                sync_log_id=sync_log_id,
                process_result=result,
            )

        self.db.complete_sync_log(
            sync_log_id,
            SyncStatus.SUCCESS,
            transactions_fetched=1,
            transactions_skipped=result.duplicates_skipped,
            transactions_matched=result.matched,
            transactions_pending=result.pending,
        )
        self._record_account_status(account, SyncStatus.SUCCESS)
        logger.info("Webhook processed for transaction %s", transaction["id"])
        return WebhookResult(
            accepted=True,
            message="Webhook processed successfully",
            account_id=account.id,
            sync_log_id=sync_log_id,
            process_result=result,
        )

    def _record_account_status(self, account: LinkedAccount, status: SyncStatus) -> None:
        # A running manual sync owns the account status until it finishes.
        # last_sync_at is left alone: it is the lower bound for the next manual sync.
        if account.last_sync_status is SyncStatus.IN_PROGRESS:
            return
        self.db.update_account_sync_status(account.id, status)
