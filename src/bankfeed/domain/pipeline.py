"""Ingestion pipeline: upstream transactions in, raw transactions plus ledger or pending entries out."""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from bankfeed.database.base import Database
from bankfeed.domain.categories import is_valid_type_category
from bankfeed.domain.duplicates import DuplicateDetector
from bankfeed.domain.entities import IncomingTransaction, MatchingRule, NewLedgerEntry, NewPendingEntry
from bankfeed.domain.errors import ConflictError, ValidationError
from bankfeed.domain.rule_engine import RuleEvaluationResult, evaluate_rules
from bankfeed.logging_setup import get_logger
from bankfeed.utils.amount_parser import minor_units_to_decimal
from bankfeed.utils.date_parser import parse_timestamp

logger = get_logger(__name__)

UNKNOWN_TRANSACTION_ID = "unknown"


@dataclass(frozen=True)
class ProcessingError:
    """A transaction that could not be ingested."""

    transaction_id: str
    error: str


@dataclass
class ProcessResult:
    """Aggregate outcome of one pipeline run.

    Every input ends up counted in exactly one of ``processed``,
    ``duplicates_skipped`` or ``errors``. ``matched`` and ``pending`` split
    ``processed`` by outcome.
    """

    processed: int = 0
    duplicates_skipped: int = 0
    errors: list[ProcessingError] = field(default_factory=list)
    matched: int = 0
    pending: int = 0

    @property
    def total(self) -> int:
        return self.processed + self.duplicates_skipped + len(self.errors)


def _name_of(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("name") or None
    return None


def parse_upstream_transaction(payload: dict[str, Any]) -> IncomingTransaction:
    """Normalise an upstream transaction object.

    Amounts arrive as signed integers in minor units; ``notes`` becomes the
    reference; ``merchant`` and ``counterparty`` contribute their names.

    Raises:
        ValidationError: If id, created or amount is missing or malformed
    """
    if not isinstance(payload, dict):
        raise ValidationError("Transaction payload must be an object")

    external_id = payload.get("id")
    if not external_id:
        raise ValidationError("Transaction is missing an id")
    if payload.get("created") in (None, ""):
        raise ValidationError("Transaction is missing a created timestamp")
    if payload.get("amount") is None:
        raise ValidationError("Transaction is missing an amount")

    currency = payload.get("currency") or "GBP"
    try:
        transaction_date = parse_timestamp(payload["created"])
        amount = minor_units_to_decimal(payload["amount"], currency)
        settled = payload.get("settled")
        settled_date = parse_timestamp(settled) if settled else None
    except ValueError as e:
        raise ValidationError(str(e)) from e

    return IncomingTransaction(
        external_id=str(external_id),
        amount=amount,
        currency=currency,
        description=payload.get("description") or "",
        transaction_date=transaction_date,
        counterparty_name=_name_of(payload.get("counterparty")),
        reference=payload.get("notes") or None,
        merchant=_name_of(payload.get("merchant")),
        category=payload.get("category") or None,
        settled_date=settled_date,
    )


class IngestionPipeline:
    """Processes batches of upstream transactions for one account."""

    def __init__(self, db: Database, duplicate_detector: Optional[DuplicateDetector] = None):
        """Initialize ingestion pipeline.

        Args:
            db: Database instance
            duplicate_detector: Detector to use; defaults to one over ``db``
        """
        self.db = db
        self.duplicate_detector = duplicate_detector or DuplicateDetector(db)

    def process(
        self, upstream_transactions: Iterable[dict[str, Any] | IncomingTransaction], account_id: str
    ) -> ProcessResult:
        """Ingest a batch of upstream transactions.

        Matching rules are read once for the whole batch. A failure on one
        transaction is recorded and does not stop the others.

        Args:
            upstream_transactions: Upstream payloads or already-normalised transactions
            account_id: Linked account the transactions belong to

        Returns:
            ProcessResult with counts and per-transaction errors
        """
        result = ProcessResult()
        rules = self.db.list_matching_rules(account_id)
        known_properties: dict[str, bool] = {}

        for item in upstream_transactions:
            transaction_id = self._transaction_id(item)
            try:
                transaction = item if isinstance(item, IncomingTransaction) else parse_upstream_transaction(item)
                outcome = self._ingest(transaction, account_id, rules, known_properties)
            except Exception as e:
                logger.warning("Failed to ingest transaction %s: %s", transaction_id, e)
                result.errors.append(ProcessingError(transaction_id, str(e) or type(e).__name__))
                continue

            if outcome == "duplicate":
                result.duplicates_skipped += 1
            else:
                result.processed += 1
                if outcome == "matched":
                    result.matched += 1
                else:
                    result.pending += 1

        logger.info(
            "Processed %d transactions for account %s (%d matched, %d pending, %d duplicates, %d errors)",
            result.processed,
            account_id,
            result.matched,
            result.pending,
            result.duplicates_skipped,
            len(result.errors),
        )
        return result

    @staticmethod
    def _transaction_id(item: Any) -> str:
        if isinstance(item, IncomingTransaction):
            return item.external_id
        if isinstance(item, dict) and item.get("id"):
            return str(item["id"])
        return UNKNOWN_TRANSACTION_ID

    def _property_exists(self, property_id: str, cache: dict[str, bool]) -> bool:
        if property_id not in cache:
            cache[property_id] = self.db.get_property(property_id) is not None
        return cache[property_id]

    def _is_complete(self, evaluation: RuleEvaluationResult, known_properties: dict[str, bool]) -> bool:
        return (
            evaluation.is_fully_matched
            and self._property_exists(evaluation.property_id, known_properties)
            and is_valid_type_category(evaluation.type, evaluation.category)
        )

    def _ingest(
        self,
        transaction: IncomingTransaction,
        account_id: str,
        rules: list[MatchingRule],
        known_properties: dict[str, bool],
    ) -> str:
        """Ingest one transaction. Returns 'duplicate', 'matched' or 'pending'."""
        check = self.duplicate_detector.check(
            account_id,
            transaction.external_id,
            transaction.amount,
            transaction.description,
            transaction.transaction_date,
        )
        if check.is_duplicate:
            logger.debug("Skipping %s: %s duplicate", transaction.external_id, check.match_type.value)
            return "duplicate"

        evaluation = evaluate_rules(transaction, rules, account_id)
        try:
            if self._is_complete(evaluation, known_properties):
                self.db.create_ingested_transaction(
                    account_id,
                    transaction,
                    ledger_entry=NewLedgerEntry(evaluation.property_id, evaluation.type, evaluation.category),
                )
                return "matched"

            self.db.create_ingested_transaction(
                account_id,
                transaction,
                pending_entry=NewPendingEntry(evaluation.property_id, evaluation.type, evaluation.category),
            )
            return "pending"
        except ConflictError:
            # Another writer stored the same external id between check and insert
            logger.info("Transaction %s was ingested concurrently; skipping", transaction.external_id)
            return "duplicate"
