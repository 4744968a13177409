"""Re-run matching rules over pending entries after rules change."""

from dataclasses import dataclass
from typing import Optional

from bankfeed.database.base import Database
from bankfeed.domain.categories import is_valid_type_category
from bankfeed.domain.entities import MatchingRule
from bankfeed.domain.errors import NotFoundError
from bankfeed.domain.rule_engine import evaluate_rules
from bankfeed.logging_setup import get_logger

logger = get_logger(__name__)


@dataclass
class ReprocessingResult:
    """Counts from one reprocessing run.

    ``processed`` counts entries evaluated; ``approved`` those promoted to
    ledger entries; ``failed`` those that raised.
    """

    processed: int = 0
    approved: int = 0
    failed: int = 0


class RuleReprocessor:
    """Service for re-evaluating pending entries."""

    def __init__(self, db: Database):
        self.db = db

    def reprocess_pending(self, account_id: Optional[str] = None) -> ReprocessingResult:
        """Re-evaluate pending entries against the current rules.

        Entries that are now fully matched with an existing property and a
        valid type/category pair are promoted to ledger entries. The rest
        are updated with whatever the rules now infer.

        Args:
            account_id: Only reprocess this account's entries; None for all
        """
        result = ReprocessingResult()
        rules_by_account: dict[str, list[MatchingRule]] = {}

        for pending in self.db.list_pending_entries(account_id):
            try:
                raw = self.db.get_raw_transaction(pending.raw_transaction_id)
                if raw is None:
                    raise NotFoundError(f"Raw transaction {pending.raw_transaction_id} not found")

                if raw.account_id not in rules_by_account:
                    rules_by_account[raw.account_id] = self.db.list_matching_rules(raw.account_id)
                evaluation = evaluate_rules(raw, rules_by_account[raw.account_id], raw.account_id)
                result.processed += 1

                if (
                    evaluation.is_fully_matched
                    and self.db.get_property(evaluation.property_id) is not None
                    and is_valid_type_category(evaluation.type, evaluation.category)
                ):
                    self.db.promote_pending_entry(
                        pending.id, evaluation.property_id, evaluation.type, evaluation.category
                    )
                    result.approved += 1
                else:
                    self.db.update_pending_entry(
                        pending.id, evaluation.property_id, evaluation.type, evaluation.category
                    )
            except Exception as e:
                result.failed += 1
                logger.error("Error reprocessing pending entry %s: %s", pending.id, e)

        logger.info(
            "Reprocessed %d pending entries: %d approved, %d failed",
            result.processed,
            result.approved,
            result.failed,
        )
        return result
