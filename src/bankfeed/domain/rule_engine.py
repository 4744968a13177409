"""Rule evaluation for classifying raw transactions.

Rules are evaluated account-scoped first, then global, each tier in ascending
priority. Each matching rule fills in whichever of property, type and category
are still unset; a field set by an earlier rule is never overwritten.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from bankfeed.domain.conditions import evaluate_condition
from bankfeed.domain.entities import EntryType, MatchingRule
from bankfeed.logging_setup import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RuleEvaluationResult:
    """Fields inferred by the rule engine for one transaction."""

    property_id: Optional[str] = None
    type: Optional[EntryType] = None
    category: Optional[str] = None
    matched_rule_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_fully_matched(self) -> bool:
        return bool(self.property_id and self.type and self.category)


def order_rules(rules: Iterable[MatchingRule], account_id: Optional[str]) -> list[MatchingRule]:
    """Filter and order rules for one account.

    Keeps enabled rules that are scoped to ``account_id`` or global. Account
    rules come before global rules regardless of priority; within a tier rules
    are ordered by ascending priority, ties keeping their input order.
    """
    applicable = [
        rule
        for rule in rules
        if rule.enabled and (rule.account_id is None or rule.account_id == account_id)
    ]
    return sorted(applicable, key=lambda rule: (rule.account_id is None, rule.priority))


def evaluate_rules(
    transaction: Any, rules: Iterable[MatchingRule], account_id: Optional[str] = None
) -> RuleEvaluationResult:
    """Evaluate matching rules against a transaction.

    Args:
        transaction: Object exposing description, counterparty_name, reference,
            merchant and amount (a RawTransaction or IncomingTransaction)
        rules: Candidate rules; filtered and ordered with ``order_rules``
        account_id: Owning account; defaults to ``transaction.account_id`` when present

    Returns:
        RuleEvaluationResult with the inferred fields and the ids of matching rules
    """
    if account_id is None:
        account_id = getattr(transaction, "account_id", None)

    property_id: Optional[str] = None
    entry_type: Optional[EntryType] = None
    category: Optional[str] = None
    matched: list[str] = []

    for rule in order_rules(rules, account_id):
        if property_id and entry_type and category:
            break

        provides_new_field = (
            (property_id is None and rule.property_id is not None)
            or (entry_type is None and rule.type is not None)
            or (category is None and rule.category is not None)
        )
        if not provides_new_field:
            continue

        if rule.conditions is None:
            logger.warning("Skipping matching rule %s: conditions could not be parsed", rule.id)
            continue

        if not evaluate_condition(rule.conditions, transaction):
            continue

        if property_id is None and rule.property_id is not None:
            property_id = rule.property_id
        if entry_type is None and rule.type is not None:
            entry_type = rule.type
        if category is None and rule.category is not None:
            category = rule.category
        matched.append(rule.id)

    return RuleEvaluationResult(
        property_id=property_id,
        type=entry_type,
        category=category,
        matched_rule_ids=tuple(matched),
    )
