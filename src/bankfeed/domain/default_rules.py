"""Built-in global matching rules and single-rule preview."""

import dataclasses
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Mapping

from bankfeed.database.base import Database
from bankfeed.domain.conditions import (
    ConditionField,
    ConditionGroup,
    ConditionLeaf,
    GroupOperator,
    MatchOperator,
    conditions_to_json,
)
from bankfeed.domain.entities import EntryType, MatchingRule
from bankfeed.domain.rule_engine import RuleEvaluationResult, evaluate_rules
from bankfeed.logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_RULE_PREFIX = "Default:"


def _description_contains(text: str) -> str:
    return conditions_to_json(
        ConditionGroup(
            GroupOperator.AND,
            (ConditionLeaf(ConditionField.DESCRIPTION, MatchOperator.CONTAINS, text),),
        )
    )


def default_rule_definitions() -> list[dict[str, Any]]:
    """The five global rules installed by ``create_default_rules``."""
    return [
        {
            "name": "Default: Rent",
            "priority": 100,
            "type": EntryType.INCOME,
            "category": "Rent",
            "conditions": _description_contains("rent"),
        },
        {
            "name": "Default: Security Deposit",
            "priority": 101,
            "type": EntryType.INCOME,
            "category": "Security Deposit",
            "conditions": _description_contains("deposit"),
        },
        {
            "name": "Default: Maintenance",
            "priority": 102,
            "type": EntryType.EXPENSE,
            "category": "Maintenance",
            "conditions": _description_contains("maintenance"),
        },
        {
            "name": "Default: Repair",
            "priority": 103,
            "type": EntryType.EXPENSE,
            "category": "Repair",
            "conditions": _description_contains("repair"),
        },
        {
            # Catch-all for outgoing payments
            "name": "Default: Negative Amount",
            "priority": 1000,
            "type": EntryType.EXPENSE,
            "category": "Other",
            "conditions": conditions_to_json(
                ConditionGroup(
                    GroupOperator.AND,
                    (ConditionLeaf(ConditionField.AMOUNT, MatchOperator.LESS_THAN, Decimal("0")),),
                )
            ),
        },
    ]


def create_default_rules(db: Database) -> int:
    """Install the default global rules unless they already exist.

    Returns:
        Number of rules created (0 when every default is already present)
    """
    existing_names = {
        rule.name
        for rule in db.list_matching_rules()
        if rule.account_id is None and rule.name.startswith(DEFAULT_RULE_PREFIX)
    }
    missing = [d for d in default_rule_definitions() if d["name"] not in existing_names]
    if not missing:
        return 0

    created = db.create_matching_rules(missing)
    logger.info("Created %d default matching rules", created)
    return created


def preview_rule(rule: MatchingRule, sample: Mapping[str, Any]) -> RuleEvaluationResult:
    """Evaluate one rule against sample transaction fields.

    The rule is evaluated as if enabled and in scope, so a draft can be
    checked before it is switched on.

    Args:
        rule: Rule to preview
        sample: Mapping with any of description, counterparty_name, reference,
            merchant and amount (major units)
    """
    amount = sample.get("amount")
    transaction = SimpleNamespace(
        description=sample.get("description"),
        counterparty_name=sample.get("counterparty_name"),
        reference=sample.get("reference"),
        merchant=sample.get("merchant"),
        amount=Decimal(str(amount)) if amount is not None else None,
    )
    candidate = dataclasses.replace(rule, enabled=True)
    return evaluate_rules(transaction, [candidate], rule.account_id)
