"""Matching rule domain service."""

from typing import Any, Optional

from bankfeed.database.base import Database
from bankfeed.domain.categories import categories_for
from bankfeed.domain.conditions import conditions_to_json, parse_conditions
from bankfeed.domain.default_rules import create_default_rules, preview_rule
from bankfeed.domain.entities import EntryType, MatchingRule
from bankfeed.domain.errors import (
    NotFoundError,
    ValidationError,
    account_not_found,
    property_not_found,
    rule_not_found,
)
from bankfeed.domain.rule_engine import RuleEvaluationResult


class RuleService:
    """Service for managing matching rules."""

    def __init__(self, db: Database):
        """Initialize rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_rule(
        self,
        name: str,
        conditions: str | dict[str, Any],
        priority: int,
        account_id: Optional[str] = None,
        property_id: Optional[str] = None,
        type: Optional[EntryType | str] = None,
        category: Optional[str] = None,
        enabled: bool = True,
    ) -> str:
        """Create a matching rule.

        Args:
            name: Rule name
            conditions: Condition JSON text or dict
            priority: Lower numbers are evaluated first
            account_id: Linked account to scope the rule to; None for a global rule
            property_id: Property the rule assigns
            type: Entry type the rule assigns
            category: Category the rule assigns

        Returns:
            Rule ID

        Raises:
            ValidationError: If conditions are malformed, the rule assigns
                nothing, or the category is not valid for the type
            NotFoundError: If the account or property does not exist
        """
        tree = parse_conditions(conditions)
        try:
            entry_type = EntryType.parse(type)
        except ValueError as e:
            raise ValidationError(str(e))

        if property_id is None and entry_type is None and category is None:
            raise ValidationError("Rule must assign at least one of property, type or category")
        if category is not None and entry_type is not None and category not in categories_for(entry_type):
            raise ValidationError(
                f"Category '{category}' is not valid for {entry_type.value}. "
                f"Expected one of: {', '.join(categories_for(entry_type))}"
            )
        if category is not None and entry_type is None and not any(
            category in categories_for(t) for t in EntryType
        ):
            raise ValidationError(f"Unknown category '{category}'")

        if account_id is not None and self.db.get_linked_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        if property_id is not None and self.db.get_property(property_id) is None:
            raise NotFoundError(property_not_found(property_id))

        return self.db.create_matching_rule(
            name=name,
            conditions=conditions_to_json(tree),
            priority=priority,
            account_id=account_id,
            enabled=enabled,
            property_id=property_id,
            type=entry_type,
            category=category,
        )

    def get_rule(self, rule_id: str) -> MatchingRule:
        """Get a rule or raise NotFoundError."""
        rule = self.db.get_matching_rule(rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def list_rules(self, account_id: Optional[str] = None) -> list[MatchingRule]:
        """List rules in evaluation order; with account_id, only those that apply to it."""
        return self.db.list_matching_rules(account_id)

    def set_enabled(self, rule_id: str, enabled: bool) -> None:
        self.get_rule(rule_id)
        self.db.set_matching_rule_enabled(rule_id, enabled)

    def init_defaults(self) -> int:
        """Install the default global rules. Returns the number created."""
        return create_default_rules(self.db)

    def preview(self, rule_id: str, sample: dict[str, Any]) -> RuleEvaluationResult:
        """Evaluate one stored rule against sample transaction fields."""
        return preview_rule(self.get_rule(rule_id), sample)


class PropertyService:
    """Service for managing properties."""

    def __init__(self, db: Database):
        self.db = db

    def create_property(self, name: str) -> str:
        """Create a property. Returns property ID."""
        return self.db.create_property(name)

    def list_properties(self):
        return self.db.list_properties()
