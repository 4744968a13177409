"""Condition trees for matching rules.

A condition is either a leaf predicate on one transaction field or a group
that combines child conditions with AND/OR. Rules persist their conditions as
JSON text; ``parse_conditions`` turns that text into the tree and
``conditions_to_json`` writes it back.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union

from bankfeed.domain.errors import ValidationError


class ConditionField(str, Enum):
    """Transaction fields a leaf can inspect."""

    DESCRIPTION = "description"
    COUNTERPARTY_NAME = "counterparty_name"
    REFERENCE = "reference"
    MERCHANT = "merchant"
    AMOUNT = "amount"


class MatchOperator(str, Enum):
    """Leaf comparison operators."""

    CONTAINS = "contains"
    EQUALS = "equals"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"

    @property
    def is_numeric(self) -> bool:
        return self in (MatchOperator.GREATER_THAN, MatchOperator.LESS_THAN)


class GroupOperator(str, Enum):
    """How a group combines its children."""

    AND = "AND"
    OR = "OR"


# Persisted JSON uses camelCase names for fields and operators
_FIELD_ALIASES = {
    "description": ConditionField.DESCRIPTION,
    "counterpartyname": ConditionField.COUNTERPARTY_NAME,
    "counterparty_name": ConditionField.COUNTERPARTY_NAME,
    "counterparty": ConditionField.COUNTERPARTY_NAME,
    "reference": ConditionField.REFERENCE,
    "merchant": ConditionField.MERCHANT,
    "amount": ConditionField.AMOUNT,
}

_OPERATOR_ALIASES = {
    "contains": MatchOperator.CONTAINS,
    "equals": MatchOperator.EQUALS,
    "startswith": MatchOperator.STARTS_WITH,
    "starts_with": MatchOperator.STARTS_WITH,
    "endswith": MatchOperator.ENDS_WITH,
    "ends_with": MatchOperator.ENDS_WITH,
    "greaterthan": MatchOperator.GREATER_THAN,
    "greater_than": MatchOperator.GREATER_THAN,
    "lessthan": MatchOperator.LESS_THAN,
    "less_than": MatchOperator.LESS_THAN,
}

_FIELD_JSON_NAMES = {
    ConditionField.DESCRIPTION: "description",
    ConditionField.COUNTERPARTY_NAME: "counterpartyName",
    ConditionField.REFERENCE: "reference",
    ConditionField.MERCHANT: "merchant",
    ConditionField.AMOUNT: "amount",
}

_OPERATOR_JSON_NAMES = {
    MatchOperator.CONTAINS: "contains",
    MatchOperator.EQUALS: "equals",
    MatchOperator.STARTS_WITH: "startsWith",
    MatchOperator.ENDS_WITH: "endsWith",
    MatchOperator.GREATER_THAN: "greaterThan",
    MatchOperator.LESS_THAN: "lessThan",
}


@dataclass(frozen=True)
class ConditionLeaf:
    """Single predicate on one transaction field."""

    field: ConditionField
    operator: MatchOperator
    value: str | Decimal
    case_sensitive: bool = False


@dataclass(frozen=True)
class ConditionGroup:
    """AND/OR combination of child conditions."""

    operator: GroupOperator
    children: tuple["Condition", ...] = ()


Condition = Union[ConditionLeaf, ConditionGroup]


def evaluate_condition(condition: Condition, transaction: Any) -> bool:
    """Evaluate a condition tree against a transaction-like object.

    The transaction only needs the attributes named by ``ConditionField``.
    An empty AND group is true and an empty OR group is false.
    """
    if isinstance(condition, ConditionGroup):
        results = (evaluate_condition(child, transaction) for child in condition.children)
        if condition.operator is GroupOperator.AND:
            return all(results)
        return any(results)
    if isinstance(condition, ConditionLeaf):
        return _evaluate_leaf(condition, transaction)
    raise TypeError(f"Unsupported condition node: {type(condition).__name__}")


def _evaluate_leaf(leaf: ConditionLeaf, transaction: Any) -> bool:
    field_value = getattr(transaction, leaf.field.value, None)
    if field_value is None:
        return False

    if leaf.operator.is_numeric:
        try:
            left = Decimal(str(field_value))
            right = Decimal(str(leaf.value))
        except InvalidOperation:
            return False
        if leaf.operator is MatchOperator.GREATER_THAN:
            return left > right
        return left < right

    text = str(field_value)
    expected = str(leaf.value)
    if not leaf.case_sensitive:
        text = text.lower()
        expected = expected.lower()

    if leaf.operator is MatchOperator.CONTAINS:
        return expected in text
    if leaf.operator is MatchOperator.EQUALS:
        return text == expected
    if leaf.operator is MatchOperator.STARTS_WITH:
        return text.startswith(expected)
    if leaf.operator is MatchOperator.ENDS_WITH:
        return text.endswith(expected)
    raise TypeError(f"Unsupported operator: {leaf.operator}")


def parse_conditions(raw: str | dict[str, Any]) -> ConditionGroup:
    """Parse persisted condition JSON into a condition tree.

    Args:
        raw: JSON text or an already-decoded dict of the form
            ``{"operator": "AND", "rules": [{"field": ..., "matchType": ..., "value": ...}]}``

    Returns:
        Root condition group

    Raises:
        ValidationError: If the JSON is malformed or names an unknown field/operator
    """
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Conditions are not valid JSON: {e.msg}")
    else:
        data = raw

    if not isinstance(data, dict):
        raise ValidationError("Conditions must be a JSON object")
    return _parse_group(data)


def _parse_group(data: dict[str, Any]) -> ConditionGroup:
    operator_name = str(data.get("operator") or "AND").upper()
    try:
        operator = GroupOperator(operator_name)
    except ValueError:
        raise ValidationError(f"Unknown group operator '{data.get('operator')}'")

    children_data = data.get("rules")
    if children_data is None:
        children_data = []
    if not isinstance(children_data, list):
        raise ValidationError("Condition 'rules' must be a list")

    children: list[Condition] = []
    for child in children_data:
        if not isinstance(child, dict):
            raise ValidationError("Each condition must be a JSON object")
        if "rules" in child:
            children.append(_parse_group(child))
        else:
            children.append(_parse_leaf(child))
    return ConditionGroup(operator=operator, children=tuple(children))


def _parse_leaf(data: dict[str, Any]) -> ConditionLeaf:
    field_name = str(data.get("field", "")).strip().lower()
    condition_field = _FIELD_ALIASES.get(field_name)
    if condition_field is None:
        raise ValidationError(f"Unknown condition field '{data.get('field')}'")

    operator_name = str(data.get("matchType", data.get("operator", ""))).strip().lower()
    operator = _OPERATOR_ALIASES.get(operator_name)
    if operator is None:
        raise ValidationError(f"Unknown match type '{data.get('matchType')}'")

    if "value" not in data or data["value"] is None:
        raise ValidationError("Condition value is required")
    value = data["value"]

    if operator.is_numeric:
        if isinstance(value, bool):
            raise ValidationError(f"Numeric match type '{operator.value}' needs a number")
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Numeric match type '{operator.value}' needs a number, got '{value}'")
    else:
        value = str(value)

    return ConditionLeaf(
        field=condition_field,
        operator=operator,
        value=value,
        case_sensitive=bool(data.get("caseSensitive", data.get("case_sensitive", False))),
    )


def conditions_to_dict(condition: Condition) -> dict[str, Any]:
    """Convert a condition tree into its persisted dict shape."""
    if isinstance(condition, ConditionGroup):
        return {
            "operator": condition.operator.value,
            "rules": [conditions_to_dict(child) for child in condition.children],
        }
    value: Any = condition.value
    if isinstance(value, Decimal):
        value = int(value) if value == value.to_integral_value() else float(value)
    return {
        "field": _FIELD_JSON_NAMES[condition.field],
        "matchType": _OPERATOR_JSON_NAMES[condition.operator],
        "value": value,
        "caseSensitive": condition.case_sensitive,
    }


def conditions_to_json(condition: Condition) -> str:
    """Serialize a condition tree to JSON text for storage."""
    return json.dumps(conditions_to_dict(condition))
