"""Tests for default rules, rule preview and the rule service."""

import json
from decimal import Decimal

import pytest

from bankfeed.domain.default_rules import create_default_rules, default_rule_definitions, preview_rule
from bankfeed.domain.entities import EntryType
from bankfeed.domain.errors import NotFoundError, ValidationError
from bankfeed.domain.rules import PropertyService, RuleService

RENT_CONDITIONS = {"rules": [{"field": "description", "matchType": "contains", "value": "rent"}]}


class TestDefaultRules:
    def test_definitions(self):
        definitions = default_rule_definitions()
        assert [d["name"] for d in definitions] == [
            "Default: Rent",
            "Default: Security Deposit",
            "Default: Maintenance",
            "Default: Repair",
            "Default: Negative Amount",
        ]
        for definition in definitions:
            json.loads(definition["conditions"])

    def test_create_default_rules(self, temp_db):
        assert create_default_rules(temp_db) == 5

        rules = temp_db.list_matching_rules()
        assert len(rules) == 5
        assert all(rule.is_global and rule.enabled for rule in rules)
        assert [r.priority for r in rules] == [100, 101, 102, 103, 1000]

    def test_create_default_rules_is_idempotent(self, temp_db):
        create_default_rules(temp_db)
        assert create_default_rules(temp_db) == 0
        assert len(temp_db.list_matching_rules()) == 5

    def test_only_missing_defaults_created(self, temp_db):
        rent = default_rule_definitions()[0]
        temp_db.create_matching_rule(**rent)

        assert create_default_rules(temp_db) == 4
        assert len(temp_db.list_matching_rules()) == 5

    def test_negative_amount_catch_all(self, temp_db):
        create_default_rules(temp_db)
        catch_all = [r for r in temp_db.list_matching_rules() if r.name == "Default: Negative Amount"][0]

        assert preview_rule(catch_all, {"amount": "-4.20"}).category == "Other"
        assert preview_rule(catch_all, {"amount": "4.20"}).category is None


class TestPreviewRule:
    def test_preview_ignores_enabled_flag(self, temp_db):
        rule_id = RuleService(temp_db).create_rule(
            "Rent", RENT_CONDITIONS, priority=1, type="income", category="Rent", enabled=False
        )
        rule = temp_db.get_matching_rule(rule_id)

        result = preview_rule(rule, {"description": "March RENT"})

        assert result.type is EntryType.INCOME
        assert result.matched_rule_ids == (rule_id,)

    def test_preview_no_match(self, temp_db):
        rule_id = RuleService(temp_db).create_rule("Rent", RENT_CONDITIONS, priority=1, category="Rent")
        result = RuleService(temp_db).preview(rule_id, {"description": "TESCO"})
        assert result.matched_rule_ids == ()

    def test_preview_account_scoped_rule(self, temp_db, linked_account):
        service = RuleService(temp_db)
        rule_id = service.create_rule(
            "Account rent", RENT_CONDITIONS, priority=1, account_id=linked_account.id, category="Rent"
        )
        assert service.preview(rule_id, {"description": "rent"}).category == "Rent"


class TestRuleService:
    def test_create_rule_normalises_conditions(self, temp_db, sample_property):
        service = RuleService(temp_db)

        rule_id = service.create_rule(
            "Rent",
            json.dumps(RENT_CONDITIONS),
            priority=10,
            property_id=sample_property.id,
            type="INCOME",
            category="Rent",
        )

        rule = service.get_rule(rule_id)
        assert rule.name == "Rent"
        assert rule.type is EntryType.INCOME
        assert rule.property_id == sample_property.id
        assert rule.conditions is not None

    def test_rule_must_assign_something(self, temp_db):
        with pytest.raises(ValidationError, match="at least one"):
            RuleService(temp_db).create_rule("Empty", RENT_CONDITIONS, priority=1)

    def test_category_must_fit_type(self, temp_db):
        with pytest.raises(ValidationError, match="not valid for Income"):
            RuleService(temp_db).create_rule("Bad", RENT_CONDITIONS, priority=1, type="Income", category="Repair")

    def test_unknown_category(self, temp_db):
        with pytest.raises(ValidationError, match="Unknown category"):
            RuleService(temp_db).create_rule("Bad", RENT_CONDITIONS, priority=1, category="Groceries")

    def test_unknown_type(self, temp_db):
        with pytest.raises(ValidationError):
            RuleService(temp_db).create_rule("Bad", RENT_CONDITIONS, priority=1, type="Transfer")

    def test_malformed_conditions(self, temp_db):
        with pytest.raises(ValidationError):
            RuleService(temp_db).create_rule("Bad", "{not json", priority=1, category="Rent")

    def test_missing_account_or_property(self, temp_db):
        service = RuleService(temp_db)
        with pytest.raises(NotFoundError):
            service.create_rule("Bad", RENT_CONDITIONS, priority=1, category="Rent", account_id="missing")
        with pytest.raises(NotFoundError):
            service.create_rule("Bad", RENT_CONDITIONS, priority=1, category="Rent", property_id="missing")

    def test_enable_disable(self, temp_db):
        service = RuleService(temp_db)
        rule_id = service.create_rule("Rent", RENT_CONDITIONS, priority=1, category="Rent")

        service.set_enabled(rule_id, False)
        assert service.get_rule(rule_id).enabled is False
        service.set_enabled(rule_id, True)
        assert service.get_rule(rule_id).enabled is True

    def test_get_missing_rule(self, temp_db):
        with pytest.raises(NotFoundError):
            RuleService(temp_db).get_rule("missing")

    def test_list_rules_for_account(self, temp_db, linked_account):
        service = RuleService(temp_db)
        service.create_rule("Global", RENT_CONDITIONS, priority=1, category="Rent")
        service.create_rule("Scoped", RENT_CONDITIONS, priority=99, account_id=linked_account.id, category="Rent")

        assert [r.name for r in service.list_rules(linked_account.id)] == ["Scoped", "Global"]

    def test_init_defaults(self, temp_db):
        assert RuleService(temp_db).init_defaults() == 5


class TestPropertyService:
    def test_create_and_list(self, temp_db):
        service = PropertyService(temp_db)
        service.create_property("Flat 1")
        assert [p.name for p in service.list_properties()] == ["Flat 1"]

    def test_empty_name(self, temp_db):
        with pytest.raises(ValidationError):
            PropertyService(temp_db).create_property("  ")
