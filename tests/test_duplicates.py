"""Tests for duplicate detection."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bankfeed.domain.duplicates import (
    DuplicateDetector,
    MatchType,
    description_similarity,
    levenshtein_distance,
    normalize_description,
)
from bankfeed.domain.entities import IncomingTransaction, NewPendingEntry
from bankfeed.domain.errors import ValidationError

WHEN = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def _store(db, account_id, external_id, amount="-12.50", description="TESCO STORES 123", when=WHEN):
    db.create_ingested_transaction(
        account_id,
        IncomingTransaction(
            external_id=external_id,
            amount=Decimal(amount),
            currency="GBP",
            description=description,
            transaction_date=when,
        ),
        pending_entry=NewPendingEntry(),
    )


class TestSimilarity:
    def test_levenshtein(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abc", "") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_normalize(self):
        assert normalize_description("  TESCO   Stores\t123 ") == "tesco stores 123"
        assert normalize_description(None) == ""

    def test_similarity_bounds(self):
        assert description_similarity("", "") == 100
        assert description_similarity(None, "TESCO") == 0
        assert description_similarity("TESCO", "tesco") == 100

    def test_similarity_of_near_identical(self):
        assert description_similarity("TESCO STORES 123", "TESCO STORES 124") == pytest.approx(93.75)


class TestDuplicateDetector:
    def test_no_history_is_not_duplicate(self, temp_db, linked_account):
        result = DuplicateDetector(temp_db).check(
            linked_account.id, "tx_new", Decimal("-12.50"), "TESCO STORES 123", WHEN
        )
        assert result.is_duplicate is False
        assert result.match_type is None

    def test_exact_match_on_external_id(self, temp_db, linked_account):
        _store(temp_db, linked_account.id, "tx_1")

        result = DuplicateDetector(temp_db).check(
            linked_account.id, "tx_1", Decimal("99.99"), "Something else", WHEN + timedelta(days=30)
        )

        assert result.is_duplicate is True
        assert result.match_type is MatchType.EXACT
        assert result.matched_transaction.external_id == "tx_1"

    def test_fuzzy_match(self, temp_db, linked_account):
        _store(temp_db, linked_account.id, "tx_1")

        result = DuplicateDetector(temp_db).check(
            linked_account.id, "tx_2", Decimal("-12.50"), "TESCO STORES 124", WHEN + timedelta(hours=3)
        )

        assert result.is_duplicate is True
        assert result.match_type is MatchType.FUZZY
        assert result.matched_transaction.external_id == "tx_1"

    def test_dissimilar_description_is_not_duplicate(self, temp_db, linked_account):
        _store(temp_db, linked_account.id, "tx_1")

        result = DuplicateDetector(temp_db).check(
            linked_account.id, "tx_2", Decimal("-12.50"), "AMAZON MARKETPLACE", WHEN
        )

        assert result.is_duplicate is False

    def test_different_amount_is_not_duplicate(self, temp_db, linked_account):
        _store(temp_db, linked_account.id, "tx_1")

        result = DuplicateDetector(temp_db).check(
            linked_account.id, "tx_2", Decimal("-12.51"), "TESCO STORES 123", WHEN
        )

        assert result.is_duplicate is False

    def test_outside_date_window_is_not_duplicate(self, temp_db, linked_account):
        _store(temp_db, linked_account.id, "tx_1")
        detector = DuplicateDetector(temp_db)

        inside = detector.check(
            linked_account.id, "tx_2", Decimal("-12.50"), "TESCO STORES 123", WHEN + timedelta(hours=23)
        )
        outside = detector.check(
            linked_account.id, "tx_3", Decimal("-12.50"), "TESCO STORES 123", WHEN + timedelta(hours=25)
        )

        assert inside.is_duplicate is True
        assert outside.is_duplicate is False

    def test_other_account_is_not_checked(self, temp_db, linked_account, cipher):
        other_id = temp_db.create_linked_account(
            upstream_account_id="acc_upstream_2",
            account_name="Other",
            account_type="uk_retail",
            access_token=cipher.encrypt("a"),
            refresh_token=None,
            token_expires_at=None,
            sync_from_date=WHEN,
        )
        _store(temp_db, other_id, "tx_1")

        result = DuplicateDetector(temp_db).check(
            linked_account.id, "tx_1", Decimal("-12.50"), "TESCO STORES 123", WHEN
        )

        assert result.is_duplicate is False

    def test_custom_threshold(self, temp_db, linked_account):
        _store(temp_db, linked_account.id, "tx_1")
        strict = DuplicateDetector(temp_db, similarity_threshold=95)

        result = strict.check(linked_account.id, "tx_2", Decimal("-12.50"), "TESCO STORES 124", WHEN)

        assert result.is_duplicate is False

    @pytest.mark.parametrize(
        "account_id,external_id,when",
        [("", "tx_1", WHEN), ("acc", "", WHEN), ("acc", "tx_1", None)],
    )
    def test_missing_parameters(self, temp_db, account_id, external_id, when):
        with pytest.raises(ValidationError):
            DuplicateDetector(temp_db).check(account_id, external_id, Decimal("1"), "x", when)
