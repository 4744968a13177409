"""Duplicate detection for incoming upstream transactions.

Two tiers, in order: an exact match on (account, external id), which is the
idempotency key, then a fuzzy match on amount, date proximity and description
similarity. The fuzzy tier is a heuristic; only the exact tier and the
storage uniqueness constraint guarantee at-most-once ingestion.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from bankfeed.database.base import Database
from bankfeed.domain.entities import RawTransaction
from bankfeed.domain.errors import ValidationError
from bankfeed.logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 80
DEFAULT_CANDIDATE_LIMIT = 100
FUZZY_DATE_WINDOW = timedelta(days=1)

_WHITESPACE_RE = re.compile(r"\s+")


class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class DuplicateCheckResult:
    """Outcome of a duplicate check."""

    is_duplicate: bool
    match_type: Optional[MatchType] = None
    matched_transaction: Optional[RawTransaction] = None


NOT_DUPLICATE = DuplicateCheckResult(is_duplicate=False)


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insertions, deletions, substitutions)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def normalize_description(description: Optional[str]) -> str:
    """Lowercase, collapse runs of whitespace and trim."""
    if not description:
        return ""
    return _WHITESPACE_RE.sub(" ", description.lower()).strip()


def description_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Similarity percentage (0-100) of two descriptions after normalisation.

    Two empty descriptions are 100% similar; an empty and a non-empty one are 0%.
    """
    norm_a = normalize_description(a)
    norm_b = normalize_description(b)
    if not norm_a and not norm_b:
        return 100.0
    if not norm_a or not norm_b:
        return 0.0
    max_len = max(len(norm_a), len(norm_b))
    return (max_len - levenshtein_distance(norm_a, norm_b)) / max_len * 100


class DuplicateDetector:
    """Checks an incoming transaction against already imported ones."""

    def __init__(
        self,
        db: Database,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        candidate_limit: int = DEFAULT_CANDIDATE_LIMIT,
    ):
        self.db = db
        self.similarity_threshold = similarity_threshold
        self.candidate_limit = candidate_limit

    def check(
        self,
        account_id: str,
        external_id: str,
        amount: Decimal,
        description: Optional[str],
        transaction_date: datetime,
    ) -> DuplicateCheckResult:
        """Check whether a transaction was already imported.

        Args:
            account_id: Linked account ID
            external_id: Upstream transaction ID
            amount: Signed amount in major units
            description: Transaction description
            transaction_date: When the transaction happened

        Returns:
            DuplicateCheckResult; ``matched_transaction`` is the existing row

        Raises:
            ValidationError: If account_id, external_id or transaction_date is missing
        """
        if not account_id or not external_id or transaction_date is None:
            raise ValidationError("account_id, external_id and transaction_date are required")

        existing = self.db.find_raw_transaction(account_id, external_id)
        if existing is not None:
            return DuplicateCheckResult(True, MatchType.EXACT, existing)

        candidates = self.db.list_duplicate_candidates(
            account_id,
            amount,
            start=transaction_date - FUZZY_DATE_WINDOW,
            end=transaction_date + FUZZY_DATE_WINDOW,
            limit=self.candidate_limit,
        )
        for candidate in candidates:
            similarity = description_similarity(description, candidate.description)
            if similarity >= self.similarity_threshold:
                logger.debug(
                    "Transaction %s looks like %s (%.1f%% similar)",
                    external_id,
                    candidate.external_id,
                    similarity,
                )
                return DuplicateCheckResult(True, MatchType.FUZZY, candidate)

        return NOT_DUPLICATE
