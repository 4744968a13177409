"""Domain model entities for bankfeed.

These are pure data classes representing business concepts, independent of
database schema. The persistence layer maps its rows onto these so the
matching and ingestion logic never touches ORM objects.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from bankfeed.domain.conditions import ConditionGroup


class EntryType(str, Enum):
    """Ledger entry type."""

    INCOME = "Income"
    EXPENSE = "Expense"

    @classmethod
    def parse(cls, value: "str | EntryType | None") -> Optional["EntryType"]:
        """Parse a stored or user-supplied type, accepting 'INCOME' and 'income'."""
        if value is None or value == "":
            return None
        if isinstance(value, EntryType):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ValueError(f"Unknown entry type '{value}'. Expected Income or Expense")


class SyncStatus(str, Enum):
    """Sync status of a linked account or sync log."""

    NEVER_SYNCED = "never_synced"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class LinkedAccount:
    """Connected upstream bank account. Token fields hold ciphertext only."""

    id: str
    upstream_account_id: str
    account_name: str
    account_type: str
    provider: str
    access_token: str
    refresh_token: Optional[str]
    token_expires_at: Optional[datetime]
    sync_enabled: bool
    sync_from_date: datetime
    last_sync_at: Optional[datetime]
    last_sync_status: SyncStatus
    webhook_id: Optional[str]
    webhook_url: Optional[str]
    created_at: datetime

    def __repr__(self) -> str:
        return (
            f"LinkedAccount(id={self.id!r}, upstream_account_id={self.upstream_account_id!r}, "
            f"account_name={self.account_name!r}, last_sync_status={self.last_sync_status.value!r})"
        )


@dataclass(frozen=True)
class Property:
    """Property that ledger entries are booked against."""

    id: str
    name: str


@dataclass(frozen=True)
class IncomingTransaction:
    """Upstream transaction normalised for duplicate checks and rule matching."""

    external_id: str
    amount: Decimal
    currency: str
    description: str
    transaction_date: datetime
    counterparty_name: Optional[str] = None
    reference: Optional[str] = None
    merchant: Optional[str] = None
    category: Optional[str] = None
    settled_date: Optional[datetime] = None


@dataclass(frozen=True)
class RawTransaction:
    """Transaction as imported from upstream."""

    id: str
    account_id: str
    external_id: str
    amount: Decimal
    currency: str
    description: str
    counterparty_name: Optional[str]
    reference: Optional[str]
    merchant: Optional[str]
    category: Optional[str]
    transaction_date: datetime
    settled_date: Optional[datetime]
    imported_at: datetime
    ledger_entry_id: Optional[str] = None
    pending_entry_id: Optional[str] = None


@dataclass(frozen=True)
class LedgerEntry:
    """Fully classified financial event."""

    id: str
    property_id: str
    type: EntryType
    category: str
    amount: Decimal
    transaction_date: datetime
    description: str
    is_imported: bool
    imported_at: Optional[datetime]


@dataclass(frozen=True)
class PendingEntry:
    """Raw transaction awaiting manual classification."""

    id: str
    raw_transaction_id: str
    property_id: Optional[str]
    type: Optional[EntryType]
    category: Optional[str]
    transaction_date: datetime
    description: str
    created_at: datetime


@dataclass(frozen=True)
class MatchingRule:
    """Administrator-defined predicate plus the classification it asserts.

    ``conditions`` is None when the stored condition JSON could not be parsed;
    such rules never match.
    """

    id: str
    name: str
    account_id: Optional[str]
    priority: int
    enabled: bool
    conditions: Optional[ConditionGroup]
    property_id: Optional[str] = None
    type: Optional[EntryType] = None
    category: Optional[str] = None

    @property
    def is_global(self) -> bool:
        return self.account_id is None


@dataclass(frozen=True)
class SyncLog:
    """Record of one manual or webhook sync run."""

    id: str
    account_id: str
    sync_type: str
    status: SyncStatus
    started_at: datetime
    completed_at: Optional[datetime]
    transactions_fetched: int = 0
    transactions_skipped: int = 0
    transactions_matched: int = 0
    transactions_pending: int = 0
    error_message: Optional[str] = None
    webhook_event_id: Optional[str] = None


@dataclass(frozen=True)
class NewLedgerEntry:
    """Ledger entry to be written together with its raw transaction."""

    property_id: str
    type: EntryType
    category: str


@dataclass(frozen=True)
class NewPendingEntry:
    """Pending entry to be written together with its raw transaction."""

    property_id: Optional[str] = None
    type: Optional[EntryType] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class IngestionOutcome:
    """Identifiers written by a single ingestion unit of work."""

    raw_transaction_id: str
    ledger_entry_id: Optional[str] = None
    pending_entry_id: Optional[str] = None
