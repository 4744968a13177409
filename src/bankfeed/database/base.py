"""Abstract database interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional

# Import entities directly to avoid circular import through domain services
from bankfeed.domain.entities import (
    EntryType,
    IncomingTransaction,
    IngestionOutcome,
    LedgerEntry,
    LinkedAccount,
    MatchingRule,
    NewLedgerEntry,
    NewPendingEntry,
    PendingEntry,
    Property,
    RawTransaction,
    SyncLog,
    SyncStatus,
)


class Database(ABC):
    """Abstract database interface for bankfeed."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Linked account operations
    @abstractmethod
    def create_linked_account(
        self,
        upstream_account_id: str,
        account_name: str,
        account_type: str,
        access_token: str,
        refresh_token: Optional[str],
        token_expires_at: Optional[datetime],
        sync_from_date: datetime,
        provider: str = "monzo",
    ) -> str:
        """Create a linked account with already-encrypted tokens. Returns account ID."""
        pass

    @abstractmethod
    def get_linked_account(self, account_id: str) -> Optional[LinkedAccount]:
        """Get linked account by ID."""
        pass

    @abstractmethod
    def get_linked_account_by_upstream_id(self, upstream_account_id: str) -> Optional[LinkedAccount]:
        """Get linked account by its upstream account identifier."""
        pass

    @abstractmethod
    def list_linked_accounts(self, sync_enabled_only: bool = False) -> list[LinkedAccount]:
        """List linked accounts."""
        pass

    @abstractmethod
    def update_account_tokens(
        self,
        account_id: str,
        access_token: str,
        refresh_token: Optional[str],
        token_expires_at: Optional[datetime],
    ) -> None:
        """Replace the encrypted token pair and expiry in one write."""
        pass

    @abstractmethod
    def try_begin_account_sync(self, account_id: str) -> bool:
        """Mark an account in_progress unless it already is.

        Returns False when another sync holds the account.
        """
        pass

    @abstractmethod
    def update_account_sync_status(
        self, account_id: str, status: SyncStatus, last_sync_at: Optional[datetime] = None
    ) -> None:
        """Update last sync status and, when given, the last sync time."""
        pass

    @abstractmethod
    def set_account_sync_enabled(self, account_id: str, enabled: bool) -> None:
        """Enable or disable syncing for an account."""
        pass

    @abstractmethod
    def update_account_webhook(
        self, account_id: str, webhook_id: Optional[str], webhook_url: Optional[str]
    ) -> None:
        """Store or clear the registered webhook."""
        pass

    # Property operations
    @abstractmethod
    def create_property(self, name: str) -> str:
        """Create a property. Returns property ID."""
        pass

    @abstractmethod
    def get_property(self, property_id: str) -> Optional[Property]:
        """Get property by ID."""
        pass

    @abstractmethod
    def list_properties(self) -> list[Property]:
        """List all properties."""
        pass

    # Raw transaction operations
    @abstractmethod
    def get_raw_transaction(self, raw_transaction_id: str) -> Optional[RawTransaction]:
        """Get raw transaction by ID."""
        pass

    @abstractmethod
    def find_raw_transaction(self, account_id: str, external_id: str) -> Optional[RawTransaction]:
        """Find the raw transaction for an (account, external id) pair."""
        pass

    @abstractmethod
    def list_duplicate_candidates(
        self,
        account_id: str,
        amount: Decimal,
        start: datetime,
        end: datetime,
        limit: int,
    ) -> list[RawTransaction]:
        """List raw transactions with this exact amount dated within [start, end], newest first."""
        pass

    @abstractmethod
    def list_raw_transactions(self, account_id: Optional[str] = None) -> list[RawTransaction]:
        """List raw transactions, newest first."""
        pass

    @abstractmethod
    def create_ingested_transaction(
        self,
        account_id: str,
        transaction: IncomingTransaction,
        ledger_entry: Optional[NewLedgerEntry] = None,
        pending_entry: Optional[NewPendingEntry] = None,
    ) -> IngestionOutcome:
        """Insert a raw transaction and exactly one outcome in a single unit of work.

        Exactly one of ``ledger_entry`` and ``pending_entry`` must be given.

        Raises:
            ConflictError: If (account_id, external_id) already exists
        """
        pass

    # Ledger entry operations
    @abstractmethod
    def get_ledger_entry(self, ledger_entry_id: str) -> Optional[LedgerEntry]:
        """Get ledger entry by ID."""
        pass

    @abstractmethod
    def list_ledger_entries(self, property_id: Optional[str] = None) -> list[LedgerEntry]:
        """List ledger entries, optionally for one property."""
        pass

    # Pending entry operations
    @abstractmethod
    def get_pending_entry(self, pending_entry_id: str) -> Optional[PendingEntry]:
        """Get pending entry by ID."""
        pass

    @abstractmethod
    def list_pending_entries(self, account_id: Optional[str] = None) -> list[PendingEntry]:
        """List pending entries, optionally limited to one account's transactions."""
        pass

    @abstractmethod
    def update_pending_entry(
        self,
        pending_entry_id: str,
        property_id: Optional[str],
        type: Optional[EntryType],
        category: Optional[str],
    ) -> None:
        """Overwrite the inferred fields of a pending entry."""
        pass

    @abstractmethod
    def promote_pending_entry(
        self, pending_entry_id: str, property_id: str, type: EntryType, category: str
    ) -> str:
        """Replace a pending entry with a ledger entry in one unit of work. Returns ledger entry ID."""
        pass

    # Matching rule operations
    @abstractmethod
    def create_matching_rule(
        self,
        name: str,
        conditions: str,
        priority: int,
        account_id: Optional[str] = None,
        enabled: bool = True,
        property_id: Optional[str] = None,
        type: Optional[EntryType] = None,
        category: Optional[str] = None,
    ) -> str:
        """Create a matching rule with JSON conditions. Returns rule ID."""
        pass

    @abstractmethod
    def create_matching_rules(self, rules: list[dict]) -> int:
        """Create several matching rules in one write. Returns the number created."""
        pass

    @abstractmethod
    def get_matching_rule(self, rule_id: str) -> Optional[MatchingRule]:
        """Get matching rule by ID."""
        pass

    @abstractmethod
    def list_matching_rules(
        self, account_id: Optional[str] = None, include_global: bool = True
    ) -> list[MatchingRule]:
        """List rules for an account plus (optionally) global rules.

        With ``account_id=None`` every rule is returned. Results are ordered
        account-scoped first, then by ascending priority.
        """
        pass

    @abstractmethod
    def set_matching_rule_enabled(self, rule_id: str, enabled: bool) -> None:
        """Enable or disable a rule."""
        pass

    # Sync log operations
    @abstractmethod
    def create_sync_log(
        self, account_id: str, sync_type: str, webhook_event_id: Optional[str] = None
    ) -> str:
        """Open an in-progress sync log. Returns log ID."""
        pass

    @abstractmethod
    def complete_sync_log(
        self,
        sync_log_id: str,
        status: SyncStatus,
        transactions_fetched: int = 0,
        transactions_skipped: int = 0,
        transactions_matched: int = 0,
        transactions_pending: int = 0,
        error_message: Optional[str] = None,
    ) -> None:
        """Close a sync log with its final status and counts."""
        pass

    @abstractmethod
    def get_sync_log(self, sync_log_id: str) -> Optional[SyncLog]:
        """Get sync log by ID."""
        pass

    @abstractmethod
    def list_sync_logs(self, account_id: Optional[str] = None, limit: int = 20) -> list[SyncLog]:
        """List most recent sync logs first."""
        pass
