"""Domain layer for bankfeed application.

Services live in their own modules (``bankfeed.domain.pipeline``,
``bankfeed.domain.rule_engine``, ...) and are imported from there; this
package only re-exports the entity types so the database layer can depend on
it without import cycles.
"""

from bankfeed.domain.entities import (
    EntryType,
    SyncStatus,
    LinkedAccount,
    Property,
    IncomingTransaction,
    RawTransaction,
    LedgerEntry,
    PendingEntry,
    MatchingRule,
    SyncLog,
)

__all__ = [
    "EntryType",
    "SyncStatus",
    "LinkedAccount",
    "Property",
    "IncomingTransaction",
    "RawTransaction",
    "LedgerEntry",
    "PendingEntry",
    "MatchingRule",
    "SyncLog",
]
