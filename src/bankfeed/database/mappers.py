"""Mapper functions to convert between domain models and SQLAlchemy models.

Datetimes are normalised to aware UTC on the way out because SQLite returns
naive values. Rule conditions are parsed here so the rule engine only ever
sees condition trees.
"""

from decimal import Decimal

from bankfeed.domain import entities as domain
from bankfeed.domain.conditions import parse_conditions
from bankfeed.domain.errors import ValidationError
from bankfeed.logging_setup import get_logger
from bankfeed.utils.date_parser import ensure_utc
from bankfeed.database.models import (
    LinkedAccount as ORMLinkedAccount,
    Property as ORMProperty,
    RawTransaction as ORMRawTransaction,
    LedgerEntry as ORMLedgerEntry,
    PendingEntry as ORMPendingEntry,
    MatchingRule as ORMMatchingRule,
    SyncLog as ORMSyncLog,
)

logger = get_logger(__name__)


def _decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def linked_account_to_domain(orm_account: ORMLinkedAccount) -> domain.LinkedAccount:
    """Convert SQLAlchemy LinkedAccount model to domain LinkedAccount entity."""
    return domain.LinkedAccount(
        id=orm_account.id,
        upstream_account_id=orm_account.upstream_account_id,
        account_name=orm_account.account_name,
        account_type=orm_account.account_type,
        provider=orm_account.provider,
        access_token=orm_account.access_token,
        refresh_token=orm_account.refresh_token,
        token_expires_at=ensure_utc(orm_account.token_expires_at),
        sync_enabled=bool(orm_account.sync_enabled),
        sync_from_date=ensure_utc(orm_account.sync_from_date),
        last_sync_at=ensure_utc(orm_account.last_sync_at),
        last_sync_status=domain.SyncStatus(orm_account.last_sync_status),
        webhook_id=orm_account.webhook_id,
        webhook_url=orm_account.webhook_url,
        created_at=ensure_utc(orm_account.created_at),
    )


def property_to_domain(orm_property: ORMProperty) -> domain.Property:
    """Convert SQLAlchemy Property model to domain Property entity."""
    return domain.Property(id=orm_property.id, name=orm_property.name)


def raw_transaction_to_domain(orm_txn: ORMRawTransaction) -> domain.RawTransaction:
    """Convert SQLAlchemy RawTransaction model to domain RawTransaction entity."""
    return domain.RawTransaction(
        id=orm_txn.id,
        account_id=orm_txn.account_id,
        external_id=orm_txn.external_id,
        amount=_decimal(orm_txn.amount),
        currency=orm_txn.currency,
        description=orm_txn.description,
        counterparty_name=orm_txn.counterparty_name,
        reference=orm_txn.reference,
        merchant=orm_txn.merchant,
        category=orm_txn.category,
        transaction_date=ensure_utc(orm_txn.transaction_date),
        settled_date=ensure_utc(orm_txn.settled_date),
        imported_at=ensure_utc(orm_txn.imported_at),
        ledger_entry_id=orm_txn.ledger_entry_id,
        pending_entry_id=orm_txn.pending_entry_id,
    )


def ledger_entry_to_domain(orm_entry: ORMLedgerEntry) -> domain.LedgerEntry:
    """Convert SQLAlchemy LedgerEntry model to domain LedgerEntry entity."""
    return domain.LedgerEntry(
        id=orm_entry.id,
        property_id=orm_entry.property_id,
        type=domain.EntryType.parse(orm_entry.type),
        category=orm_entry.category,
        amount=_decimal(orm_entry.amount),
        transaction_date=ensure_utc(orm_entry.transaction_date),
        description=orm_entry.description,
        is_imported=bool(orm_entry.is_imported),
        imported_at=ensure_utc(orm_entry.imported_at),
    )


def pending_entry_to_domain(orm_entry: ORMPendingEntry) -> domain.PendingEntry:
    """Convert SQLAlchemy PendingEntry model to domain PendingEntry entity."""
    return domain.PendingEntry(
        id=orm_entry.id,
        raw_transaction_id=orm_entry.raw_transaction_id,
        property_id=orm_entry.property_id,
        type=domain.EntryType.parse(orm_entry.type),
        category=orm_entry.category,
        transaction_date=ensure_utc(orm_entry.transaction_date),
        description=orm_entry.description,
        created_at=ensure_utc(orm_entry.created_at),
    )


def matching_rule_to_domain(orm_rule: ORMMatchingRule) -> domain.MatchingRule:
    """Convert SQLAlchemy MatchingRule model to domain MatchingRule entity.

    A rule whose stored conditions cannot be parsed maps with
    ``conditions=None`` so it is skipped rather than breaking evaluation.
    """
    try:
        conditions = parse_conditions(orm_rule.conditions)
    except ValidationError as e:
        logger.warning("Matching rule %s has malformed conditions: %s", orm_rule.id, e)
        conditions = None

    try:
        rule_type = domain.EntryType.parse(orm_rule.type)
    except ValueError:
        logger.warning("Matching rule %s has unknown type %r", orm_rule.id, orm_rule.type)
        rule_type = None

    return domain.MatchingRule(
        id=orm_rule.id,
        name=orm_rule.name,
        account_id=orm_rule.account_id,
        priority=orm_rule.priority,
        enabled=bool(orm_rule.enabled),
        conditions=conditions,
        property_id=orm_rule.property_id,
        type=rule_type,
        category=orm_rule.category,
    )


def sync_log_to_domain(orm_log: ORMSyncLog) -> domain.SyncLog:
    """Convert SQLAlchemy SyncLog model to domain SyncLog entity."""
    return domain.SyncLog(
        id=orm_log.id,
        account_id=orm_log.account_id,
        sync_type=orm_log.sync_type,
        status=domain.SyncStatus(orm_log.status),
        started_at=ensure_utc(orm_log.started_at),
        completed_at=ensure_utc(orm_log.completed_at),
        transactions_fetched=orm_log.transactions_fetched or 0,
        transactions_skipped=orm_log.transactions_skipped or 0,
        transactions_matched=orm_log.transactions_matched or 0,
        transactions_pending=orm_log.transactions_pending or 0,
        error_message=orm_log.error_message,
        webhook_event_id=orm_log.webhook_event_id,
    )
