"""SQLAlchemy models for bankfeed database."""

import uuid
from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    DateTime,
    Numeric,
    Boolean,
    Index,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class LinkedAccount(Base):
    """Connected upstream bank account. Token columns hold ciphertext only."""

    __tablename__ = "linked_accounts"

    id = Column(String(36), primary_key=True, default=_new_id)
    upstream_account_id = Column(String, unique=True, nullable=False)
    account_name = Column(String, nullable=False)
    account_type = Column(String, nullable=False)
    provider = Column(String, nullable=False, default="monzo")
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)
    sync_enabled = Column(Boolean, nullable=False, default=True)
    sync_from_date = Column(DateTime, nullable=False)
    last_sync_at = Column(DateTime, nullable=True)
    last_sync_status = Column(String, nullable=False, default="never_synced")
    webhook_id = Column(String, unique=True, nullable=True)
    webhook_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    raw_transactions = relationship(
        "RawTransaction", back_populates="account", cascade="all, delete-orphan"
    )
    matching_rules = relationship(
        "MatchingRule", back_populates="account", cascade="all, delete-orphan"
    )
    sync_logs = relationship("SyncLog", back_populates="account", cascade="all, delete-orphan")


class Property(Base):
    """Property that ledger entries are booked against."""

    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class RawTransaction(Base):
    """Upstream transaction as imported."""

    __tablename__ = "raw_transactions"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("linked_accounts.id", ondelete="CASCADE"), nullable=False)
    external_id = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GBP")
    description = Column(String, nullable=False)
    counterparty_name = Column(String, nullable=True)
    reference = Column(String, nullable=True)
    merchant = Column(String, nullable=True)
    category = Column(String, nullable=True)
    transaction_date = Column(DateTime, nullable=False)
    settled_date = Column(DateTime, nullable=True)
    imported_at = Column(DateTime, default=_now, nullable=False)
    ledger_entry_id = Column(String(36), ForeignKey("ledger_entries.id", ondelete="SET NULL"), unique=True, nullable=True)
    pending_entry_id = Column(String(36), unique=True, nullable=True)

    # Idempotency key: one row per upstream transaction per account
    __table_args__ = (
        UniqueConstraint("account_id", "external_id", name="uq_raw_account_external_id"),
        Index("ix_raw_account_transaction_date", "account_id", "transaction_date"),
    )

    # Relationships
    account = relationship("LinkedAccount", back_populates="raw_transactions")
    ledger_entry = relationship("LedgerEntry", foreign_keys=[ledger_entry_id])
    pending_entry = relationship(
        "PendingEntry", back_populates="raw_transaction", uselist=False, cascade="all, delete-orphan"
    )


class LedgerEntry(Base):
    """Classified ledger entry."""

    __tablename__ = "ledger_entries"

    id = Column(String(36), primary_key=True, default=_new_id)
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    type = Column(String, nullable=False)
    category = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_date = Column(DateTime, nullable=False)
    description = Column(String, nullable=False)
    is_imported = Column(Boolean, nullable=False, default=False)
    imported_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)


class PendingEntry(Base):
    """Partially classified raw transaction awaiting review."""

    __tablename__ = "pending_entries"

    id = Column(String(36), primary_key=True, default=_new_id)
    raw_transaction_id = Column(
        String(36), ForeignKey("raw_transactions.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    property_id = Column(String(36), nullable=True)
    type = Column(String, nullable=True)
    category = Column(String, nullable=True)
    transaction_date = Column(DateTime, nullable=False)
    description = Column(String, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    raw_transaction = relationship("RawTransaction", back_populates="pending_entry")


class MatchingRule(Base):
    """Matching rule; conditions are stored as JSON text."""

    __tablename__ = "matching_rules"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("linked_accounts.id", ondelete="CASCADE"), nullable=True)
    priority = Column(Integer, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    name = Column(String, nullable=False)
    conditions = Column(Text, nullable=False)
    property_id = Column(String(36), nullable=True)
    type = Column(String, nullable=True)
    category = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    __table_args__ = (Index("ix_rule_account_priority", "account_id", "priority"),)

    account = relationship("LinkedAccount", back_populates="matching_rules")


class SyncLog(Base):
    """One manual or webhook sync run."""

    __tablename__ = "sync_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("linked_accounts.id", ondelete="CASCADE"), nullable=False)
    sync_type = Column(String, nullable=False)
    status = Column(String, nullable=False)
    started_at = Column(DateTime, default=_now, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    transactions_fetched = Column(Integer, nullable=False, default=0)
    transactions_skipped = Column(Integer, nullable=False, default=0)
    transactions_matched = Column(Integer, nullable=False, default=0)
    transactions_pending = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    webhook_event_id = Column(String, nullable=True)

    __table_args__ = (Index("ix_sync_log_account_started", "account_id", "started_at"),)

    account = relationship("LinkedAccount", back_populates="sync_logs")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
