"""Timestamp parsing utilities."""

from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as date_parser


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime.

    Naive datetimes are assumed to already be UTC (SQLite drops tzinfo).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an RFC3339 timestamp into an aware UTC datetime.

    Args:
        value: Timestamp string such as "2024-01-15T10:30:00.000Z", or a datetime

    Returns:
        Aware UTC datetime

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not value or not str(value).strip():
        raise ValueError("Empty timestamp")
    try:
        parsed = date_parser.isoparse(str(value).strip())
    except (ValueError, TypeError) as e:
        raise ValueError(f"Could not parse timestamp '{value}': {e}")
    return ensure_utc(parsed)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an RFC3339 UTC timestamp."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
