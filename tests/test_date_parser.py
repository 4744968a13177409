"""Tests for timestamp parsing."""

import pytest
from datetime import datetime, timedelta, timezone

from bankfeed.utils.date_parser import ensure_utc, format_timestamp, parse_timestamp, utcnow


def test_parse_zulu_timestamp():
    """Test parsing an upstream timestamp with milliseconds."""
    result = parse_timestamp("2024-01-15T10:30:00.000Z")
    assert result == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


def test_parse_offset_timestamp():
    """Test offsets are converted to UTC."""
    result = parse_timestamp("2024-01-15T10:30:00+01:00")
    assert result == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
    assert result.tzinfo is timezone.utc


def test_parse_naive_timestamp_is_utc():
    """Test a timestamp without offset is read as UTC."""
    assert parse_timestamp("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


def test_parse_datetime_passthrough():
    """Test datetimes are normalised rather than parsed."""
    local = datetime(2024, 1, 15, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert parse_timestamp(local) == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", ["", "   ", "not a date", "2024-13-45T00:00:00Z"])
def test_parse_invalid(value):
    """Test invalid timestamps raise ValueError."""
    with pytest.raises(ValueError):
        parse_timestamp(value)


def test_format_timestamp():
    """Test RFC3339 output without fractional seconds."""
    value = datetime(2024, 1, 15, 10, 30, 5, 123456, tzinfo=timezone.utc)
    assert format_timestamp(value) == "2024-01-15T10:30:05Z"


def test_format_naive_timestamp():
    assert format_timestamp(datetime(2024, 1, 1)) == "2024-01-01T00:00:00Z"


def test_ensure_utc():
    assert ensure_utc(None) is None
    assert ensure_utc(datetime(2024, 1, 1)).tzinfo is timezone.utc


def test_utcnow_is_aware():
    assert utcnow().tzinfo is timezone.utc
