"""Utility functions for bankfeed."""

from bankfeed.utils.date_parser import parse_timestamp, format_timestamp, ensure_utc, utcnow
from bankfeed.utils.amount_parser import minor_units_to_decimal
from bankfeed.utils.crypto import CredentialCipher

__all__ = [
    "parse_timestamp",
    "format_timestamp",
    "ensure_utc",
    "utcnow",
    "minor_units_to_decimal",
    "CredentialCipher",
]
