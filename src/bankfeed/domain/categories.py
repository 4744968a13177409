"""Closed category vocabulary for ledger entries."""

from typing import Optional

from bankfeed.domain.entities import EntryType

INCOME_CATEGORIES = (
    "Rent",
    "Security Deposit",
    "Late Fee",
    "Lease Fee",
)

EXPENSE_CATEGORIES = (
    "Maintenance",
    "Repair",
    "Utilities",
    "Insurance",
    "Property Tax",
    "Management Fee",
    "Legal Fee",
    "Transport",
    "Other",
)

CATEGORIES_BY_TYPE: dict[EntryType, tuple[str, ...]] = {
    EntryType.INCOME: INCOME_CATEGORIES,
    EntryType.EXPENSE: EXPENSE_CATEGORIES,
}


def is_valid_type_category(entry_type: Optional[EntryType | str], category: Optional[str]) -> bool:
    """Check that a category belongs to the vocabulary of the given type.

    Args:
        entry_type: Income or Expense (enum or string)
        category: Category name, matched exactly

    Returns:
        True if the combination is valid
    """
    if entry_type is None or category is None:
        return False
    try:
        parsed = EntryType.parse(entry_type)
    except ValueError:
        return False
    return category in CATEGORIES_BY_TYPE[parsed]


def categories_for(entry_type: EntryType | str) -> tuple[str, ...]:
    """Return the allowed categories for a type."""
    parsed = EntryType.parse(entry_type)
    if parsed is None:
        raise ValueError("Entry type is required")
    return CATEGORIES_BY_TYPE[parsed]
