"""Amount conversion utilities."""

from decimal import Decimal

# Currencies whose minor unit is not 1/100 of the major unit
_MINOR_UNIT_EXPONENTS = {
    "JPY": 0,
    "KRW": 0,
    "ISK": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
    "TND": 3,
}


def minor_units_to_decimal(amount: int, currency: str = "GBP") -> Decimal:
    """Convert an integer minor-unit amount into decimal major units.

    Examples:
        minor_units_to_decimal(1234)    -> Decimal("12.34")
        minor_units_to_decimal(-1234)   -> Decimal("-12.34")
        minor_units_to_decimal(500, "JPY") -> Decimal("500")

    Args:
        amount: Signed amount in minor units (pence, cents)
        currency: ISO currency code

    Returns:
        Decimal amount in major units, sign preserved

    Raises:
        ValueError: If the amount is not an integer
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        if isinstance(amount, str) and amount.strip().lstrip("-").isdigit():
            amount = int(amount.strip())
        else:
            raise ValueError(f"Amount must be an integer number of minor units, got {amount!r}")

    exponent = _MINOR_UNIT_EXPONENTS.get((currency or "").upper(), 2)
    return Decimal(amount).scaleb(-exponent)
