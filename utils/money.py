"""
Decimal helpers for money amounts and percentages.
Amounts are carried as Decimal end to end and rounded only for storage and display.
"""
from decimal import ROUND_HALF_UP, Decimal

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Coerce int/float/str/Decimal/None to Decimal (None -> 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def safe_percentage(numerator, denominator) -> Decimal:
    """numerator / denominator * 100, or 0 when the denominator is not positive."""
    denominator = to_decimal(denominator)
    if denominator <= 0:
        return ZERO
    return to_decimal(numerator) / denominator * 100


def money_to_json(value) -> float | None:
    """Render a Decimal amount as a JSON number (2 places)."""
    if value is None:
        return None
    return float(round_money(value))
