"""
Money helpers.

DESIGN DECISION: Amounts cross the model boundary as Decimal with at most
two places, but every stored figure and every running total is an integer
count of minor units (cents). Integer addition is exact, so the ledger's
``balance == income - expenses`` invariant holds over any number of
transactions.
"""

from decimal import ROUND_HALF_UP, Decimal

MINOR_UNITS_PER_MAJOR = 100
_CENT = Decimal("0.01")

# Largest magnitude any single amount or balance may have. Keeps every
# conversion to minor units inside the default decimal precision.
MAX_AMOUNT = Decimal("999999999999.99")


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units."""
    quantized = Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)
    return int(quantized * MINOR_UNITS_PER_MAJOR)


def from_minor_units(minor: int) -> Decimal:
    """Convert integer minor units back to a two-place Decimal."""
    return (Decimal(int(minor)) / MINOR_UNITS_PER_MAJOR).quantize(_CENT)


def format_currency(amount: Decimal, symbol: str = "₱") -> str:
    """
    Format an amount for display, e.g. ``₱1,234.50`` or ``-₱30.00``.
    """
    value = Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
