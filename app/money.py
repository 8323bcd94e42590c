"""
Conversions between API decimal amounts and stored integer cents.

Balances are exchanged as Decimal values with two fractional digits and
stored as integer cents, so every sum and comparison in the database is
exact integer arithmetic.
"""

from decimal import Decimal

AMOUNT_LIMIT = Decimal("999999999999.99")
ZERO = Decimal("0.00")


def to_cents(amount: Decimal) -> int:
    """Convert a 2-decimal amount to integer cents (Decimal("10.50") -> 1050)."""
    return int(amount.scaleb(2))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a 2-decimal amount (1050 -> Decimal("10.50"))."""
    return Decimal(cents).scaleb(-2)
