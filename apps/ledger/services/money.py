"""
Money conversion helpers.

Amounts are ``Decimal`` with two places wherever they touch the database
or the API; the balance algorithms work on integer cents so that no
rounding error can accumulate between operations.
"""

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')

# Remaining magnitudes below this are treated as settled
SETTLE_EPSILON_CENTS = 1


def quantize(amount) -> Decimal:
    """Round any numeric value to two decimal places."""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount) -> int:
    return int(quantize(amount) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)
