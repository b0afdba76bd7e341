"""Money helpers.

All arithmetic runs on ``Decimal`` and rounds half-up to the cent, once per
derived amount. Persisted amounts are integer minor units (cents).
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Coerce a number or numeric string to a cent-rounded Decimal."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    return int(to_money(amount) * 100)


def from_cents(cents: int | None) -> Decimal:
    return (Decimal(cents or 0) / 100).quantize(CENT)


def format_money(amount: Decimal, currency: str = "EUR") -> str:
    symbol = "€" if currency == "EUR" else f"{currency} "
    return f"{symbol}{to_money(amount):.2f}"
