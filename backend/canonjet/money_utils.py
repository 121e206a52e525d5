from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional


# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


def amount_to_cents(value: Any) -> int:
    """
    Convert a decimal amount from the wire ("12.5", 12.5, 12) to integer cents.

    Rounds half-up to the cent. Raises ValueError for anything that is not a
    finite number.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            raise ValueError("amount must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError("amount must be a number")
    if not amount.is_finite():
        raise ValueError("amount must be a number")
    cents = (amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def cents_to_amount(cents: Optional[int]) -> Optional[float]:
    """Authoritative cents -> display amount for JSON responses."""
    if cents is None:
        return None
    return float(Decimal(int(cents)) / 100)


def format_amount(cents: Optional[int]) -> str:
    """Cents -> plain text amount ("12.50") for CSV exports."""
    if cents is None:
        return ""
    return f"{Decimal(int(cents)) / 100:.2f}"
