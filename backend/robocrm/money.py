"""
Money helpers.

Amounts are accumulated as Decimal at full precision and only rounded to
two places at presentation/persistence boundaries.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")

CURRENCIES = ("PLN", "USD", "EUR")


class MoneyError(ValueError):
    pass


def to_decimal(value: Any, *, field: str = "amount") -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise MoneyError(f"{field} must be a number")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, float):
        # repr() keeps the shortest round-tripping form (0.1 -> "0.1")
        dec = Decimal(repr(value))
    else:
        try:
            dec = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise MoneyError(f"{field} must be a number")
    if not dec.is_finite():
        raise MoneyError(f"{field} must be a finite number")
    return dec


def round_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_out(value: Any) -> float | None:
    """JSON-friendly 2dp float, None stays None."""
    if value is None:
        return None
    return float(round_money(value))


def normalize_currency(value: Any) -> str:
    code = str(value or "").strip().upper()
    if code not in CURRENCIES:
        raise MoneyError(f"currency must be one of {', '.join(CURRENCIES)}")
    return code
