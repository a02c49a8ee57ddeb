"""Decimal helpers for currency amounts."""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

MONEY_PLACES = Decimal("0.01")

Amount = Union[Decimal, int, float, str]


def to_money(value: Amount) -> Decimal:
    """Return *value* as a Decimal rounded half-up to cents.

    Floats go through ``str`` first so ``0.1`` becomes ``Decimal("0.10")``
    rather than its binary expansion.
    """

    if isinstance(value, bool):
        raise ValueError("Amount must be numeric")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def split_share(total: Decimal, parts: int) -> Decimal:
    """Return ``total / parts`` truncated to cents."""

    return (total / parts).quantize(MONEY_PLACES, rounding=ROUND_DOWN)


def format_money(amount: Decimal, currency: str) -> str:
    return f"{amount:,.2f} {currency}"
