"""Installment schedule generation."""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Union

from ..money import Amount, split_share

FREQUENCIES = ("weekly", "monthly")

DateLike = Union[date, str]


@dataclass(frozen=True, slots=True)
class ScheduledInstallment:
    """One generated installment before it is persisted."""

    amount: Decimal
    due_date: date


def coerce_date(value: DateLike) -> date:
    """Accept ``date``/``datetime`` objects or ISO ``YYYY-MM-DD`` strings."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD") from exc


def add_months(start: date, months: int) -> date:
    """Return *start* shifted by whole calendar months.

    The day of month is clamped to the length of the target month, so
    Jan 31 + 1 month is the last day of February.
    """

    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, monthrange(year, month)[1])
    return date(year, month, day)


def next_due_date(previous: date, frequency: str) -> date:
    """Return the due date one period after *previous*."""

    if frequency == "weekly":
        return previous + timedelta(days=7)
    if frequency == "monthly":
        return add_months(previous, 1)
    raise ValueError(f"Unknown installment frequency {frequency!r}; use one of {FREQUENCIES}")


def generate_installments(
    total_amount: Amount,
    number_of_installments: int,
    start_date: DateLike,
    frequency: str,
) -> list[ScheduledInstallment]:
    """Split *total_amount* into equal installments with due dates.

    Every installment but the last gets ``total / n`` truncated to cents; the
    last one takes whatever remains, so the amounts always add up to the
    total exactly. The first installment is due on *start_date* and each
    following one a week or a calendar month after the one before it. A
    clamped day carries forward: Jan 31, Feb 29, Mar 29.
    """

    if isinstance(number_of_installments, bool) or number_of_installments < 1:
        raise ValueError("number_of_installments must be at least 1")
    if frequency not in FREQUENCIES:
        raise ValueError(f"Unknown installment frequency {frequency!r}; use one of {FREQUENCIES}")

    total = total_amount if isinstance(total_amount, Decimal) else Decimal(str(total_amount))
    start = coerce_date(start_date)
    share = split_share(total, number_of_installments)

    schedule: list[ScheduledInstallment] = []
    allocated = Decimal("0")
    due = start
    for index in range(number_of_installments):
        is_last = index == number_of_installments - 1
        amount = total - allocated if is_last else share
        allocated += amount
        schedule.append(ScheduledInstallment(amount=amount, due_date=due))
        due = next_due_date(due, frequency)
    return schedule


__all__ = [
    "FREQUENCIES",
    "ScheduledInstallment",
    "add_months",
    "coerce_date",
    "generate_installments",
    "next_due_date",
]
