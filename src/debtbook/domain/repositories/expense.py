"""Expense ledger protocol used by the payment mirror."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol


@dataclass(frozen=True, slots=True)
class ExpenseEntry:
    """Expense row derived from a debt payment."""

    debt_payment_id: int
    title: str
    amount: Decimal
    category: str
    expense_date: date
    currency: str
    description: Optional[str] = None


class ExpenseLedger(Protocol):
    """Destination for mirrored debt payments.

    Implementations must be idempotent on ``entry.debt_payment_id``: recording
    the same entry twice returns the id of the first expense.
    """

    def record_expense(self, entry: ExpenseEntry) -> int:
        """Store the expense and return its id."""
        ...
