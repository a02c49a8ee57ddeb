"""SQLModel table exports."""

from .debt import (
    DEBT_DIRECTIONS,
    DEBT_TYPE_LABELS,
    DEBT_TYPES,
    Debt,
    DebtInstallment,
    DebtPayment,
)
from .expense import OUTBOX_DELIVERED, OUTBOX_PENDING, Expense, ExpenseOutbox

__all__ = [
    "DEBT_DIRECTIONS",
    "DEBT_TYPES",
    "DEBT_TYPE_LABELS",
    "Debt",
    "DebtInstallment",
    "DebtPayment",
    "Expense",
    "ExpenseOutbox",
    "OUTBOX_DELIVERED",
    "OUTBOX_PENDING",
]
