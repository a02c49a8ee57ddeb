"""Repository protocol definitions for domain layer."""

from .debt import DebtRepository, InstallmentRepository, PaymentRepository
from .expense import ExpenseEntry, ExpenseLedger

__all__ = [
    "DebtRepository",
    "ExpenseEntry",
    "ExpenseLedger",
    "InstallmentRepository",
    "PaymentRepository",
]
