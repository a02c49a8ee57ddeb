"""Concrete repository implementations using SQLModel."""

from .debt import (
    SQLModelDebtPaymentRepository,
    SQLModelDebtRepository,
    SQLModelInstallmentRepository,
)
from .expense import SQLModelExpenseOutboxRepository, SQLModelExpenseRepository

__all__ = [
    "SQLModelDebtPaymentRepository",
    "SQLModelDebtRepository",
    "SQLModelExpenseOutboxRepository",
    "SQLModelExpenseRepository",
    "SQLModelInstallmentRepository",
]
