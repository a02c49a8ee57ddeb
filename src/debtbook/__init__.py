"""DebtBook: debt and installment ledger."""

from __future__ import annotations

from .config import BaseConfig, DevConfig
from .context import LedgerContext, create_ledger_context
from .services.installments import ScheduledInstallment, generate_installments
from .services.ledger import DebtLedger, DebtNotFoundError, DueItem, InstallmentNotFoundError

__all__ = [
    "BaseConfig",
    "DebtLedger",
    "DebtNotFoundError",
    "DevConfig",
    "DueItem",
    "InstallmentNotFoundError",
    "LedgerContext",
    "ScheduledInstallment",
    "create_ledger_context",
    "generate_installments",
]
