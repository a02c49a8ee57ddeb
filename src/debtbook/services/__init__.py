"""Service module exports."""

from . import expense_bridge, installments, ledger, reminders

__all__ = ["expense_bridge", "installments", "ledger", "reminders"]
