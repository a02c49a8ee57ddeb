"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from .config import BaseConfig
from .domain.repositories.expense import ExpenseLedger
from .infra.database import bootstrap_database
from .infra.repositories import SQLModelExpenseRepository
from .services.expense_bridge import ExpenseLedgerBridge
from .services.ledger import DebtLedger


@dataclass
class LedgerContext:
    """Wired-up ledger with its storage and collaborators."""

    config: BaseConfig
    engine: Engine
    session_factory: Callable[[], Session]
    expense_ledger: ExpenseLedger
    expense_bridge: ExpenseLedgerBridge
    ledger: DebtLedger

    def close(self) -> None:
        self.engine.dispose()


def create_ledger_context(
    config: Optional[BaseConfig] = None,
    *,
    expense_ledger: Optional[ExpenseLedger] = None,
) -> LedgerContext:
    """Create the engine, schema and ledger for *config*.

    The local ``expense`` table serves as the expense ledger unless another
    implementation is passed in.
    """

    if config is None:
        config = BaseConfig()

    engine, session_factory = bootstrap_database(config)

    expenses = expense_ledger or SQLModelExpenseRepository(session_factory)
    bridge = ExpenseLedgerBridge(session_factory, expenses)
    ledger = DebtLedger(
        session_factory,
        expense_bridge=bridge,
        default_currency=config.DEFAULT_CURRENCY,
    )

    return LedgerContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        expense_ledger=expenses,
        expense_bridge=bridge,
        ledger=ledger,
    )
