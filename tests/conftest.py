"""Pytest configuration and shared fixtures for DebtBook tests.

This module provides database fixtures, ledger wiring and test doubles for
testing the debt ledger without touching a real app database.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlmodel import Session

from debtbook.config import BaseConfig
from debtbook.domain.repositories.expense import ExpenseEntry
from debtbook.infra.database import create_db_engine, init_database
from debtbook.infra.repositories import SQLModelExpenseRepository
from debtbook.services.expense_bridge import ExpenseLedgerBridge
from debtbook.services.installments import generate_installments
from debtbook.services.ledger import DebtLedger

TODAY = date(2024, 3, 1)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def config(tmp_path, monkeypatch):
    """Configuration pointing at an isolated data directory."""
    monkeypatch.delenv("DEBTBOOK_DATABASE_URL", raising=False)
    monkeypatch.delenv("DEBTBOOK_DEFAULT_CURRENCY", raising=False)
    return BaseConfig(data_dir=tmp_path)


@pytest.fixture(scope="function")
def db_engine(config):
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine with all tables created
    """
    engine = create_db_engine(config)
    init_database(engine)

    yield engine

    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching the ``Callable[[], Session]`` repository contract."""

    def factory():
        return Session(db_engine, expire_on_commit=False)

    return factory


# =============================================================================
# Ledger Fixtures
# =============================================================================


class FailingExpenseLedger:
    """Expense ledger double whose writes always fail."""

    def __init__(self) -> None:
        self.calls = 0

    def record_expense(self, entry: ExpenseEntry) -> int:
        self.calls += 1
        raise RuntimeError("expense store offline")


@pytest.fixture
def expense_repo(session_factory):
    return SQLModelExpenseRepository(session_factory)


@pytest.fixture
def expense_bridge(session_factory, expense_repo):
    return ExpenseLedgerBridge(session_factory, expense_repo)


@pytest.fixture
def ledger(session_factory, expense_bridge):
    """Ledger with a fixed clock (``TODAY``) and the local expense ledger."""
    return DebtLedger(session_factory, expense_bridge=expense_bridge, today=lambda: TODAY)


@pytest.fixture
def failing_expenses():
    return FailingExpenseLedger()


@pytest.fixture
def flaky_ledger(session_factory, failing_expenses):
    """Ledger whose expense mirror is down."""
    bridge = ExpenseLedgerBridge(session_factory, failing_expenses)
    return DebtLedger(session_factory, expense_bridge=bridge, today=lambda: TODAY)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def debt_factory(ledger):
    """Factory for creating debts through the ledger.

    Returns:
        Callable: Function that creates a debt and returns its id
    """

    def _create_debt(
        debtor_name: str = "Ahmed",
        total_amount: Decimal | str = "120000",
        start_date: date = date(2024, 1, 1),
        debt_type: str = "debt",
        due_date: date | None = None,
        installments: int | None = None,
        frequency: str = "monthly",
        direction: str = "owed_by_me",
        description: str | None = None,
    ) -> int:
        """Create a debt with sensible defaults.

        Args:
            installments: When set, generate this many installments from start_date
        """
        schedule = None
        if installments:
            schedule = generate_installments(total_amount, installments, start_date, frequency)
        return ledger.create_debt(
            debtor_name,
            total_amount,
            start_date,
            debt_type,
            due_date=due_date,
            description=description,
            installments=schedule,
            direction=direction,
        )

    return _create_debt


def assert_ledger_balanced(ledger: DebtLedger, debt_id: int) -> None:
    """Payments must account for exactly what left the balance."""
    debt = ledger.get_debt(debt_id)
    paid = ledger.total_paid(debt_id)
    assert paid == sum((p.amount for p in ledger.list_payments(debt_id)), Decimal("0"))
    assert paid == debt.total_amount - debt.remaining_amount
    assert debt.remaining_amount >= 0
    assert debt.is_paid == (debt.remaining_amount == 0)
