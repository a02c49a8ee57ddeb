"""SQLModel implementation of the expense ledger and its outbox."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from sqlmodel import Session, select

from ...domain.repositories.expense import ExpenseEntry
from ...models.expense import OUTBOX_PENDING, Expense, ExpenseOutbox


class SQLModelExpenseRepository:
    """Local expense ledger; satisfies the ``ExpenseLedger`` protocol."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record_expense(self, entry: ExpenseEntry) -> int:
        """Insert the mirrored expense unless this payment was already recorded."""
        with self.session_factory() as session:
            existing = session.exec(
                select(Expense).where(Expense.debt_payment_id == entry.debt_payment_id)
            ).first()
            if existing is not None:
                return existing.id
            expense = Expense(
                title=entry.title,
                amount=entry.amount,
                category=entry.category,
                expense_date=entry.expense_date,
                description=entry.description,
                currency=entry.currency,
                debt_payment_id=entry.debt_payment_id,
            )
            session.add(expense)
            session.commit()
            session.refresh(expense)
            return expense.id

    def list_all(
        self,
        *,
        category: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Expense]:
        """List expenses, newest first, optionally filtered."""
        with self.session_factory() as session:
            statement = select(Expense)
            if category is not None:
                statement = statement.where(Expense.category == category)
            if start_date is not None:
                statement = statement.where(Expense.expense_date >= start_date)
            if end_date is not None:
                statement = statement.where(Expense.expense_date <= end_date)
            statement = statement.order_by(
                Expense.expense_date.desc(),  # type: ignore[attr-defined]
                Expense.id.desc(),  # type: ignore[union-attr]
            )
            return list(session.exec(statement).all())

    def get_by_payment(self, debt_payment_id: int) -> Optional[Expense]:
        with self.session_factory() as session:
            return session.exec(
                select(Expense).where(Expense.debt_payment_id == debt_payment_id)
            ).first()


class SQLModelExpenseOutboxRepository:
    """Queue of expense mirrors waiting for delivery."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_by_id(self, outbox_id: int) -> Optional[ExpenseOutbox]:
        with self.session_factory() as session:
            return session.get(ExpenseOutbox, outbox_id)

    def list_pending(self, limit: int = 100) -> list[ExpenseOutbox]:
        """Oldest pending rows first."""
        with self.session_factory() as session:
            statement = (
                select(ExpenseOutbox)
                .where(ExpenseOutbox.status == OUTBOX_PENDING)
                .order_by(ExpenseOutbox.id)
                .limit(limit)
            )
            return list(session.exec(statement).all())

    def save(self, row: ExpenseOutbox) -> ExpenseOutbox:
        with self.session_factory() as session:
            merged = session.merge(row)
            session.commit()
            session.refresh(merged)
            return merged


__all__ = ["SQLModelExpenseOutboxRepository", "SQLModelExpenseRepository"]
