"""SQLModel implementation of the debt ledger repositories."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from ...models.debt import Debt, DebtInstallment, DebtPayment
from ...models.expense import OUTBOX_PENDING, ExpenseOutbox


class SQLModelDebtRepository:
    """SQLModel-based debt repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, debt_id: int) -> Optional[Debt]:
        """Retrieve a debt by ID."""
        with self.session_factory() as session:
            return session.get(Debt, debt_id)

    def list_all(self) -> list[Debt]:
        """List all debts ordered by due date, undated debts last."""
        with self.session_factory() as session:
            statement = select(Debt).order_by(
                Debt.due_date.is_(None),  # type: ignore[union-attr]
                Debt.due_date,
                Debt.id,
            )
            return list(session.exec(statement).all())

    def list_unpaid(self) -> list[Debt]:
        """List debts that still carry a balance."""
        with self.session_factory() as session:
            statement = select(Debt).where(Debt.is_paid == False).order_by(Debt.id)  # noqa: E712
            return list(session.exec(statement).all())

    def create(self, debt: Debt, installments: list[DebtInstallment]) -> Debt:
        """Persist a debt and its initial installments in one transaction."""
        with self.session_factory() as session:
            session.add(debt)
            session.flush()
            for number, installment in enumerate(installments, start=1):
                installment.debt_id = debt.id
                installment.installment_number = number
                session.add(installment)
            session.commit()
            session.refresh(debt)
            return debt

    def update(self, debt: Debt) -> Debt:
        """Update an existing debt."""
        with self.session_factory() as session:
            merged = session.merge(debt)
            session.commit()
            session.refresh(merged)
            return merged

    def delete(self, debt_id: int) -> bool:
        """Delete a debt, its installments, payments and undelivered mirrors."""
        with self.session_factory() as session:
            debt = session.get(Debt, debt_id)
            if debt is None:
                return False
            pending = session.exec(
                select(ExpenseOutbox)
                .where(ExpenseOutbox.debt_id == debt_id)
                .where(ExpenseOutbox.status == OUTBOX_PENDING)
            ).all()
            for row in pending:
                session.delete(row)
            # Payments reference installments, so they go first.
            for payment in session.exec(
                select(DebtPayment).where(DebtPayment.debt_id == debt_id)
            ).all():
                session.delete(payment)
            session.flush()
            session.delete(debt)
            session.commit()
            return True

    def summarize(self) -> dict[str, Decimal | int]:
        """Outstanding balance per direction plus the open debt count."""
        with self.session_factory() as session:
            rows = session.exec(
                select(Debt.direction, func.count(Debt.id), func.sum(Debt.remaining_amount))
                .where(Debt.is_paid == False)  # noqa: E712
                .group_by(Debt.direction)
            ).all()
        summary: dict[str, Decimal | int] = {
            "owed_by_me": Decimal("0.00"),
            "owed_to_me": Decimal("0.00"),
            "open_count": 0,
        }
        for direction, count, total in rows:
            summary[direction] = Decimal(str(total or 0)).quantize(Decimal("0.01"))
            summary["open_count"] += count
        return summary


class SQLModelInstallmentRepository:
    """SQLModel-based installment repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_by_id(self, installment_id: int) -> Optional[DebtInstallment]:
        """Retrieve an installment by primary key."""
        with self.session_factory() as session:
            return session.get(DebtInstallment, installment_id)

    def list_for_debt(self, debt_id: int) -> list[DebtInstallment]:
        """List a debt's installments ordered by due date."""
        with self.session_factory() as session:
            statement = (
                select(DebtInstallment)
                .where(DebtInstallment.debt_id == debt_id)
                .order_by(DebtInstallment.due_date, DebtInstallment.installment_number)
            )
            return list(session.exec(statement).all())

    def list_unpaid_due(
        self, *, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[DebtInstallment]:
        """List unpaid installments of open debts due within [start, end]."""
        with self.session_factory() as session:
            statement = (
                select(DebtInstallment)
                .join(Debt, Debt.id == DebtInstallment.debt_id)
                .where(DebtInstallment.is_paid == False)  # noqa: E712
                .where(Debt.is_paid == False)  # noqa: E712
            )
            if start is not None:
                statement = statement.where(DebtInstallment.due_date >= start)
            if end is not None:
                statement = statement.where(DebtInstallment.due_date <= end)
            statement = statement.order_by(DebtInstallment.due_date, DebtInstallment.id)
            return list(session.exec(statement).all())


class SQLModelDebtPaymentRepository:
    """Read-only access to the payment history; payments are written by the ledger."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def list_for_debt(self, debt_id: int) -> list[DebtPayment]:
        """List a debt's payments, newest first."""
        with self.session_factory() as session:
            statement = (
                select(DebtPayment)
                .where(DebtPayment.debt_id == debt_id)
                .order_by(
                    DebtPayment.payment_date.desc(),  # type: ignore[attr-defined]
                    DebtPayment.created_at.desc(),  # type: ignore[attr-defined]
                    DebtPayment.id.desc(),  # type: ignore[union-attr]
                )
            )
            return list(session.exec(statement).all())

    def total_paid(self, debt_id: int) -> Decimal:
        """Sum of payments recorded against a debt."""
        payments = self.list_for_debt(debt_id)
        return sum((payment.amount for payment in payments), Decimal("0.00"))


__all__ = [
    "SQLModelDebtPaymentRepository",
    "SQLModelDebtRepository",
    "SQLModelInstallmentRepository",
]
