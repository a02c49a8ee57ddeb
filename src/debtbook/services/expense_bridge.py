"""Mirror debt payments into the expense ledger through an outbox."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from sqlmodel import Session

from ..domain.repositories.expense import ExpenseEntry, ExpenseLedger
from ..infra.repositories.expense import SQLModelExpenseOutboxRepository
from ..logging_config import get_logger
from ..models.debt import Debt, DebtPayment
from ..models.expense import OUTBOX_DELIVERED, ExpenseOutbox

logger = get_logger("expense_bridge")

EXPENSE_CATEGORY = "bills"


class ExpenseLedgerBridge:
    """Stages expense mirrors inside payment transactions and delivers them later.

    The payment ledger is authoritative. An outbox row is written in the same
    transaction as the payment; delivery to the expense ledger happens after
    commit and may fail without affecting the payment. Failed rows stay
    pending and are retried by :meth:`flush_pending`.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        expense_ledger: ExpenseLedger,
    ) -> None:
        self.expense_ledger = expense_ledger
        self.outbox = SQLModelExpenseOutboxRepository(session_factory)

    def stage(
        self,
        session: Session,
        *,
        debt: Debt,
        payment: DebtPayment,
        title: str,
        description: str,
    ) -> ExpenseOutbox:
        """Add the outbox row for *payment* to the caller's open transaction."""

        if payment.id is None:
            raise ValueError("Payment must be flushed before staging its expense")
        row = ExpenseOutbox(
            debt_id=debt.id,
            debt_payment_id=payment.id,
            title=title,
            amount=payment.amount,
            category=EXPENSE_CATEGORY,
            expense_date=payment.payment_date,
            description=description,
            currency=debt.currency,
        )
        session.add(row)
        session.flush()
        return row

    def deliver(self, outbox_id: int) -> bool:
        """Push one outbox row to the expense ledger; return True when delivered."""

        row = self.outbox.get_by_id(outbox_id)
        if row is None:
            logger.warning("Expense outbox row vanished", extra={"outbox_id": outbox_id})
            return False
        if row.status == OUTBOX_DELIVERED:
            return True

        entry = ExpenseEntry(
            debt_payment_id=row.debt_payment_id,
            title=row.title,
            amount=row.amount,
            category=row.category,
            expense_date=row.expense_date,
            currency=row.currency,
            description=row.description,
        )
        row.attempts += 1
        try:
            row.expense_id = self.expense_ledger.record_expense(entry)
        except Exception as exc:
            row.last_error = str(exc)[:255]
            self.outbox.save(row)
            logger.error(
                "Failed to mirror debt payment into expenses",
                exc_info=True,
                extra={
                    "outbox_id": row.id,
                    "debt_payment_id": row.debt_payment_id,
                    "attempts": row.attempts,
                },
            )
            return False

        row.status = OUTBOX_DELIVERED
        row.last_error = None
        row.delivered_at = datetime.now(timezone.utc)
        self.outbox.save(row)
        logger.info(
            "Mirrored debt payment into expenses",
            extra={"debt_payment_id": row.debt_payment_id, "expense_id": row.expense_id},
        )
        return True

    def flush_pending(self, limit: int = 100) -> int:
        """Retry pending rows oldest first; return how many were delivered."""

        delivered = 0
        for row in self.outbox.list_pending(limit=limit):
            if self.deliver(row.id):
                delivered += 1
        return delivered
