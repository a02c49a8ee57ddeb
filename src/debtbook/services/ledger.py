"""Debt ledger: creation, payments and due-date queries."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Iterator, Optional

from sqlmodel import Session, select

from ..domain.repositories.debt import DebtRepository, InstallmentRepository, PaymentRepository
from ..infra.repositories.debt import (
    SQLModelDebtPaymentRepository,
    SQLModelDebtRepository,
    SQLModelInstallmentRepository,
)
from ..logging_config import get_logger
from ..models.debt import DEBT_DIRECTIONS, DEBT_TYPES, Debt, DebtInstallment, DebtPayment
from ..money import Amount, format_money, to_money
from .expense_bridge import ExpenseLedgerBridge
from .installments import DateLike, ScheduledInstallment, coerce_date, generate_installments

logger = get_logger("ledger")

EDITABLE_FIELDS = frozenset(
    {"debtor_name", "start_date", "due_date", "description", "debt_type", "direction", "currency"}
)


class DebtNotFoundError(LookupError):
    """Raised when a debt id does not exist."""


class InstallmentNotFoundError(LookupError):
    """Raised when an installment id does not exist."""


@dataclass(frozen=True)
class DueItem:
    """A debt, or one of its installments, that is due."""

    debt: Debt
    installment: Optional[DebtInstallment] = None

    @property
    def due_date(self) -> date:
        if self.installment is not None:
            return self.installment.due_date
        return self.debt.due_date  # type: ignore[return-value]

    @property
    def amount_due(self) -> Decimal:
        if self.installment is not None:
            return self.installment.amount
        return self.debt.remaining_amount


class _DebtLocks:
    """One lock per debt id so balance updates on the same debt never interleave."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    @contextmanager
    def hold(self, debt_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(debt_id, threading.Lock())
        with lock:
            yield


class DebtLedger:
    """Entry point for every debt/installment/payment operation.

    Balances are only changed through :meth:`pay_installment` and
    :meth:`pay_debt`. Each payment runs in one database transaction while
    holding the debt's lock, and appends exactly one ``DebtPayment`` row.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]],
        *,
        expense_bridge: Optional[ExpenseLedgerBridge] = None,
        default_currency: str = "IQD",
        today: Callable[[], date] = date.today,
    ) -> None:
        self.session_factory = session_factory
        self.expense_bridge = expense_bridge
        self.default_currency = default_currency
        self.today = today
        self._locks = _DebtLocks()
        if session_factory is not None:
            self.debts: DebtRepository = SQLModelDebtRepository(session_factory)
            self.installments: InstallmentRepository = SQLModelInstallmentRepository(
                session_factory
            )
            self.payments: PaymentRepository = SQLModelDebtPaymentRepository(session_factory)

    def _require_storage(self) -> Callable[[], Session]:
        if self.session_factory is None:
            raise RuntimeError("Database not initialized")
        return self.session_factory

    # ------------------------------------------------------------------
    # Debts
    # ------------------------------------------------------------------

    def create_debt(
        self,
        debtor_name: str,
        total_amount: Amount,
        start_date: DateLike,
        debt_type: str,
        due_date: Optional[DateLike] = None,
        description: Optional[str] = None,
        currency: Optional[str] = None,
        installments: Optional[Iterable[ScheduledInstallment]] = None,
        direction: str = "owed_by_me",
    ) -> int:
        """Create a debt, and its installments when given; return the new id."""

        self._require_storage()
        name = (debtor_name or "").strip()
        if not name:
            raise ValueError("Debtor name is required")
        total = to_money(total_amount)
        if total <= 0:
            raise ValueError("Total amount must be positive")
        _check_choice("debt type", debt_type, DEBT_TYPES)
        _check_choice("direction", direction, DEBT_DIRECTIONS)

        # Numbered 1..N by the repository in the order given.
        rows = [
            DebtInstallment(
                amount=to_money(item.amount),
                due_date=coerce_date(item.due_date),
                installment_number=number,
            )
            for number, item in enumerate(installments or [], start=1)
        ]
        if rows and sum((row.amount for row in rows), Decimal("0")) != total:
            raise ValueError("Installment amounts must add up to the total amount")

        debt = Debt(
            debtor_name=name,
            total_amount=total,
            remaining_amount=total,
            start_date=coerce_date(start_date),
            due_date=coerce_date(due_date) if due_date else None,
            description=(description or "").strip() or None,
            debt_type=debt_type,
            direction=direction,
            currency=(currency or self.default_currency).upper(),
            is_paid=False,
        )
        created = self.debts.create(debt, rows)
        logger.info(
            "Debt created",
            extra={"debt_id": created.id, "installments": len(rows), "debt_type": debt_type},
        )
        return created.id  # type: ignore[return-value]

    def get_debt(self, debt_id: int) -> Debt:
        self._require_storage()
        debt = self.debts.get_by_id(debt_id)
        if debt is None:
            raise DebtNotFoundError("Debt not found")
        return debt

    def list_debts(self) -> list[Debt]:
        self._require_storage()
        return self.debts.list_all()

    def list_installments(self, debt_id: int) -> list[DebtInstallment]:
        self._require_storage()
        return self.installments.list_for_debt(debt_id)

    def list_payments(self, debt_id: int) -> list[DebtPayment]:
        self._require_storage()
        return self.payments.list_for_debt(debt_id)

    def total_paid(self, debt_id: int) -> Decimal:
        self._require_storage()
        return self.payments.total_paid(debt_id)

    def update_debt(self, debt_id: int, **changes) -> Debt:
        """Edit descriptive fields; amounts only change through payments."""

        self._require_storage()
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if "debt_type" in changes:
            _check_choice("debt type", changes["debt_type"], DEBT_TYPES)
        if "direction" in changes:
            _check_choice("direction", changes["direction"], DEBT_DIRECTIONS)
        if "debtor_name" in changes and not (changes["debtor_name"] or "").strip():
            raise ValueError("Debtor name is required")

        with self._locks.hold(debt_id):
            debt = self.get_debt(debt_id)
            for field, value in changes.items():
                if field in ("start_date", "due_date"):
                    value = coerce_date(value) if value else None
                    if field == "start_date" and value is None:
                        raise ValueError("Start date is required")
                elif field == "currency":
                    value = (value or self.default_currency).upper()
                elif field in ("debtor_name", "description") and value is not None:
                    value = value.strip() or None
                setattr(debt, field, value)
            updated = self.debts.update(debt)
        logger.info("Debt updated", extra={"debt_id": debt_id, "fields": sorted(changes)})
        return updated

    def delete_debt(self, debt_id: int) -> None:
        """Delete a debt together with its installments and payment history."""

        self._require_storage()
        with self._locks.hold(debt_id):
            if not self.debts.delete(debt_id):
                raise DebtNotFoundError("Debt not found")
        logger.info("Debt deleted", extra={"debt_id": debt_id})

    def reschedule_installments(
        self,
        debt_id: int,
        number_of_installments: int,
        start_date: DateLike,
        frequency: str,
    ) -> list[DebtInstallment]:
        """Replace the unpaid installments with a fresh schedule.

        Paid installments are kept as history. The new schedule splits the
        debt's remaining amount and continues the installment numbering.
        """

        factory = self._require_storage()
        with self._locks.hold(debt_id):
            with factory() as session:
                debt = session.get(Debt, debt_id)
                if debt is None:
                    raise DebtNotFoundError("Debt not found")
                if debt.is_paid:
                    raise ValueError("Debt is already settled")

                existing = session.exec(
                    select(DebtInstallment).where(DebtInstallment.debt_id == debt_id)
                ).all()
                last_paid_number = 0
                for installment in existing:
                    if installment.is_paid:
                        last_paid_number = max(last_paid_number, installment.installment_number)
                    else:
                        session.delete(installment)

                schedule = generate_installments(
                    debt.remaining_amount, number_of_installments, start_date, frequency
                )
                created = [
                    DebtInstallment(
                        debt_id=debt_id,
                        amount=item.amount,
                        due_date=item.due_date,
                        installment_number=last_paid_number + offset,
                    )
                    for offset, item in enumerate(schedule, start=1)
                ]
                session.add_all(created)
                session.commit()
                for installment in created:
                    session.refresh(installment)
        logger.info(
            "Installments rescheduled",
            extra={"debt_id": debt_id, "installments": len(created), "frequency": frequency},
        )
        return created

    def debt_summary(self) -> dict[str, Decimal | int]:
        self._require_storage()
        return self.debts.summarize()

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def pay_installment(self, installment_id: int, amount: Optional[Amount] = None) -> DebtPayment:
        """Mark an installment paid and apply the amount to its debt."""

        factory = self._require_storage()
        found = self.installments.get_by_id(installment_id)
        if found is None:
            raise InstallmentNotFoundError("Installment not found")

        with self._locks.hold(found.debt_id):
            with factory() as session:
                installment = session.get(DebtInstallment, installment_id)
                if installment is None:
                    raise InstallmentNotFoundError("Installment not found")
                debt = session.get(Debt, installment.debt_id)
                if debt is None:
                    raise DebtNotFoundError("Debt not found")
                if installment.is_paid:
                    raise ValueError("Installment is already paid")
                if debt.is_paid:
                    raise ValueError("Debt is already settled")

                if amount is None:
                    paid_amount = min(installment.amount, debt.remaining_amount)
                else:
                    paid_amount = to_money(amount)
                _check_payment_amount(paid_amount, debt)
                paid_on = self.today()

                installment.is_paid = True
                installment.paid_date = paid_on
                installment.amount = paid_amount
                session.add(installment)
                _apply_to_balance(debt, paid_amount)
                session.add(debt)

                payment = DebtPayment(
                    debt_id=debt.id,
                    amount=paid_amount,
                    payment_date=paid_on,
                    installment_id=installment.id,
                    description=f"Installment #{installment.installment_number} payment",
                )
                session.add(payment)
                session.flush()
                outbox_id = self._stage_expense(
                    session,
                    debt=debt,
                    payment=payment,
                    title=f"Installment payment - {debt.debtor_name}",
                    description=_describe(
                        f"Installment #{installment.installment_number} of "
                        f"{debt.type_label} - {debt.debtor_name}",
                        debt,
                    ),
                )
                session.commit()
                session.refresh(payment)

        logger.info(
            "Installment paid",
            extra={
                "debt_id": payment.debt_id,
                "installment_id": installment_id,
                "amount": str(paid_amount),
            },
        )
        self._deliver_expense(outbox_id)
        return payment

    def pay_debt(self, debt_id: int, amount: Optional[Amount] = None) -> DebtPayment:
        """Apply a payment to the debt as a whole; defaults to settling it."""

        factory = self._require_storage()
        with self._locks.hold(debt_id):
            with factory() as session:
                debt = session.get(Debt, debt_id)
                if debt is None:
                    raise DebtNotFoundError("Debt not found")
                if debt.is_paid:
                    raise ValueError("Debt is already settled")

                remaining_before = debt.remaining_amount
                paid_amount = remaining_before if amount is None else to_money(amount)
                _check_payment_amount(paid_amount, debt)
                paid_on = self.today()

                _apply_to_balance(debt, paid_amount)
                session.add(debt)

                if paid_amount == remaining_before:
                    note = "Paid in full"
                else:
                    note = f"Partial payment of {format_money(paid_amount, debt.currency)}"
                payment = DebtPayment(
                    debt_id=debt.id,
                    amount=paid_amount,
                    payment_date=paid_on,
                    description=note,
                )
                session.add(payment)
                session.flush()
                outbox_id = self._stage_expense(
                    session,
                    debt=debt,
                    payment=payment,
                    title=f"{debt.type_label} payment - {debt.debtor_name}",
                    description=_describe(f"{note} - {debt.debtor_name}", debt),
                )
                session.commit()
                session.refresh(payment)

        logger.info(
            "Debt payment recorded",
            extra={"debt_id": debt_id, "amount": str(paid_amount), "note": note},
        )
        self._deliver_expense(outbox_id)
        return payment

    def _stage_expense(self, session: Session, **kwargs) -> Optional[int]:
        if self.expense_bridge is None:
            return None
        return self.expense_bridge.stage(session, **kwargs).id

    def _deliver_expense(self, outbox_id: Optional[int]) -> None:
        if self.expense_bridge is None or outbox_id is None:
            return
        try:
            self.expense_bridge.deliver(outbox_id)
        except Exception:
            # The payment is committed; the row stays pending for flush_pending.
            logger.error(
                "Expense mirror delivery crashed", exc_info=True, extra={"outbox_id": outbox_id}
            )

    # ------------------------------------------------------------------
    # Due-date queries
    # ------------------------------------------------------------------

    def get_debts_due_today(self, today: Optional[date] = None) -> list[DueItem]:
        """Debts and installments whose due date is exactly today."""

        day = today or self.today()
        return self._collect_due(start=day, end=day)

    def get_upcoming_debt_payments(
        self, days: int = 7, today: Optional[date] = None
    ) -> list[DueItem]:
        """Open debts and installments due between today and ``today + days``."""

        if days < 0:
            raise ValueError("days must not be negative")
        day = today or self.today()
        return self._collect_due(start=day, end=day + timedelta(days=days))

    def get_overdue_debts(self, today: Optional[date] = None) -> list[DueItem]:
        """Open debts and installments whose due date has already passed."""

        day = today or self.today()
        return self._collect_due(start=None, end=day - timedelta(days=1))

    def _collect_due(self, *, start: Optional[date], end: date) -> list[DueItem]:
        self._require_storage()
        open_debts = {debt.id: debt for debt in self.debts.list_unpaid()}

        items: list[DueItem] = []
        for debt in open_debts.values():
            if debt.due_date is None:
                continue
            if (start is None or debt.due_date >= start) and debt.due_date <= end:
                items.append(DueItem(debt=debt))
        for installment in self.installments.list_unpaid_due(start=start, end=end):
            debt = open_debts.get(installment.debt_id)
            if debt is not None:
                items.append(DueItem(debt=debt, installment=installment))
        items.sort(key=lambda item: item.due_date)
        return items


def _check_choice(label: str, value: str, allowed: tuple[str, ...]) -> None:
    if value not in allowed:
        raise ValueError(f"Invalid {label} {value!r}; expected one of {', '.join(allowed)}")


def _check_payment_amount(amount: Decimal, debt: Debt) -> None:
    if amount <= 0:
        raise ValueError("Payment amount must be positive")
    if amount > debt.remaining_amount:
        raise ValueError(
            f"Payment of {amount} exceeds the remaining balance of {debt.remaining_amount}"
        )


def _apply_to_balance(debt: Debt, amount: Decimal) -> None:
    debt.remaining_amount = max(Decimal("0.00"), debt.remaining_amount - amount)
    debt.is_paid = debt.remaining_amount == 0


def _describe(text: str, debt: Debt) -> str:
    return f"{text} - {debt.description}" if debt.description else text


__all__ = [
    "DebtLedger",
    "DebtNotFoundError",
    "DueItem",
    "InstallmentNotFoundError",
]
