"""Payment processing tests for the debt ledger."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal

import pytest
from sqlmodel import select

from debtbook.models.expense import OUTBOX_DELIVERED, OUTBOX_PENDING, ExpenseOutbox
from debtbook.services.ledger import DebtLedger, DebtNotFoundError, InstallmentNotFoundError
from tests.conftest import TODAY, assert_ledger_balanced


class TestPayInstallment:
    """Paying a single scheduled installment."""

    def test_first_installment_reduces_balance(self, ledger, debt_factory, expense_repo):
        debt_id = debt_factory(total_amount="120000", installments=3)
        first = ledger.list_installments(debt_id)[0]

        ledger.pay_installment(first.id)

        debt = ledger.get_debt(debt_id)
        assert debt.remaining_amount == Decimal("80000")
        assert debt.is_paid is False

        payments = ledger.list_payments(debt_id)
        assert len(payments) == 1
        assert payments[0].installment_id == first.id
        assert payments[0].amount == Decimal("40000")
        assert payments[0].payment_date == TODAY

        expenses = expense_repo.list_all()
        assert len(expenses) == 1
        assert expenses[0].category == "bills"
        assert expenses[0].amount == Decimal("40000")
        assert expenses[0].debt_payment_id == payments[0].id
        assert_ledger_balanced(ledger, debt_id)

    def test_installment_marked_paid_with_date(self, ledger, debt_factory):
        debt_id = debt_factory(installments=3)
        first = ledger.list_installments(debt_id)[0]

        ledger.pay_installment(first.id)

        refreshed = ledger.list_installments(debt_id)[0]
        assert refreshed.is_paid is True
        assert refreshed.paid_date == TODAY
        assert all(not inst.is_paid for inst in ledger.list_installments(debt_id)[1:])

    def test_partial_amount_overwrites_installment_amount(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="120000", installments=3)
        first = ledger.list_installments(debt_id)[0]

        payment = ledger.pay_installment(first.id, amount="25000")

        assert payment.amount == Decimal("25000")
        assert ledger.list_installments(debt_id)[0].amount == Decimal("25000")
        assert ledger.get_debt(debt_id).remaining_amount == Decimal("95000")
        assert_ledger_balanced(ledger, debt_id)

    def test_paying_every_installment_settles_debt(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="100", installments=3)

        for installment in ledger.list_installments(debt_id):
            ledger.pay_installment(installment.id)

        debt = ledger.get_debt(debt_id)
        assert debt.remaining_amount == Decimal("0")
        assert debt.is_paid is True
        assert len(ledger.list_payments(debt_id)) == 3
        assert_ledger_balanced(ledger, debt_id)

    def test_default_amount_capped_at_remaining_balance(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="300", installments=3)
        ledger.pay_debt(debt_id, amount="250")
        last = ledger.list_installments(debt_id)[-1]

        payment = ledger.pay_installment(last.id)

        assert payment.amount == Decimal("50")
        assert ledger.get_debt(debt_id).is_paid is True
        assert_ledger_balanced(ledger, debt_id)

    def test_unknown_installment_raises_without_side_effects(
        self, ledger, debt_factory, expense_repo
    ):
        debt_id = debt_factory(installments=2)

        with pytest.raises(InstallmentNotFoundError, match="Installment not found"):
            ledger.pay_installment(9999)

        assert ledger.get_debt(debt_id).remaining_amount == Decimal("120000")
        assert ledger.list_payments(debt_id) == []
        assert expense_repo.list_all() == []

    def test_already_paid_installment_rejected(self, ledger, debt_factory):
        debt_id = debt_factory(installments=3)
        first = ledger.list_installments(debt_id)[0]
        ledger.pay_installment(first.id)

        with pytest.raises(ValueError, match="already paid"):
            ledger.pay_installment(first.id)

        assert len(ledger.list_payments(debt_id)) == 1

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount_rejected(self, ledger, debt_factory, amount):
        debt_id = debt_factory(installments=3)
        first = ledger.list_installments(debt_id)[0]

        with pytest.raises(ValueError, match="positive"):
            ledger.pay_installment(first.id, amount=amount)

        assert ledger.list_installments(debt_id)[0].is_paid is False
        assert ledger.list_payments(debt_id) == []

    def test_expense_description_names_installment_and_counterparty(
        self, ledger, debt_factory, expense_repo
    ):
        debt_id = debt_factory(
            debtor_name="Car dealer",
            debt_type="installment",
            installments=2,
            description="Sedan",
        )
        second = ledger.list_installments(debt_id)[1]

        ledger.pay_installment(second.id)

        expense = expense_repo.list_all()[0]
        assert expense.title == "Installment payment - Car dealer"
        assert expense.description == "Installment #2 of Installments - Car dealer - Sedan"
        assert expense.currency == "IQD"


class TestPayDebt:
    """Paying against the debt as a whole."""

    def test_full_settlement_by_default(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="120000", installments=3)
        ledger.pay_installment(ledger.list_installments(debt_id)[0].id)

        payment = ledger.pay_debt(debt_id)

        debt = ledger.get_debt(debt_id)
        assert payment.amount == Decimal("80000")
        assert payment.description == "Paid in full"
        assert payment.installment_id is None
        assert debt.remaining_amount == Decimal("0")
        assert debt.is_paid is True
        assert_ledger_balanced(ledger, debt_id)

    def test_explicit_full_amount_is_paid_in_full(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="500")

        payment = ledger.pay_debt(debt_id, amount=Decimal("500"))

        assert payment.description == "Paid in full"

    def test_partial_payment(self, ledger, debt_factory, expense_repo):
        debt_id = debt_factory(total_amount="1000", due_date=date(2024, 6, 1))

        payment = ledger.pay_debt(debt_id, amount="250.50")

        debt = ledger.get_debt(debt_id)
        assert debt.remaining_amount == Decimal("749.50")
        assert debt.is_paid is False
        assert payment.description == "Partial payment of 250.50 IQD"
        assert expense_repo.list_all()[0].title == "Debt payment - Ahmed"
        assert_ledger_balanced(ledger, debt_id)

    def test_overpayment_rejected(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="100")

        with pytest.raises(ValueError, match="exceeds"):
            ledger.pay_debt(debt_id, amount="100.01")

        assert ledger.get_debt(debt_id).remaining_amount == Decimal("100")

    def test_settled_debt_rejects_more_payments(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="100")
        ledger.pay_debt(debt_id)

        with pytest.raises(ValueError, match="settled"):
            ledger.pay_debt(debt_id)

    def test_total_paid_matches_balance_drop(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="1000", installments=2)
        ledger.pay_installment(ledger.list_installments(debt_id)[0].id)
        ledger.pay_debt(debt_id, amount="120.25")

        debt = ledger.get_debt(debt_id)
        assert ledger.total_paid(debt_id) == Decimal("620.25")
        assert ledger.total_paid(debt_id) == debt.total_amount - debt.remaining_amount

    def test_unknown_debt_raises(self, ledger):
        with pytest.raises(DebtNotFoundError, match="Debt not found"):
            ledger.pay_debt(424242)

    def test_sequence_of_payments_keeps_ledger_balanced(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="1000", installments=4, frequency="weekly")
        installments = ledger.list_installments(debt_id)

        ledger.pay_installment(installments[0].id)
        ledger.pay_debt(debt_id, amount="100")
        ledger.pay_installment(installments[1].id, amount="75")
        assert_ledger_balanced(ledger, debt_id)
        ledger.pay_debt(debt_id)

        assert_ledger_balanced(ledger, debt_id)
        assert ledger.get_debt(debt_id).is_paid is True


class TestExpenseMirrorFailure:
    """The expense mirror never rolls back a payment."""

    def test_payment_survives_expense_failure(
        self, flaky_ledger, failing_expenses, session_factory
    ):
        debt_id = flaky_ledger.create_debt("Sara", "600", date(2024, 1, 1), "advance")

        payment = flaky_ledger.pay_debt(debt_id, amount="200")

        assert payment.id is not None
        assert flaky_ledger.get_debt(debt_id).remaining_amount == Decimal("400")
        assert failing_expenses.calls == 1

        pending = flaky_ledger.expense_bridge.outbox.list_pending()
        assert len(pending) == 1
        assert pending[0].debt_payment_id == payment.id
        assert pending[0].status == OUTBOX_PENDING
        assert pending[0].attempts == 1
        assert pending[0].last_error == "expense store offline"

    def test_pending_mirror_delivered_on_flush(
        self, flaky_ledger, failing_expenses, expense_repo
    ):
        debt_id = flaky_ledger.create_debt("Sara", "600", date(2024, 1, 1), "advance")
        payment = flaky_ledger.pay_debt(debt_id)

        flaky_ledger.expense_bridge.expense_ledger = expense_repo
        delivered = flaky_ledger.expense_bridge.flush_pending()

        assert delivered == 1
        assert expense_repo.get_by_payment(payment.id) is not None
        outbox_row = flaky_ledger.expense_bridge.outbox.list_pending()
        assert outbox_row == []

    def test_ledger_without_bridge_records_payment_only(self, session_factory, expense_repo):
        plain = DebtLedger(session_factory, today=lambda: TODAY)
        debt_id = plain.create_debt("Omar", "50", date(2024, 1, 1), "debt")

        plain.pay_debt(debt_id)

        assert plain.get_debt(debt_id).is_paid is True
        assert expense_repo.list_all() == []


class TestStorageNotInitialized:
    @pytest.mark.parametrize(
        "call",
        [
            lambda ledger: ledger.pay_debt(1),
            lambda ledger: ledger.pay_installment(1),
            lambda ledger: ledger.get_debts_due_today(),
            lambda ledger: ledger.create_debt("x", "1", date(2024, 1, 1), "debt"),
            lambda ledger: ledger.list_debts(),
            lambda ledger: ledger.total_paid(1),
        ],
    )
    def test_calls_fail_fast(self, call):
        ledger = DebtLedger(None)

        with pytest.raises(RuntimeError, match="not initialized"):
            call(ledger)


@pytest.mark.integration
class TestConcurrentPayments:
    def test_parallel_partial_payments_do_not_lose_updates(self, ledger, debt_factory):
        debt_id = debt_factory(total_amount="1000")
        errors: list[Exception] = []

        def pay() -> None:
            try:
                ledger.pay_debt(debt_id, amount="10")
            except Exception as exc:  # pragma: no cover - surfaced by assertion
                errors.append(exc)

        threads = [threading.Thread(target=pay) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert ledger.get_debt(debt_id).remaining_amount == Decimal("900")
        assert len(ledger.list_payments(debt_id)) == 10
        assert_ledger_balanced(ledger, debt_id)

    def test_outbox_rows_marked_delivered(self, ledger, debt_factory, session_factory):
        debt_id = debt_factory(total_amount="90", installments=3)
        for installment in ledger.list_installments(debt_id):
            ledger.pay_installment(installment.id)

        assert ledger.expense_bridge.outbox.list_pending() == []
        with session_factory() as session:
            rows = session.exec(select(ExpenseOutbox)).all()
        assert len(rows) == 3
        assert {row.status for row in rows} == {OUTBOX_DELIVERED}
