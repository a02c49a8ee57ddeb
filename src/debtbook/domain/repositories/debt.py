"""Debt ledger repository protocols."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Protocol

from ...models.debt import Debt, DebtInstallment, DebtPayment


class DebtRepository(Protocol):
    """Repository for managing debt entities."""

    def get_by_id(self, debt_id: int) -> Optional[Debt]:
        """Retrieve a debt by ID."""
        ...

    def list_all(self) -> list[Debt]:
        """List all debts ordered by due date."""
        ...

    def list_unpaid(self) -> list[Debt]:
        """List debts that still carry a balance."""
        ...

    def create(self, debt: Debt, installments: list[DebtInstallment]) -> Debt:
        """Persist a debt together with its initial installments."""
        ...

    def update(self, debt: Debt) -> Debt:
        """Update an existing debt."""
        ...

    def delete(self, debt_id: int) -> bool:
        """Delete a debt and everything it owns."""
        ...


class InstallmentRepository(Protocol):
    """Repository for debt installments."""

    def get_by_id(self, installment_id: int) -> Optional[DebtInstallment]:
        """Retrieve an installment by ID."""
        ...

    def list_for_debt(self, debt_id: int) -> list[DebtInstallment]:
        """List a debt's installments ordered by due date."""
        ...

    def list_unpaid_due(
        self, *, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[DebtInstallment]:
        """List unpaid installments of open debts due within [start, end]."""
        ...


class PaymentRepository(Protocol):
    """Read access to the append-only payment history."""

    def list_for_debt(self, debt_id: int) -> list[DebtPayment]:
        """List a debt's payments, newest first."""
        ...

    def total_paid(self, debt_id: int) -> Decimal:
        """Sum of payments recorded against a debt."""
        ...
