"""Expense ledger rows and the outbox feeding them from debt payments."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

OUTBOX_PENDING = "pending"
OUTBOX_DELIVERED = "delivered"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Expense(SQLModel, table=True):
    """A spending entry used by expense reports."""

    __tablename__: ClassVar[str] = "expense"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(nullable=False, max_length=160)
    amount: Decimal = Field(nullable=False, max_digits=14, decimal_places=2)
    category: str = Field(nullable=False, max_length=32, index=True)
    expense_date: date = Field(nullable=False, index=True)
    description: Optional[str] = Field(default=None, max_length=255)
    currency: str = Field(default="IQD", max_length=3)
    # Set for rows mirrored from the debt ledger; one expense per payment.
    debt_payment_id: Optional[int] = Field(default=None, unique=True, index=True)


class ExpenseOutbox(SQLModel, table=True):
    """Pending expense mirror written in the same transaction as its payment."""

    __tablename__: ClassVar[str] = "expense_outbox"

    id: Optional[int] = Field(default=None, primary_key=True)
    debt_id: int = Field(nullable=False, index=True)
    debt_payment_id: int = Field(nullable=False, unique=True, index=True)
    title: str = Field(nullable=False, max_length=160)
    amount: Decimal = Field(nullable=False, max_digits=14, decimal_places=2)
    category: str = Field(default="bills", nullable=False, max_length=32)
    expense_date: date = Field(nullable=False)
    description: Optional[str] = Field(default=None, max_length=255)
    currency: str = Field(default="IQD", max_length=3)
    status: str = Field(default=OUTBOX_PENDING, nullable=False, max_length=16, index=True)
    attempts: int = Field(default=0, nullable=False)
    last_error: Optional[str] = Field(default=None, max_length=255)
    expense_id: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
    delivered_at: Optional[datetime] = Field(default=None)
