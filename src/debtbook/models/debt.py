"""Debt, installment and payment entities."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

DEBT_TYPES = ("debt", "installment", "advance")
DEBT_DIRECTIONS = ("owed_by_me", "owed_to_me")

DEBT_TYPE_LABELS = {
    "debt": "Debt",
    "installment": "Installments",
    "advance": "Advance",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Debt(SQLModel, table=True):
    """An obligation owed by the user or owed to the user."""

    __tablename__: ClassVar[str] = "debt"

    id: Optional[int] = Field(default=None, primary_key=True)
    debtor_name: str = Field(nullable=False, max_length=120, index=True)
    total_amount: Decimal = Field(nullable=False, max_digits=14, decimal_places=2)
    remaining_amount: Decimal = Field(nullable=False, max_digits=14, decimal_places=2)
    start_date: date = Field(nullable=False)
    due_date: Optional[date] = Field(default=None, index=True)
    description: Optional[str] = Field(default=None, max_length=255)
    debt_type: str = Field(default="debt", nullable=False, max_length=16)
    direction: str = Field(default="owed_by_me", nullable=False, max_length=16)
    currency: str = Field(default="IQD", max_length=3, description="ISO-4217 currency code")
    is_paid: bool = Field(default=False, nullable=False, index=True)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    installments: list["DebtInstallment"] = Relationship(
        back_populates="debt",
        sa_relationship=relationship(
            "DebtInstallment", back_populates="debt", cascade="all, delete-orphan"
        ),
    )
    payments: list["DebtPayment"] = Relationship(
        back_populates="debt",
        sa_relationship=relationship(
            "DebtPayment", back_populates="debt", cascade="all, delete-orphan"
        ),
    )

    @property
    def type_label(self) -> str:
        return DEBT_TYPE_LABELS.get(self.debt_type, self.debt_type)


class DebtInstallment(SQLModel, table=True):
    """One scheduled slice of a debt's total."""

    __tablename__: ClassVar[str] = "debt_installment"

    id: Optional[int] = Field(default=None, primary_key=True)
    debt_id: int = Field(foreign_key="debt.id", nullable=False, index=True)
    amount: Decimal = Field(nullable=False, max_digits=14, decimal_places=2)
    due_date: date = Field(nullable=False, index=True)
    is_paid: bool = Field(default=False, nullable=False)
    paid_date: Optional[date] = Field(default=None)
    installment_number: int = Field(nullable=False, ge=1)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    debt: "Debt" = Relationship(
        back_populates="installments",
        sa_relationship=relationship("Debt", back_populates="installments"),
    )


class DebtPayment(SQLModel, table=True):
    """Immutable record of money applied against a debt or installment."""

    __tablename__: ClassVar[str] = "debt_payment"

    id: Optional[int] = Field(default=None, primary_key=True)
    debt_id: int = Field(foreign_key="debt.id", nullable=False, index=True)
    amount: Decimal = Field(nullable=False, max_digits=14, decimal_places=2)
    payment_date: date = Field(nullable=False, index=True)
    installment_id: Optional[int] = Field(default=None, foreign_key="debt_installment.id")
    description: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    debt: "Debt" = Relationship(
        back_populates="payments",
        sa_relationship=relationship("Debt", back_populates="payments"),
    )
