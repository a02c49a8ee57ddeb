"""Turn due debts into reminder messages for an external notifier."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Optional, Protocol

from ..logging_config import get_logger
from ..money import format_money

if TYPE_CHECKING:
    from .ledger import DebtLedger, DueItem

logger = get_logger("reminders")

REMINDER_CATEGORY = "debt_reminders"


@dataclass(slots=True)
class DebtReminder:
    """A notification payload for one due debt or installment."""

    identifier: str
    title: str
    body: str
    debt_id: int
    installment_id: Optional[int] = None
    category: str = REMINDER_CATEGORY


class Notifier(Protocol):
    """Delivers reminders (push, local notification, inbox...)."""

    def send(self, reminder: DebtReminder) -> None:  # pragma: no cover - interface
        ...


def build_reminder(item: "DueItem") -> DebtReminder:
    debt = item.debt
    installment = item.installment
    amount = format_money(item.amount_due, debt.currency)
    if installment is not None:
        title = "Installment due"
        body = f"Installment #{installment.installment_number} for {debt.debtor_name} is due: {amount}"
    else:
        title = "Debt due"
        body = f"Debt with {debt.debtor_name} is due: {amount}"
    # Stable per debt/installment so re-sending replaces rather than duplicates.
    identifier = f"debt-{debt.id}-{installment.id if installment is not None else 'full'}"
    return DebtReminder(
        identifier=identifier,
        title=title,
        body=body,
        debt_id=debt.id,  # type: ignore[arg-type]
        installment_id=installment.id if installment is not None else None,
    )


def check_debt_reminders(
    ledger: "DebtLedger", notifier: Notifier, today: Optional[date] = None
) -> list[DebtReminder]:
    """Send a reminder for everything due today; return the ones delivered.

    A failing notifier call is logged and does not stop the remaining
    reminders from going out.
    """

    sent: list[DebtReminder] = []
    for item in ledger.get_debts_due_today(today=today):
        reminder = build_reminder(item)
        try:
            notifier.send(reminder)
        except Exception:
            logger.error(
                "Failed to send debt reminder",
                exc_info=True,
                extra={"identifier": reminder.identifier},
            )
            continue
        sent.append(reminder)
    logger.info("Debt reminders checked", extra={"sent": len(sent)})
    return sent


class LoggingNotifier:
    """Notifier that only writes reminders to the log."""

    def send(self, reminder: DebtReminder) -> None:
        logger.info(
            f"{reminder.title}: {reminder.body}",
            extra={"identifier": reminder.identifier, "debt_id": reminder.debt_id},
        )
