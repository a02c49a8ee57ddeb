"""Command line entry points for DebtBook."""

from __future__ import annotations

from typing import Iterable

import click

from .config import BaseConfig
from .context import LedgerContext, create_ledger_context
from .logging_config import setup_logging
from .money import format_money
from .services.ledger import DueItem
from .services.reminders import LoggingNotifier, check_debt_reminders


def _echo_items(items: Iterable[DueItem], empty_message: str) -> None:
    items = list(items)
    if not items:
        click.echo(empty_message)
        return
    for item in items:
        debt = item.debt
        label = (
            f"installment #{item.installment.installment_number}"
            if item.installment is not None
            else debt.type_label.lower()
        )
        click.echo(
            f"{item.due_date.isoformat()}  {debt.debtor_name}  {label}  "
            f"{format_money(item.amount_due, debt.currency)}"
        )


@click.group()
@click.option("--data-dir", type=click.Path(file_okay=False), default=None,
              help="Directory holding the database and logs.")
@click.pass_context
def main(click_ctx: click.Context, data_dir: str | None) -> None:
    """Debt and installment ledger."""

    config = BaseConfig(data_dir=data_dir)
    setup_logging(config)
    ctx = create_ledger_context(config)
    click_ctx.obj = ctx
    click_ctx.call_on_close(ctx.close)


@main.command("due-today")
@click.pass_obj
def due_today(ctx: LedgerContext) -> None:
    """List debts and installments due today."""

    _echo_items(ctx.ledger.get_debts_due_today(), "Nothing is due today.")


@main.command("upcoming")
@click.option("--days", type=click.IntRange(min=0), default=None,
              help="Window size in days (defaults to DEBTBOOK_UPCOMING_WINDOW_DAYS).")
@click.pass_obj
def upcoming(ctx: LedgerContext, days: int | None) -> None:
    """List payments due in the coming days."""

    window = ctx.config.UPCOMING_WINDOW_DAYS if days is None else days
    _echo_items(
        ctx.ledger.get_upcoming_debt_payments(days=window),
        f"Nothing is due in the next {window} days.",
    )


@main.command("overdue")
@click.pass_obj
def overdue(ctx: LedgerContext) -> None:
    """List unpaid debts and installments past their due date."""

    _echo_items(ctx.ledger.get_overdue_debts(), "Nothing is overdue.")


@main.command("summary")
@click.pass_obj
def summary(ctx: LedgerContext) -> None:
    """Show outstanding balances by direction."""

    totals = ctx.ledger.debt_summary()
    currency = ctx.config.DEFAULT_CURRENCY
    click.echo(f"Open debts: {totals['open_count']}")
    click.echo(f"Owed by me: {format_money(totals['owed_by_me'], currency)}")
    click.echo(f"Owed to me: {format_money(totals['owed_to_me'], currency)}")


@main.command("remind")
@click.pass_obj
def remind(ctx: LedgerContext) -> None:
    """Send today's debt reminders to the log."""

    sent = check_debt_reminders(ctx.ledger, LoggingNotifier())
    for reminder in sent:
        click.echo(f"{reminder.title}: {reminder.body}")
    click.echo(f"{len(sent)} reminder(s) sent.")


@main.command("flush-expenses")
@click.option("--limit", type=click.IntRange(min=1), default=100, show_default=True)
@click.pass_obj
def flush_expenses(ctx: LedgerContext, limit: int) -> None:
    """Retry expense mirrors that have not been delivered yet."""

    delivered = ctx.expense_bridge.flush_pending(limit=limit)
    click.echo(f"Delivered {delivered} pending expense mirror(s).")
