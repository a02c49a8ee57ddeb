"""Background jobs: the daily debt reminder check and the expense outbox flush."""

from __future__ import annotations

from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .logging_config import get_logger
from .services.reminders import Notifier, check_debt_reminders

if TYPE_CHECKING:
    from .context import LedgerContext

logger = get_logger("scheduler")


class LedgerScheduler:
    """Runs periodic ledger jobs on an APScheduler background thread."""

    def __init__(self, ctx: LedgerContext, notifier: Notifier):
        """Initialize the scheduler.

        Args:
            ctx: Ledger context with config, ledger and expense bridge
            notifier: Destination for debt reminders
        """
        self.ctx = ctx
        self.notifier = notifier
        self.scheduler: APScheduler | None = None

    def start(self) -> None:
        """Register the jobs and start the background scheduler."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        self.scheduler = APScheduler()
        check_time = self.ctx.config.DEBT_CHECK_TIME
        self.scheduler.add_job(
            func=self.run_debt_reminders,
            trigger=CronTrigger(hour=check_time.hour, minute=check_time.minute),
            id="debt_reminders",
            name="Daily Debt Reminder Check",
            replace_existing=True,
        )
        logger.info(f"Scheduled debt reminder check at {check_time.strftime('%H:%M')}")

        self.scheduler.add_job(
            func=self.run_expense_flush,
            trigger=IntervalTrigger(minutes=self.ctx.config.EXPENSE_FLUSH_MINUTES),
            id="expense_outbox_flush",
            name="Expense Mirror Retry",
            replace_existing=True,
        )
        logger.info(
            f"Scheduled expense outbox flush every {self.ctx.config.EXPENSE_FLUSH_MINUTES} minutes"
        )

        self.scheduler.start()
        logger.info("Background scheduler started")

    def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def job_ids(self) -> list[str]:
        if self.scheduler is None:
            return []
        return [job.id for job in self.scheduler.get_jobs()]

    def run_debt_reminders(self) -> int:
        """Job body for the daily reminder check; returns reminders sent."""
        try:
            return len(check_debt_reminders(self.ctx.ledger, self.notifier))
        except Exception as exc:
            logger.error(f"Debt reminder check failed: {exc}", exc_info=True)
            return 0

    def run_expense_flush(self) -> int:
        """Job body for retrying pending expense mirrors; returns rows delivered."""
        try:
            delivered = self.ctx.expense_bridge.flush_pending()
        except Exception as exc:
            logger.error(f"Expense outbox flush failed: {exc}", exc_info=True)
            return 0
        if delivered:
            logger.info(f"Delivered {delivered} pending expense mirrors")
        return delivered


def create_scheduler(
    ctx: LedgerContext, notifier: Notifier, *, auto_start: bool = False
) -> LedgerScheduler:
    """Create and optionally start a ledger scheduler."""
    scheduler = LedgerScheduler(ctx, notifier)
    if auto_start:
        scheduler.start()
    return scheduler
