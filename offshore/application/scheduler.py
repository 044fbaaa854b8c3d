"""
Refresh scheduler: coalesces change-driven refreshes per budget.

A burst of commits (e.g. a cascade delete touching many rows) schedules one
refresh per budget a short delay later instead of one per commit. Each budget
has a single pending job; a new request replaces it and pushes the run time
back.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


def _job_id(budget_id: int) -> str:
    return f"refresh_budget_{budget_id}"


def _run_refresh(budget_id: int, trigger: Callable[[], None]) -> None:
    try:
        trigger()
    except Exception:
        logger.exception("Refresh job for budget %s failed", budget_id)


class RefreshScheduler:

    def __init__(self, delay_seconds: float = 0.25, scheduler: BackgroundScheduler | None = None):
        self.delay_seconds = delay_seconds
        self.scheduler = scheduler or BackgroundScheduler(daemon=True)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Refresh scheduler started (debounce %.2fs)", self.delay_seconds)

    def shutdown(self) -> None:
        """Gracefully stop the scheduler, dropping refreshes not yet run."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Refresh scheduler stopped")

    def schedule(self, budget_id: int, trigger: Callable[[], None]) -> None:
        """Run ``trigger`` once after the debounce delay, replacing any pending run."""
        run_date = datetime.now(timezone.utc) + timedelta(seconds=self.delay_seconds)
        self.scheduler.add_job(
            _run_refresh,
            "date",
            run_date=run_date,
            args=[budget_id, trigger],
            id=_job_id(budget_id),
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.debug("Refresh for budget %s scheduled at %s", budget_id, run_date.isoformat())

    def cancel(self, budget_id: int) -> None:
        job = self.scheduler.get_job(_job_id(budget_id))
        if job is not None:
            job.remove()

    def pending(self, budget_id: int) -> bool:
        return self.scheduler.get_job(_job_id(budget_id)) is not None

    __call__ = schedule
