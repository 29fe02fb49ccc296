import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from periods import current_month
from services import ExpenseService
from store import EntityStore


logger = logging.getLogger(__name__)

# job id, source label, misfire grace in seconds
RECURRING_JOBS = (
    ("recurring_month_start", "month_start", 3600),
    ("recurring_hourly", "hourly_safety_net", 300),
)


class SchedulerManager:
    """Posts recurring expense templates into the current month in the background."""

    def __init__(self, store: EntityStore, timezone: Optional[str] = None) -> None:
        self.store = store
        self.scheduler = BackgroundScheduler(
            timezone=timezone or get_settings().timezone
        )

    def _run_job(self, source: str = "manual", month: Optional[str] = None) -> int:
        month = month or current_month()
        created = ExpenseService(self.store).create_recurring_expenses_for_month(month)
        logger.info(
            f"scheduler_run: source={source} month={month} created={len(created)}"
        )
        return len(created)

    def _trigger(self, job_id: str):
        tz = self.scheduler.timezone
        if job_id == "recurring_month_start":
            return CronTrigger(day=1, hour=0, minute=5, timezone=tz)
        return IntervalTrigger(hours=1, timezone=tz)

    def start(self) -> None:
        # the month may have turned while the process was down
        self._run_job("startup")
        for job_id, source, grace in RECURRING_JOBS:
            self.scheduler.add_job(
                self._run_job,
                self._trigger(job_id),
                args=[source],
                id=job_id,
                replace_existing=True,
                misfire_grace_time=grace,
            )
        self.scheduler.start()
        logger.info(f"scheduler_started: jobs={len(RECURRING_JOBS)}")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("scheduler_stopped")
