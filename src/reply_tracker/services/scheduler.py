"""APScheduler-based timers for the reminder and retention sweeps."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from reply_tracker.log import get_logger
from reply_tracker.services.base import Service
from reply_tracker.tracking.reminders import ReminderSweep, SweepReport
from reply_tracker.tracking.retention import RetentionSweep

logger = get_logger(__name__)

REMINDER_JOB_ID = "reminder_sweep"
RETENTION_JOB_ID = "retention_sweep"


class SweepSchedulerService(Service):
    """Fires both sweeps on fixed intervals.

    APScheduler's ``max_instances=1`` already refuses overlapping runs of one
    job; the sweeps' own try-locks additionally cover manual triggers from the
    control API.
    """

    def __init__(
        self,
        reminder_sweep: ReminderSweep,
        retention_sweep: RetentionSweep,
        sweep_interval: timedelta,
        retention_sweep_interval: timedelta,
    ):
        self._reminder_sweep = reminder_sweep
        self._retention_sweep = retention_sweep
        self._sweep_interval = sweep_interval
        self._retention_sweep_interval = retention_sweep_interval
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._last_reminder_report: Optional[SweepReport] = None
        self._last_retention_run: Optional[datetime] = None

    @property
    def service_name(self) -> str:
        return "scheduler"

    async def start(self) -> None:
        self._scheduler.add_job(
            self.run_reminder_sweep,
            IntervalTrigger(seconds=self._sweep_interval.total_seconds()),
            id=REMINDER_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self.run_retention_sweep,
            IntervalTrigger(seconds=self._retention_sweep_interval.total_seconds()),
            id=RETENTION_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "scheduler_started",
            sweep_interval=str(self._sweep_interval),
            retention_sweep_interval=str(self._retention_sweep_interval),
        )

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")

    def status(self) -> dict[str, Any]:
        return {
            "running": self._scheduler.running,
            "reminder_sweep_active": self._reminder_sweep.running,
            "last_reminder_sweep": (
                self._last_reminder_report.as_dict() if self._last_reminder_report else None
            ),
            "last_retention_sweep": (
                self._last_retention_run.isoformat() if self._last_retention_run else None
            ),
            "jobs": self.list_jobs(),
        }

    async def run_reminder_sweep(self) -> SweepReport:
        try:
            report = await self._reminder_sweep.run()
        except Exception as e:
            logger.error("reminder_sweep_error", error=str(e))
            raise
        if not report.skipped:
            self._last_reminder_report = report
        return report

    async def run_retention_sweep(self) -> int | None:
        try:
            evicted = await self._retention_sweep.run()
        except Exception as e:
            logger.error("retention_sweep_error", error=str(e))
            raise
        if evicted is not None:
            self._last_retention_run = datetime.now(timezone.utc)
        return evicted

    def list_jobs(self) -> list[dict[str, Any]]:
        jobs = []
        for job in self._scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": str(job.next_run_time) if job.next_run_time else None,
                    "trigger": str(job.trigger),
                }
            )
        return jobs
