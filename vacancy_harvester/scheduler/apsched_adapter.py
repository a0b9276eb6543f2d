"""APScheduler wrapper re-invoking the pipeline once a day."""

from __future__ import annotations

from typing import Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import ScheduleConfig
from ..logging_conf import component_logger

DAILY_JOB_ID = "harvest::daily"


class APSchedulerAdapter:
    """Manage the daily harvest job."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.scheduler = BackgroundScheduler()
        self.logger = logger or component_logger("scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=True)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_daily(self, schedule: ScheduleConfig, callback: Callable[[], object]) -> None:
        trigger = self._build_trigger(schedule)
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=DAILY_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", job=DAILY_JOB_ID, cron=schedule.cron)

    def remove_daily(self) -> None:
        try:
            self.scheduler.remove_job(DAILY_JOB_ID)
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", job=DAILY_JOB_ID)

    @staticmethod
    def _build_trigger(schedule: ScheduleConfig) -> CronTrigger:
        return CronTrigger.from_crontab(schedule.cron)

    def list_jobs(self) -> list[dict]:
        return [
            {"id": job.id, "next_run_time": getattr(job, "next_run_time", None), "trigger": str(job.trigger)}
            for job in self.scheduler.get_jobs()
        ]


__all__ = ["APSchedulerAdapter", "DAILY_JOB_ID"]
