"""Recurring paid-leave jobs on an APScheduler background scheduler."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..core.exceptions import NotFoundError
from ..paid_leave.service import BatchResult, PaidLeaveService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobSpec:
    name: str
    description: str
    trigger: dict
    run: Callable[[], BatchResult]


class AutoScheduler:
    def __init__(
        self,
        paid_leave: PaidLeaveService,
        *,
        timezone: str = "Asia/Tokyo",
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self._scheduler = scheduler or BackgroundScheduler(
            timezone=timezone,
            job_defaults={"coalesce": True, "misfire_grace_time": 3600},
        )
        self._timezone = timezone
        self._specs = {
            spec.name: spec
            for spec in (
                JobSpec(
                    "daily_paid_leave_check",
                    "有給休暇の日次チェック",
                    {"hour": 9, "minute": 0},
                    paid_leave.run_daily_check,
                ),
                JobSpec(
                    "monthly_maintenance",
                    "有給休暇の月次メンテナンス",
                    {"day": 1, "hour": 10, "minute": 0},
                    paid_leave.run_monthly_maintenance,
                ),
                JobSpec(
                    "yearly_paid_leave_grant",
                    "年度初めの有給付与",
                    {"month": 4, "day": 1, "hour": 8, "minute": 0},
                    paid_leave.run_yearly_grant,
                ),
                JobSpec(
                    "weekly_expiry_alert",
                    "有給期限の週次アラート",
                    {"day_of_week": "mon", "hour": 9, "minute": 0},
                    paid_leave.run_weekly_expiry_alert,
                ),
            )
        }

    @property
    def job_names(self) -> list[str]:
        return list(self._specs)

    def _execute(self, spec: JobSpec) -> None:
        logger.info("scheduled job %s started", spec.name)
        result = spec.run()
        if result.failures:
            logger.warning("scheduled job %s: %d staff failed", spec.name, len(result.failures))

    def start(self, name: str) -> None:
        spec = self._specs.get(name)
        if not spec:
            raise NotFoundError(f"ジョブが見つかりません: {name}")
        self._scheduler.add_job(
            self._execute,
            CronTrigger(timezone=self._timezone, **spec.trigger),
            args=(spec,),
            id=spec.name,
            name=spec.description,
            replace_existing=True,
        )
        logger.info("scheduled job %s registered (%s)", spec.name, spec.trigger)

    def start_all(self) -> None:
        for name in self._specs:
            self.start(name)
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("auto scheduler started with %d jobs", len(self._specs))

    def stop(self, name: str) -> bool:
        if not self._scheduler.get_job(name):
            return False
        self._scheduler.remove_job(name)
        logger.info("scheduled job %s stopped", name)
        return True

    def stop_all(self) -> None:
        self._scheduler.remove_all_jobs()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("auto scheduler stopped")

    def active_jobs(self) -> list[dict]:
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": next_run.isoformat() if next_run else None,
                }
            )
        return jobs
