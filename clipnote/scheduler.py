"""APScheduler-driven periodic metadata refresh."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import STATE_RUNNING
from apscheduler.triggers.interval import IntervalTrigger

from .refresh import JOB_ID, MetadataRefresher, RefreshMode, RefreshReport

logger = logging.getLogger(__name__)


class HealthRecorder(Protocol):
    def record_health(self, *, component: str, status: str, detail: str | None = None) -> None: ...


@dataclass(frozen=True, slots=True)
class SchedulerSnapshot:
    running: bool
    jobs: dict[str, Optional[str]]
    last_report: Optional[dict[str, int]]

    @property
    def total_jobs(self) -> int:
        return len(self.jobs)


class RefreshScheduler:
    """Runs the batch refresh on a fixed interval in a background thread.

    Each run is summarized into the ``job:<id>`` health component; a run that
    raises is logged and marked ``fail`` without stopping later runs.
    """

    def __init__(self, health: HealthRecorder) -> None:
        self.health = health
        self.last_report: Optional[RefreshReport] = None
        # one refresh at a time; a late run is folded into the next one
        self.scheduler = BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 120}
        )

    @property
    def running(self) -> bool:
        return self.scheduler.state == STATE_RUNNING

    def schedule_refresh(
        self,
        refresher: MetadataRefresher,
        *,
        minutes: int,
        mode: RefreshMode = RefreshMode.MISSING_ONLY,
        job_id: str = JOB_ID,
    ) -> None:
        def run() -> None:
            self._run_refresh(refresher, mode, job_id)

        self.scheduler.add_job(run, IntervalTrigger(minutes=minutes), id=job_id, replace_existing=True)
        logger.info("Scheduled %s refresh every %d minutes", mode.value, minutes, extra={"event": "scheduler.job_added"})

    def run_job_now(self, job_id: str = JOB_ID) -> None:
        """Execute a registered job synchronously in the calling thread."""
        job = self.scheduler.get_job(job_id)
        if job is None:
            raise KeyError(job_id)
        job.func()

    def _run_refresh(self, refresher: MetadataRefresher, mode: RefreshMode, job_id: str) -> None:
        component = f"job:{job_id}"
        started = time.perf_counter()
        try:
            report = asyncio.run(refresher.refresh_store(mode))
        except Exception as exc:
            logger.exception("Scheduled refresh %s crashed", job_id)
            self.health.record_health(component=component, status="fail", detail=str(exc))
            return

        self.last_report = report
        elapsed_ms = (time.perf_counter() - started) * 1000
        status = "warn" if report.failed else "pass"
        detail = json.dumps({**report.summary(), "elapsed_ms": round(elapsed_ms, 1)})
        self.health.record_health(component=component, status=status, detail=detail)
        if report.failed:
            logger.warning("Scheduled refresh finished with %d failures", report.failed)

    def start(self) -> None:
        self.scheduler.start()
        logger.info("Refresh scheduler running (%d jobs)", len(self.scheduler.get_jobs()))
        self.publish_health()

    def shutdown(self) -> None:
        if self.running:
            self.scheduler.shutdown(wait=True)
            logger.info("Refresh scheduler stopped")
        self.publish_health()

    def snapshot(self) -> SchedulerSnapshot:
        jobs: dict[str, Optional[str]] = {}
        for job in self.scheduler.get_jobs():
            # pending jobs have no next_run_time until the scheduler starts
            next_run = getattr(job, "next_run_time", None)
            jobs[job.id] = next_run.isoformat() if next_run else None
        last: Optional[dict[str, Any]] = self.last_report.summary() if self.last_report else None
        return SchedulerSnapshot(running=self.running, jobs=jobs, last_report=last)

    def publish_health(self) -> None:
        snapshot = self.snapshot()
        self.health.record_health(
            component="scheduler",
            status="pass" if snapshot.running else "fail",
            detail=json.dumps({"jobs": snapshot.jobs}) if snapshot.jobs else None,
        )
