import json

import pytest

from clipnote.refresh import JOB_ID, RefreshMode, RefreshOutcome, RefreshReport, RefreshStatus
from clipnote.scheduler import RefreshScheduler


class RecordingHealth:
    def __init__(self) -> None:
        self.records: list[dict] = []

    def record_health(self, **kwargs) -> None:
        self.records.append(kwargs)


class FakeRefresher:
    def __init__(self, report: RefreshReport | None = None, error: Exception | None = None) -> None:
        self.report = report or RefreshReport()
        self.error = error
        self.modes: list[RefreshMode] = []

    async def refresh_store(self, mode: RefreshMode) -> RefreshReport:
        self.modes.append(mode)
        if self.error is not None:
            raise self.error
        return self.report


def test_scheduled_refresh_runs_missing_only_and_reports_health() -> None:
    health = RecordingHealth()
    refresher = FakeRefresher()
    scheduler = RefreshScheduler(health)
    scheduler.schedule_refresh(refresher, minutes=30)

    scheduler.run_job_now()

    assert refresher.modes == [RefreshMode.MISSING_ONLY]
    assert health.records[-1]["component"] == f"job:{JOB_ID}"
    assert health.records[-1]["status"] == "pass"
    assert json.loads(health.records[-1]["detail"])["total"] == 0
    assert scheduler.snapshot().total_jobs == 1


def test_failed_items_downgrade_health_to_warn() -> None:
    report = RefreshReport(outcomes=[RefreshOutcome("p1", "t", "YOUTUBE", RefreshStatus.FAILED, reason="x")])
    health = RecordingHealth()
    scheduler = RefreshScheduler(health)
    scheduler.schedule_refresh(FakeRefresher(report), minutes=30)

    scheduler.run_job_now()

    assert health.records[-1]["status"] == "warn"
    assert scheduler.snapshot().last_report == {"total": 1, "updated": 0, "skipped": 0, "failed": 1}


def test_crashing_refresh_is_contained() -> None:
    health = RecordingHealth()
    scheduler = RefreshScheduler(health)
    scheduler.schedule_refresh(FakeRefresher(error=RuntimeError("db gone")), minutes=30)

    scheduler.run_job_now()

    assert health.records[-1] == {"component": f"job:{JOB_ID}", "status": "fail", "detail": "db gone"}


def test_unknown_job_id() -> None:
    with pytest.raises(KeyError):
        RefreshScheduler(RecordingHealth()).run_job_now("nope")


def test_health_reports_stopped_scheduler() -> None:
    health = RecordingHealth()

    RefreshScheduler(health).publish_health()

    assert health.records == [{"component": "scheduler", "status": "fail", "detail": None}]
