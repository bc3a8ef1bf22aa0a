"""Batch metadata refresh over stored projects.

Each project is resolved again and only the fields that are missing (or, in
``ALL`` mode, a changed thumbnail) are written back. One project's failure is
recorded in the report and never stops the rest of the batch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Literal, Mapping, Optional, Protocol

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from .db import ProjectRecord, ProjectStore
from .errors import (
    ConfigurationMissing,
    CredentialPoolExhausted,
    RefreshAborted,
    TransientUpstreamError,
    UnsupportedVideoUrl,
    UpstreamNotFound,
)
from .metadata.models import Platform, ResolvedMetadata, VideoReference
from .metadata.resolver import MetadataResolver

logger = logging.getLogger(__name__)

MAX_CONCURRENCY = 8
JOB_ID = "metadata_refresh"


class RefreshMode(str, Enum):
    MISSING_ONLY = "missing"
    ALL = "all"


class RefreshStatus(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class RefreshOutcome:
    project_id: str
    title: str
    platform: str
    status: RefreshStatus
    fields: dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None
    channel_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.project_id,
            "title": self.title,
            "status": self.status.value,
            "platform": self.platform,
        }
        if self.channel_name:
            payload["channelName"] = self.channel_name
        if self.fields:
            payload["fields"] = sorted(self.fields)
        if self.reason:
            payload["reason"] = self.reason
        return payload


@dataclass(slots=True)
class RefreshReport:
    outcomes: list[RefreshOutcome] = field(default_factory=list)

    def _count(self, status: RefreshStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def updated(self) -> int:
        return self._count(RefreshStatus.UPDATED)

    @property
    def skipped(self) -> int:
        return self._count(RefreshStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(RefreshStatus.FAILED)

    def summary(self) -> dict[str, int]:
        return {"total": self.total, "updated": self.updated, "skipped": self.skipped, "failed": self.failed}

    def to_dict(self) -> dict[str, Any]:
        return {**self.summary(), "results": [outcome.to_dict() for outcome in self.outcomes]}


class JobRecorder(Protocol):
    def record_job_run(
        self,
        *,
        job_id: str,
        status: Literal["success", "failure"],
        started_at: datetime,
        duration_ms: float,
        error: str | None = None,
        summary: Any | None = None,
    ) -> None: ...


def needs_refresh(project: Mapping[str, Any]) -> bool:
    return not project.get("channel_id") or not project.get("thumbnail_url")


def compute_changes(project: Mapping[str, Any], metadata: ResolvedMetadata, mode: RefreshMode) -> dict[str, Any]:
    """Smallest set of field writes that brings ``project`` up to date."""
    changes: dict[str, Any] = {}
    if metadata.channel_id and metadata.channel_id != project.get("channel_id"):
        changes["channel_id"] = metadata.channel_id
    if metadata.channel_name and metadata.channel_name != project.get("channel_name"):
        changes["channel_name"] = metadata.channel_name
    if metadata.thumbnail_url:
        current = project.get("thumbnail_url")
        if not current or (mode is RefreshMode.ALL and metadata.thumbnail_url != current):
            changes["thumbnail_url"] = metadata.thumbnail_url
    if metadata.duration_seconds and not project.get("duration"):
        changes["duration"] = metadata.duration_seconds
    return changes


def _reference_for(project: Mapping[str, Any]) -> VideoReference:
    try:
        platform = Platform(str(project.get("platform") or "").upper())
    except ValueError:
        platform = Platform.UNKNOWN
    return VideoReference(
        platform=platform,
        resource_id=str(project.get("video_id") or ""),
        is_live=bool(project.get("is_live")),
    )


class MetadataRefresher:
    def __init__(
        self,
        resolver: MetadataResolver,
        store: ProjectStore,
        *,
        concurrency: int = 1,
        transient_attempts: int = 2,
        retry_wait: wait_base = wait_exponential(multiplier=1, min=1, max=10),
        jobs: Optional[JobRecorder] = None,
    ) -> None:
        if not 1 <= concurrency <= MAX_CONCURRENCY:
            raise ValueError(f"concurrency must be between 1 and {MAX_CONCURRENCY}")
        self.resolver = resolver
        self.store = store
        self.concurrency = concurrency
        self.transient_attempts = max(1, transient_attempts)
        self.retry_wait = retry_wait
        self.jobs = jobs

    async def refresh_store(
        self,
        mode: RefreshMode = RefreshMode.MISSING_ONLY,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RefreshReport:
        """Load every project from the store and refresh it; listing failures abort the batch."""
        started_at = datetime.now(timezone.utc)
        start_ns = time.perf_counter_ns()
        try:
            projects = self.store.find({})
        except Exception as exc:
            logger.exception("Could not list projects for refresh")
            self._record_run(started_at, start_ns, status="failure", error=str(exc))
            raise RefreshAborted(f"Could not list projects: {exc}") from exc

        report = await self.refresh(projects, mode, cancel_event)
        self._record_run(started_at, start_ns, status="success", summary={"mode": mode.value, **report.summary()})
        return report

    async def refresh(
        self,
        projects: Iterable[ProjectRecord],
        mode: RefreshMode = RefreshMode.MISSING_ONLY,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RefreshReport:
        selected = [p for p in projects if mode is RefreshMode.ALL or needs_refresh(p)]
        if not selected:
            return RefreshReport()

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(project: ProjectRecord) -> RefreshOutcome:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return self._outcome(project, RefreshStatus.SKIPPED, reason="refresh cancelled")
                return await self._refresh_one(project, mode)

        outcomes = await asyncio.gather(*(run(project) for project in selected))
        report = RefreshReport(outcomes=list(outcomes))
        logger.info(
            "Metadata refresh finished: %d updated, %d skipped, %d failed",
            report.updated,
            report.skipped,
            report.failed,
            extra={"event": "refresh.completed", "mode": mode.value, **report.summary()},
        )
        return report

    async def _resolve(self, reference: VideoReference) -> ResolvedMetadata:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.transient_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(TransientUpstreamError),
            reraise=True,
        ):
            with attempt:
                return await self.resolver.resolve_reference(reference)
        raise AssertionError("unreachable")

    async def _refresh_one(self, project: ProjectRecord, mode: RefreshMode) -> RefreshOutcome:
        reference = _reference_for(project)
        if not reference.is_known:
            return self._outcome(project, RefreshStatus.SKIPPED, reason="unsupported platform")

        try:
            metadata = await self._resolve(reference)
        except TransientUpstreamError as exc:
            logger.warning("Refresh of %s failed after retries: %s", project.get("id"), exc.cause)
            return self._outcome(project, RefreshStatus.FAILED, reason=f"upstream unavailable: {exc.cause}")
        except (ConfigurationMissing, UpstreamNotFound, UnsupportedVideoUrl) as exc:
            return self._outcome(project, RefreshStatus.SKIPPED, reason=str(exc))
        except CredentialPoolExhausted as exc:
            return self._outcome(project, RefreshStatus.FAILED, reason=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error refreshing project %s", project.get("id"))
            return self._outcome(project, RefreshStatus.FAILED, reason=str(exc) or type(exc).__name__)

        changes = compute_changes(project, metadata, mode)
        if not changes:
            return self._outcome(project, RefreshStatus.SKIPPED, reason="nothing to update", metadata=metadata)

        try:
            applied = self.store.update(project["id"], changes)
        except Exception as exc:
            logger.exception("Could not save refreshed metadata for %s", project.get("id"))
            return self._outcome(project, RefreshStatus.FAILED, reason=str(exc), metadata=metadata)
        if not applied:
            return self._outcome(project, RefreshStatus.FAILED, reason="project no longer exists", metadata=metadata)

        logger.debug("Refreshed %s: %s", project["id"], sorted(changes))
        return self._outcome(project, RefreshStatus.UPDATED, fields=changes, metadata=metadata)

    @staticmethod
    def _outcome(
        project: Mapping[str, Any],
        status: RefreshStatus,
        *,
        reason: Optional[str] = None,
        fields: Optional[dict[str, Any]] = None,
        metadata: Optional[ResolvedMetadata] = None,
    ) -> RefreshOutcome:
        channel_name = (metadata.channel_name if metadata else None) or project.get("channel_name")
        return RefreshOutcome(
            project_id=str(project.get("id")),
            title=project.get("title") or "Untitled Project",
            platform=str(project.get("platform") or Platform.UNKNOWN.value),
            status=status,
            fields=fields or {},
            reason=reason,
            channel_name=channel_name,
        )

    def _record_run(
        self,
        started_at: datetime,
        start_ns: int,
        *,
        status: Literal["success", "failure"],
        error: str | None = None,
        summary: Any | None = None,
    ) -> None:
        if self.jobs is None:
            return
        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self.jobs.record_job_run(
            job_id=JOB_ID,
            status=status,
            started_at=started_at,
            duration_ms=duration_ms,
            error=error,
            summary=summary,
        )
