"""Builds the ClipNote object graph from configuration and runs the background service."""

from __future__ import annotations

import json
import logging
import signal
import threading
from typing import Any, Optional

from .config import AppConfig, load_config
from .db import DatabaseManager
from .logging_utils import configure_logging
from .metadata.adapters import ChzzkAdapter, TwitchAdapter, YouTubeAdapter
from .metadata.adapters.base import MetadataAdapter
from .metadata.credentials import CredentialPool
from .metadata.models import Platform
from .metadata.resolver import MetadataResolver
from .projects import ProjectService
from .refresh import MetadataRefresher
from .scheduler import RefreshScheduler
from .sharing.service import ShareService
from .utils.secrets import secret_value

logger = logging.getLogger(__name__)


def _event(level: int, name: str, **fields: Any) -> None:
    logger.log(level, json.dumps({"event": name, **fields}, default=str, separators=(",", ":")))


class ClipNoteApp:
    """Owns the store, credential pools, adapters and services for one process.

    Credential pools are created here and handed to the adapters that use
    them, so every component in the process shares the same rotation state.
    """

    def __init__(self, config: Optional[AppConfig] = None, *, configure_logs: bool = True) -> None:
        self.config = config or load_config()
        if configure_logs:
            configure_logging(self.config)
        self.db = DatabaseManager(self.config)

        cooldown = self.config.credential_cooldown
        self.youtube_pool = CredentialPool(self.config.youtube_keys, platform=Platform.YOUTUBE.value, cooldown=cooldown)
        self.twitch_pool = CredentialPool(self.config.twitch_tokens, platform=Platform.TWITCH.value, cooldown=cooldown)
        self.chzzk = ChzzkAdapter(user_agent=self.config.chzzk_user_agent, timeout=self.config.http_timeout_seconds)
        self.resolver = MetadataResolver(self._adapters())

        self.shares = ShareService(
            self.db,
            app_url=self.config.app_url or None,
            id_length=self.config.share_id_length,
            max_attempts=self.config.share_id_max_attempts,
        )
        self.projects = ProjectService(self.resolver, self.db, self.shares, vod_finder=self.chzzk)
        self.refresher = MetadataRefresher(
            self.resolver,
            self.db,
            concurrency=self.config.refresh_concurrency,
            transient_attempts=self.config.refresh_transient_attempts,
            jobs=self.db,
        )
        self.scheduler = RefreshScheduler(self.db)
        if self.config.refresh_interval_minutes:
            self.scheduler.schedule_refresh(self.refresher, minutes=self.config.refresh_interval_minutes)

        self._shutdown = threading.Event()
        _event(
            logging.INFO,
            "clipnote.ready",
            environment=self.config.environment,
            youtube_keys=len(self.youtube_pool),
            twitch_tokens=len(self.twitch_pool),
            refresh_every_minutes=self.config.refresh_interval_minutes,
        )

    def _adapters(self) -> dict[Platform, MetadataAdapter]:
        return {
            Platform.YOUTUBE: YouTubeAdapter(self.youtube_pool),
            Platform.CHZZK: self.chzzk,
            Platform.TWITCH: TwitchAdapter(
                self.twitch_pool,
                secret_value(self.config.twitch_client_id),
                timeout=self.config.http_timeout_seconds,
            ),
        }

    def serve_forever(self) -> None:
        """Run scheduled refreshes until SIGINT/SIGTERM or :meth:`stop`."""
        if threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGINT, signal.SIGTERM):
                signal.signal(signum, lambda received, _frame: self.stop(f"signal {received}"))
        if not self.scheduler.scheduler.get_jobs():
            _event(logging.WARNING, "clipnote.no_jobs", hint="set APP_REFRESH_INTERVAL to enable periodic refresh")

        self.scheduler.start()
        self.db.record_health(component="service", status="pass", detail="started")
        try:
            self._shutdown.wait()
        finally:
            self.close()

    def stop(self, reason: str = "requested") -> None:
        if self._shutdown.is_set():
            return
        _event(logging.WARNING, "clipnote.stopping", reason=reason)
        self._shutdown.set()

    def close(self) -> None:
        """Stop the scheduler and release the database connection."""
        try:
            self.scheduler.shutdown()
        finally:
            self.db.close()

    def health_snapshot(self) -> dict[str, Any]:
        snapshot = self.scheduler.snapshot()
        return {
            "environment": self.config.environment,
            "scheduler": {"running": snapshot.running, "jobs": snapshot.jobs, "last_report": snapshot.last_report},
            "credentials": {
                Platform.YOUTUBE.value: self.youtube_pool.stats(),
                Platform.TWITCH.value: self.twitch_pool.stats(),
            },
        }
