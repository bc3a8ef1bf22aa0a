"""SQLite persistence: projects, share links, refresh job runs and health snapshots."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Literal, Mapping, Optional, Protocol

from .config import AppConfig

logger = logging.getLogger(__name__)

ProjectRecord = dict[str, Any]

PROJECTS_DDL = """
CREATE TABLE IF NOT EXISTS projects (
    id               TEXT PRIMARY KEY,
    user_id          TEXT NOT NULL,
    video_url        TEXT NOT NULL,
    platform         TEXT NOT NULL,
    video_id         TEXT NOT NULL,
    is_live          INTEGER NOT NULL DEFAULT 0,
    live_channel_id  TEXT,
    live_open_date   TEXT,
    title            TEXT NOT NULL DEFAULT 'Untitled Project',
    thumbnail_url    TEXT,
    duration         REAL,
    channel_id       TEXT,
    channel_name     TEXT,
    notes            TEXT,
    share_id         TEXT UNIQUE,
    is_shared        INTEGER NOT NULL DEFAULT 0,
    share_view_count INTEGER NOT NULL DEFAULT 0,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_projects_owner ON projects(user_id, created_at);
CREATE INDEX IF NOT EXISTS ix_projects_video ON projects(platform, video_id);
"""

TRACKING_DDL = """
CREATE TABLE IF NOT EXISTS job_runs (
    run_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    job_id      TEXT NOT NULL,
    status      TEXT NOT NULL CHECK (status IN ('success', 'failure')),
    started_at  TEXT NOT NULL,
    duration_ms REAL NOT NULL,
    error       TEXT,
    summary     TEXT,
    recorded_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
CREATE INDEX IF NOT EXISTS ix_job_runs_job ON job_runs(job_id, run_id);
CREATE TABLE IF NOT EXISTS health_checks (
    check_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    component   TEXT NOT NULL,
    status      TEXT NOT NULL CHECK (status IN ('pass', 'warn', 'fail')),
    detail      TEXT,
    checked_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

PROJECT_COLUMNS = (
    "id",
    "user_id",
    "video_url",
    "platform",
    "video_id",
    "is_live",
    "live_channel_id",
    "live_open_date",
    "title",
    "thumbnail_url",
    "duration",
    "channel_id",
    "channel_name",
    "notes",
    "share_id",
    "is_shared",
    "share_view_count",
    "created_at",
    "updated_at",
)
BOOL_COLUMNS = frozenset({"is_live", "is_shared"})
READ_ONLY_COLUMNS = frozenset({"id", "created_at", "updated_at"})


class ProjectStore(Protocol):
    """Keyed record store the core reads and writes projects through."""

    def find(self, filter: Mapping[str, Any]) -> list[ProjectRecord]: ...

    def find_one(self, filter: Mapping[str, Any]) -> Optional[ProjectRecord]: ...

    def update(self, project_id: str, fields: Mapping[str, Any]) -> bool: ...

    def create(self, fields: Mapping[str, Any]) -> ProjectRecord: ...


class ShareStore(ProjectStore, Protocol):
    """Project store that can also answer share-link lookups atomically."""

    def share_id_exists(self, share_id: str) -> bool: ...

    def increment_share_views(self, share_id: str) -> Optional[int]: ...


def _iso_utc(moment: datetime | None = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _to_column(column: str, value: Any) -> Any:
    if column == "notes":
        return None if value is None else json.dumps(value, ensure_ascii=False)
    if column in BOOL_COLUMNS:
        return 1 if value else 0
    if isinstance(value, datetime):
        return _iso_utc(value)
    # Platform and other str enums
    if column == "platform" and hasattr(value, "value"):
        return value.value
    return value


def _from_row(row: sqlite3.Row) -> ProjectRecord:
    record = dict(row)
    for column in BOOL_COLUMNS:
        record[column] = bool(record[column])
    record["notes"] = json.loads(record["notes"]) if record.get("notes") else ""
    return record


def _where_clause(filter: Mapping[str, Any]) -> tuple[str, list[Any]]:
    unknown = set(filter) - set(PROJECT_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot filter projects on {sorted(unknown)}")
    terms = []
    params: list[Any] = []
    for column, value in filter.items():
        if value is None:
            terms.append(f"{column} IS NULL")
            continue
        terms.append(f"{column} = ?")
        params.append(_to_column(column, value))
    return (f" WHERE {' AND '.join(terms)}" if terms else ""), params


class DatabaseManager:
    """SQLite-backed :class:`ProjectStore` with one connection per thread.

    The scheduler thread and the caller's thread each get their own
    connection; every public method runs in its own transaction.
    """

    def __init__(self, config: AppConfig | None = None, *, path: Path | str | None = None) -> None:
        if path is None:
            if config is None:
                raise ValueError("DatabaseManager needs a config or an explicit path")
            path = config.database_path
        self.path = Path(path)
        self._thread_state = threading.local()
        # executescript manages its own transaction
        self._connection().executescript(PROJECTS_DDL + TRACKING_DDL)
        logger.debug("Schema ready at %s", self.path)

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._thread_state, "conn", None)
        if conn is None:
            conn = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False, timeout=10)
            conn.row_factory = sqlite3.Row
            self._thread_state.conn = conn
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block inside BEGIN/COMMIT, rolling back if it raises."""
        conn = self._connection()
        conn.execute("BEGIN")
        try:
            yield conn
        except Exception:
            conn.execute("ROLLBACK")
            logger.exception("Rolled back transaction on %s", self.path)
            raise
        else:
            conn.execute("COMMIT")

    def close(self) -> None:
        conn = getattr(self._thread_state, "conn", None)
        if conn is not None:
            conn.close()
            self._thread_state.conn = None

    # projects

    def find(self, filter: Mapping[str, Any]) -> list[ProjectRecord]:
        where, params = _where_clause(filter)
        with self.transaction() as conn:
            rows = conn.execute(f"SELECT * FROM projects{where} ORDER BY created_at, id", params).fetchall()
        return [_from_row(row) for row in rows]

    def find_one(self, filter: Mapping[str, Any]) -> Optional[ProjectRecord]:
        where, params = _where_clause(filter)
        with self.transaction() as conn:
            row = conn.execute(f"SELECT * FROM projects{where} ORDER BY created_at, id LIMIT 1", params).fetchone()
        return _from_row(row) if row is not None else None

    def create(self, fields: Mapping[str, Any]) -> ProjectRecord:
        values = {column: fields[column] for column in PROJECT_COLUMNS if column in fields}
        values.setdefault("id", uuid.uuid4().hex)
        values.setdefault("created_at", _iso_utc())
        values["updated_at"] = values["created_at"]
        columns = ", ".join(values)
        marks = ", ".join("?" * len(values))
        with self.transaction() as conn:
            conn.execute(
                f"INSERT INTO projects ({columns}) VALUES ({marks})",
                [_to_column(column, value) for column, value in values.items()],
            )
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (values["id"],)).fetchone()
        return _from_row(row)

    def update(self, project_id: str, fields: Mapping[str, Any]) -> bool:
        """Write ``fields`` in one statement; False when no project has ``project_id``."""
        unknown = set(fields) - set(PROJECT_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown project fields: {sorted(unknown)}")
        changes = {column: value for column, value in fields.items() if column not in READ_ONLY_COLUMNS}
        assignments = [f"{column} = ?" for column in changes] + ["updated_at = ?"]
        params = [_to_column(column, value) for column, value in changes.items()]
        with self.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE projects SET {', '.join(assignments)} WHERE id = ?",
                [*params, _iso_utc(), project_id],
            )
            return cursor.rowcount == 1

    def increment_share_views(self, share_id: str) -> Optional[int]:
        """Bump the view counter in place and return the new count; None for an unknown share id."""
        with self.transaction() as conn:
            cursor = conn.execute(
                "UPDATE projects SET share_view_count = share_view_count + 1 WHERE share_id = ?", (share_id,)
            )
            if cursor.rowcount != 1:
                return None
            row = conn.execute("SELECT share_view_count FROM projects WHERE share_id = ?", (share_id,)).fetchone()
            return int(row[0])

    def share_id_exists(self, share_id: str) -> bool:
        with self.transaction() as conn:
            return conn.execute("SELECT 1 FROM projects WHERE share_id = ?", (share_id,)).fetchone() is not None

    # job and health tracking

    def record_job_run(
        self,
        *,
        job_id: str,
        status: Literal["success", "failure"],
        started_at: datetime,
        duration_ms: float,
        error: str | None = None,
        summary: Any | None = None,
    ) -> None:
        if summary is not None and not isinstance(summary, str):
            summary = json.dumps(summary, default=str)
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO job_runs (job_id, status, started_at, duration_ms, error, summary) VALUES (?, ?, ?, ?, ?, ?)",
                (job_id, status, _iso_utc(started_at), round(float(duration_ms), 3), error, summary),
            )

    def record_health(
        self,
        *,
        component: str,
        status: Literal["pass", "warn", "fail"],
        detail: str | None = None,
    ) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO health_checks (component, status, detail) VALUES (?, ?, ?)",
                (component, status, detail),
            )

    def job_runs(self, job_id: str) -> list[dict[str, Any]]:
        with self.transaction() as conn:
            rows = conn.execute("SELECT * FROM job_runs WHERE job_id = ? ORDER BY run_id", (job_id,)).fetchall()
        return [dict(row) for row in rows]

    def latest_health(self, component: str) -> Optional[dict[str, Any]]:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM health_checks WHERE component = ? ORDER BY check_id DESC LIMIT 1",
                (component,),
            ).fetchone()
        return dict(row) if row is not None else None
