"""Run the ClipNote background service, or a single metadata refresh with ``--once``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import socket
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from clipnote.app import ClipNoteApp
from clipnote.refresh import RefreshMode

LOGGER = logging.getLogger("clipnote.main")


@dataclass(frozen=True, slots=True)
class RunContext:
    """Identifies one process in the JSON event stream."""

    trace_id: str = field(default_factory=lambda: os.getenv("CLIPNOTE_TRACE_ID") or uuid.uuid4().hex)
    host: str = field(default_factory=lambda: os.getenv("CLIPNOTE_INSTANCE_ID") or socket.gethostname())
    started_ns: int = field(default_factory=time.perf_counter_ns)

    def elapsed_ms(self) -> float:
        return round((time.perf_counter_ns() - self.started_ns) / 1_000_000, 2)

    def emit(self, level: int, event: str, **fields: Any) -> None:
        record = {"event": event, "trace_id": self.trace_id, "host": self.host, **fields}
        LOGGER.log(level, json.dumps(record, default=str, separators=(",", ":")))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="ClipNote metadata service")
    p.add_argument("--once", action="store_true", help="Run one refresh and exit instead of scheduling")
    p.add_argument("--mode", choices=[mode.value for mode in RefreshMode], default=RefreshMode.MISSING_ONLY.value)
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    context = RunContext()
    app: ClipNoteApp | None = None
    try:
        app = ClipNoteApp()
        context.emit(logging.INFO, "service.bootstrapped", duration_ms=context.elapsed_ms())
        if args.once:
            try:
                report = asyncio.run(app.refresher.refresh_store(RefreshMode(args.mode)))
            finally:
                app.close()
            context.emit(logging.INFO, "service.refresh_once", **report.summary())
            return 1 if report.failed else 0
        app.serve_forever()
        context.emit(logging.INFO, "service.stopped", uptime_ms=context.elapsed_ms())
        return 0
    except KeyboardInterrupt:
        context.emit(logging.WARNING, "service.interrupted")
        if app is not None:
            app.stop("keyboard interrupt")
        return 130
    except Exception as exc:
        context.emit(logging.CRITICAL, "service.crashed", error_type=type(exc).__name__, error=str(exc))
        raise


if __name__ == "__main__":
    raise SystemExit(main())
