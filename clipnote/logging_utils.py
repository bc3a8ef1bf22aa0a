"""Process-wide logging: readable console lines plus a JSON-lines file that rotates daily."""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from typing import Any

from .config import AppConfig

CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s [%(environment)s] %(name)s: %(message)s"
# attributes every LogRecord carries; anything else arrived through ``extra=``
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}
_NOISY_LOGGERS = {"googleapiclient.discovery_cache": logging.ERROR, "httpx": logging.WARNING, "apscheduler": logging.INFO}

_seen_lock = threading.Lock()
_seen_keys: set[str] = set()


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, carrying ``extra`` fields through."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update({key: value for key, value in vars(record).items() if key not in _RESERVED})
        if record.exc_info:
            entry["traceback"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class EnvironmentFilter(logging.Filter):
    """Stamps the deployment environment onto every record."""

    def __init__(self, environment: str) -> None:
        super().__init__()
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.environment = self.environment
        return True


def configure_logging(config: AppConfig) -> None:
    """Replace root handlers with a console handler and a rotating JSON file handler."""
    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
        existing.close()
    root.setLevel(logging.DEBUG if config.environment == "development" else logging.INFO)

    stamp = EnvironmentFilter(config.environment)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console.addFilter(stamp)

    config.log_path.parent.mkdir(parents=True, exist_ok=True)
    logfile = TimedRotatingFileHandler(config.log_path, when="midnight", backupCount=30, utc=True, encoding="utf-8")
    logfile.setFormatter(JsonLineFormatter())
    logfile.addFilter(stamp)

    root.addHandler(console)
    root.addHandler(logfile)
    for name, level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def log_once(logger: logging.Logger, key: str, level: int, message: str, *args: Any, **kwargs: Any) -> bool:
    """Log ``message`` only the first time ``key`` is seen in this process; True if it was emitted."""
    with _seen_lock:
        if key in _seen_keys:
            return False
        _seen_keys.add(key)
    logger.log(level, message, *args, **kwargs)
    return True


def reset_log_once() -> None:
    with _seen_lock:
        _seen_keys.clear()
