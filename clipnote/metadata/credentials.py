"""Rotating pool of rate-limited API credentials.

Each credential is AVAILABLE or EXHAUSTED. ``acquire`` scans the whole pool
from the rotation cursor (wrapping around) and returns the first available
credential; ``call_with_rotation`` performs at most one failover per logical
request when the upstream reports a quota problem.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from ..errors import ConfigurationMissing, CredentialPoolExhausted, QuotaExceeded
from ..utils.secrets import mask_secret

logger = logging.getLogger(__name__)

T = TypeVar("T")
EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Credential:
    key: str
    exhausted: bool = False
    last_used_at: datetime = EPOCH
    exhausted_at: Optional[datetime] = None

    def __repr__(self) -> str:  # keep raw keys out of logs and tracebacks
        return f"Credential(key={mask_secret(self.key)!r}, exhausted={self.exhausted})"


class CredentialPool:
    """Thread-safe, explicitly constructed pool of credentials for one platform."""

    def __init__(
        self,
        keys: Iterable[str],
        *,
        platform: str = "api",
        cooldown: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        unique: dict[str, None] = {}
        for key in keys:
            if key and key.strip():
                unique.setdefault(key.strip(), None)
        self.platform = platform
        self._credentials = [Credential(key=key) for key in unique]
        self._cursor = 0
        self._cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def is_configured(self) -> bool:
        return bool(self._credentials)

    def _is_available(self, credential: Credential, now: datetime) -> bool:
        if not credential.exhausted:
            return True
        if self._cooldown is None or credential.exhausted_at is None:
            return False
        if now - credential.exhausted_at >= self._cooldown:
            credential.exhausted = False
            credential.exhausted_at = None
            logger.info("Credential %s for %s re-enabled after cool-down", mask_secret(credential.key), self.platform)
            return True
        return False

    def acquire(self) -> Credential | None:
        """Return the first available credential starting at the cursor, or None."""
        with self._lock:
            total = len(self._credentials)
            now = self._clock()
            for offset in range(total):
                index = (self._cursor + offset) % total
                credential = self._credentials[index]
                if self._is_available(credential, now):
                    self._cursor = index
                    credential.last_used_at = now
                    return credential
            return None

    def mark_exhausted(self, credential: Credential) -> None:
        """Transition a credential to EXHAUSTED; repeated calls are no-ops."""
        with self._lock:
            if credential.exhausted:
                return
            credential.exhausted = True
            credential.exhausted_at = self._clock()
            available = sum(1 for item in self._credentials if not item.exhausted)
        logger.warning(
            "%s credential %s exhausted; %d of %d still available",
            self.platform,
            mask_secret(credential.key),
            available,
            len(self._credentials),
        )

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "platform": self.platform,
                "total_keys": len(self._credentials),
                "available_keys": sum(1 for item in self._credentials if not item.exhausted),
                "current_key_index": self._cursor,
                "key_status": [
                    {
                        "key_preview": mask_secret(item.key, visible=10),
                        "exhausted": item.exhausted,
                        "last_used_at": item.last_used_at.isoformat(),
                    }
                    for item in self._credentials
                ],
            }


async def call_with_rotation(pool: CredentialPool, request: Callable[[Credential], Awaitable[T]]) -> T:
    """Run ``request`` with a pooled credential, failing over once on QuotaExceeded."""
    if not pool.is_configured:
        raise ConfigurationMissing(pool.platform, "no API credentials configured")
    credential = pool.acquire()
    if credential is None:
        raise CredentialPoolExhausted(pool.platform)
    try:
        return await request(credential)
    except QuotaExceeded:
        pool.mark_exhausted(credential)

    replacement = pool.acquire()
    if replacement is None:
        raise CredentialPoolExhausted(pool.platform)
    logger.info("Retrying %s request with rotated credential", pool.platform)
    try:
        return await request(replacement)
    except QuotaExceeded as exc:
        pool.mark_exhausted(replacement)
        raise CredentialPoolExhausted(pool.platform) from exc
