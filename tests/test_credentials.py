import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from clipnote.errors import ConfigurationMissing, CredentialPoolExhausted, QuotaExceeded
from clipnote.metadata.credentials import CredentialPool, call_with_rotation


def test_pool_drops_blank_and_duplicate_keys() -> None:
    pool = CredentialPool(["a", "", "  ", "b", "a"])

    assert len(pool) == 2


def test_both_exhausted_means_pool_exhausted() -> None:
    pool = CredentialPool(["a", "b"])
    pool.mark_exhausted(pool.acquire())
    pool.mark_exhausted(pool.acquire())

    assert pool.acquire() is None


def test_single_exhausted_key_returns_the_other() -> None:
    pool = CredentialPool(["a", "b"])
    pool.mark_exhausted(pool.acquire())

    assert pool.acquire().key == "b"
    assert pool.acquire().key == "b"


def test_acquire_wraps_around_from_cursor() -> None:
    now = [datetime(2024, 1, 1, tzinfo=timezone.utc)]
    pool = CredentialPool(["a", "b"], cooldown=timedelta(minutes=5), clock=lambda: now[0])
    pool.mark_exhausted(pool.acquire())
    b = pool.acquire()
    now[0] += timedelta(minutes=6)
    pool.mark_exhausted(b)

    # cursor sits on "b"; the scan must wrap to "a"
    assert pool.acquire().key == "a"


def test_mark_exhausted_is_idempotent() -> None:
    pool = CredentialPool(["a", "b"])
    credential = pool.acquire()
    pool.mark_exhausted(credential)
    pool.mark_exhausted(credential)

    assert pool.stats()["available_keys"] == 1


def test_cooldown_reenables_credential() -> None:
    now = [datetime(2024, 1, 1, tzinfo=timezone.utc)]
    pool = CredentialPool(["a"], cooldown=timedelta(minutes=10), clock=lambda: now[0])
    pool.mark_exhausted(pool.acquire())

    assert pool.acquire() is None
    now[0] += timedelta(minutes=11)
    assert pool.acquire().key == "a"


def test_stats_masks_keys() -> None:
    pool = CredentialPool(["AIzaSyA-secret-key-123"], platform="YOUTUBE")

    stats = pool.stats()

    assert stats["total_keys"] == 1
    assert stats["key_status"][0]["key_preview"] == "AIzaSyA-se..."
    assert "secret-key-123" not in repr(pool.acquire())


def test_rotation_retries_once_with_next_key() -> None:
    pool = CredentialPool(["a", "b"], platform="YOUTUBE")
    seen: list[str] = []

    async def request(credential):
        seen.append(credential.key)
        if credential.key == "a":
            raise QuotaExceeded("YOUTUBE")
        return "ok"

    assert asyncio.run(call_with_rotation(pool, request)) == "ok"
    assert seen == ["a", "b"]
    assert pool.stats()["available_keys"] == 1


def test_second_quota_error_exhausts_pool() -> None:
    pool = CredentialPool(["a", "b", "c"], platform="YOUTUBE")
    calls: list[str] = []

    async def request(credential):
        calls.append(credential.key)
        raise QuotaExceeded("YOUTUBE")

    with pytest.raises(CredentialPoolExhausted):
        asyncio.run(call_with_rotation(pool, request))
    assert calls == ["a", "b"]


def test_empty_pool_is_configuration_missing() -> None:
    async def request(credential):
        raise AssertionError("should not be called")

    with pytest.raises(ConfigurationMissing):
        asyncio.run(call_with_rotation(CredentialPool([], platform="TWITCH"), request))
