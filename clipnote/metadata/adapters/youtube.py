from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, Callable, Optional

from googleapiclient.discovery import build  # type: ignore
from googleapiclient.errors import HttpError  # type: ignore

from ...errors import QuotaExceeded, TransientUpstreamError, UpstreamNotFound
from ..credentials import Credential, CredentialPool, call_with_rotation
from ..models import Platform, ResolvedMetadata
from ..utils import iso8601_to_seconds, parse_upstream_datetime

# reasons that mean "this key cannot serve more requests right now"
ROTATE_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded", "keyInvalid"})
THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")


def _build_client(api_key: str):
    return build("youtube", "v3", developerKey=api_key, cache_discovery=False)


def _error_reasons(exc: HttpError) -> set[str]:
    try:
        data = json.loads(exc.content.decode("utf-8"))
    except (ValueError, AttributeError):
        return set()
    if not isinstance(data, dict):
        return set()
    errors = (data.get("error") or {}).get("errors") or []
    return {item.get("reason") for item in errors if isinstance(item, dict) and item.get("reason")}


class YouTubeAdapter:
    """YouTube Data API v3 metadata lookups using a rotating key pool."""

    platform = Platform.YOUTUBE

    def __init__(
        self,
        pool: CredentialPool,
        *,
        client_factory: Callable[[str], Any] = _build_client,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.pool = pool
        self._client_factory = client_factory
        # googleapiclient services wrap an httplib2.Http, which must not be shared across threads
        self._local = threading.local()
        self.logger = logger or logging.getLogger(__name__)

    def _client(self, api_key: str):
        clients = getattr(self._local, "clients", None)
        if clients is None:
            clients = self._local.clients = {}
        client = clients.get(api_key)
        if client is None:
            client = clients[api_key] = self._client_factory(api_key)
        return client

    def _execute(self, api_key: str, video_id: str) -> dict[str, Any]:
        return (
            self._client(api_key)
            .videos()
            .list(part="snippet,contentDetails,liveStreamingDetails", id=video_id)
            .execute()
        )

    async def resolve(self, resource_id: str, is_live: bool = False) -> ResolvedMetadata:
        async def request(credential: Credential) -> dict[str, Any]:
            return await self._fetch(credential.key, resource_id)

        payload = await call_with_rotation(self.pool, request)
        items = payload.get("items") or []
        if not items:
            self.logger.warning("No YouTube video found for id %s", resource_id)
            raise UpstreamNotFound(self.platform.value, resource_id)
        return self._to_metadata(items[0])

    async def _fetch(self, api_key: str, video_id: str) -> dict[str, Any]:
        name = self.platform.value
        try:
            return await asyncio.to_thread(self._execute, api_key, video_id)
        except HttpError as exc:
            status = getattr(exc.resp, "status", None)
            reasons = _error_reasons(exc)
            if reasons & ROTATE_REASONS:
                raise QuotaExceeded(name, ",".join(sorted(reasons))) from exc
            if status is not None and int(status) in (400, 404):
                raise UpstreamNotFound(name, video_id) from exc
            self.logger.warning("YouTube rate/HTTP issue for %s: %s", video_id, exc)
            raise TransientUpstreamError(name, video_id, f"HTTP {status}") from exc
        except Exception as exc:  # transport failures from httplib2/socket
            self.logger.error("YouTube request error for %s: %s", video_id, exc)
            raise TransientUpstreamError(name, video_id, str(exc)) from exc

    def _to_metadata(self, item: dict) -> ResolvedMetadata:
        snippet = item.get("snippet") or {}
        content = item.get("contentDetails") or {}
        thumbnails = snippet.get("thumbnails") or {}
        thumbnail = next(
            (thumbnails[size]["url"] for size in THUMBNAIL_PREFERENCE if (thumbnails.get(size) or {}).get("url")),
            None,
        )
        live_state = snippet.get("liveBroadcastContent")
        live_opened_at = None
        if live_state == "live":
            details = item.get("liveStreamingDetails") or {}
            live_opened_at = parse_upstream_datetime(details.get("actualStartTime"))
        return ResolvedMetadata(
            title=snippet.get("title") or "Untitled",
            thumbnail_url=thumbnail,
            duration_seconds=iso8601_to_seconds(content.get("duration")),
            channel_id=snippet.get("channelId"),
            channel_name=snippet.get("channelTitle"),
            live_opened_at=live_opened_at,
            live_status="OPEN" if live_state == "live" else None,
        )
