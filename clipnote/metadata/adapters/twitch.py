"""Twitch Helix VOD lookups.

Helix needs a client id plus a bearer token. Tokens come from a credential
pool; HTTP 429 (rate limited) and 401 (token rejected) rotate to the next one.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ...errors import ConfigurationMissing, UpstreamNotFound
from ..credentials import Credential, CredentialPool, call_with_rotation
from ..models import Platform, ResolvedMetadata
from ..utils import compact_duration_to_seconds, fill_thumbnail_template
from .base import DEFAULT_TIMEOUT, HttpJsonAdapter

HELIX_VIDEOS_URL = "https://api.twitch.tv/helix/videos"
THUMBNAIL_SIZE = (640, 360)


class TwitchAdapter(HttpJsonAdapter):
    platform = Platform.TWITCH
    quota_statuses = frozenset({401, 429})

    def __init__(
        self,
        pool: CredentialPool,
        client_id: str | None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(client=client, timeout=timeout, logger=logger)
        self.pool = pool
        self.client_id = client_id

    async def resolve(self, resource_id: str, is_live: bool = False) -> ResolvedMetadata:
        if not self.client_id:
            raise ConfigurationMissing(self.platform.value, "TWITCH_CLIENT_ID not configured")

        async def request(credential: Credential) -> dict[str, Any]:
            return await self._get_json(
                HELIX_VIDEOS_URL,
                resource_id=resource_id,
                headers={"Client-ID": self.client_id, "Authorization": f"Bearer {credential.key}"},
                params={"id": resource_id},
            )

        payload = await call_with_rotation(self.pool, request)
        videos = payload.get("data") or []
        if not videos:
            self.logger.warning("Twitch video not found: %s", resource_id)
            raise UpstreamNotFound(self.platform.value, resource_id)
        video = videos[0]
        return ResolvedMetadata(
            title=video.get("title") or "Untitled",
            thumbnail_url=fill_thumbnail_template(video.get("thumbnail_url"), *THUMBNAIL_SIZE),
            duration_seconds=compact_duration_to_seconds(video.get("duration")),
            channel_id=video.get("user_id"),
            channel_name=video.get("user_name") or video.get("user_login"),
        )
