"""Chzzk (Naver live streaming) metadata lookups.

The public service API needs no authentication, so this adapter is called
directly rather than through a credential pool. Responses wrap the payload
as ``{"code": 200, "message": ..., "content": {...}}``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx

from ...errors import ChannelNotLive, UpstreamNotFound
from ..models import Platform, ResolvedMetadata
from ..utils import KST, fill_thumbnail_template, parse_upstream_datetime
from .base import DEFAULT_TIMEOUT, HttpJsonAdapter

API_BASE = "https://api.chzzk.naver.com"
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
VOD_SCAN_PAGE_SIZE = 30


@dataclass(slots=True)
class VodMatch:
    """A channel VOD whose live broadcast started at a given time."""

    video_no: str
    title: str
    duration: Optional[int]
    thumbnail_url: Optional[str]

    @property
    def url(self) -> str:
        return f"https://chzzk.naver.com/video/{self.video_no}"


class ChzzkAdapter(HttpJsonAdapter):
    platform = Platform.CHZZK

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT,
        api_base: str = API_BASE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(client=client, timeout=timeout, logger=logger)
        self.user_agent = user_agent
        self.api_base = api_base.rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": "application/json"}

    async def _content(self, path: str, resource_id: str, params: dict[str, Any] | None = None) -> Optional[dict]:
        data = await self._get_json(
            f"{self.api_base}{path}",
            resource_id=resource_id,
            headers=self._headers,
            params=params,
        )
        if data.get("code") != 200 or not isinstance(data.get("content"), dict):
            self.logger.warning("Chzzk API error or no content for %s: %s", resource_id, data.get("message") or "Unknown error")
            return None
        return data["content"]

    async def resolve(self, resource_id: str, is_live: bool = False) -> ResolvedMetadata:
        if is_live:
            return await self._resolve_live(resource_id)
        content = await self._content(f"/service/v3/videos/{resource_id}", resource_id)
        if content is None:
            raise UpstreamNotFound(self.platform.value, resource_id)
        channel = content.get("channel") or {}
        return ResolvedMetadata(
            title=content.get("videoTitle") or "Untitled",
            thumbnail_url=fill_thumbnail_template(content.get("videoImageUrl"), 1280, 720),
            duration_seconds=content.get("duration"),
            channel_id=channel.get("channelId"),
            channel_name=channel.get("channelName"),
        )

    async def _resolve_live(self, channel_id: str) -> ResolvedMetadata:
        content = await self._content(f"/service/v3/channels/{channel_id}/live-detail", channel_id)
        if content is None:
            raise ChannelNotLive(self.platform.value, channel_id)
        channel = content.get("channel") or {}
        status = str(content.get("status") or "CLOSE").upper()
        return ResolvedMetadata(
            title=content.get("liveTitle") or channel.get("channelName") or "Untitled live stream",
            thumbnail_url=fill_thumbnail_template(content.get("liveImageUrl"), 1280, 720),
            channel_id=channel.get("channelId") or channel_id,
            channel_name=channel.get("channelName"),
            live_opened_at=parse_upstream_datetime(content.get("openDate"), naive_tz=KST) if status == "OPEN" else None,
            live_status=status,
        )

    async def find_vod_by_open_date(self, channel_id: str, open_date: datetime) -> Optional[VodMatch]:
        """Find the VOD published for the live broadcast that opened at ``open_date``."""
        content = await self._content(
            f"/service/v1/channels/{channel_id}/videos",
            channel_id,
            params={"sortType": "LATEST", "pagingType": "PAGE", "page": 0, "size": VOD_SCAN_PAGE_SIZE},
        )
        if content is None:
            return None
        for video in content.get("data") or []:
            opened = parse_upstream_datetime(video.get("liveOpenDate"), naive_tz=KST)
            if opened is None or opened != open_date:
                continue
            return VodMatch(
                video_no=str(video.get("videoNo")),
                title=video.get("videoTitle") or "",
                duration=video.get("duration") or None,
                thumbnail_url=fill_thumbnail_template(video.get("thumbnailImageUrl"), 1280, 720),
            )
        self.logger.info("No Chzzk VOD yet for channel %s opened at %s", channel_id, open_date.isoformat())
        return None
