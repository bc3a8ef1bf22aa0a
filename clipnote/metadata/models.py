from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Platform(str, Enum):
    YOUTUBE = "YOUTUBE"
    CHZZK = "CHZZK"
    TWITCH = "TWITCH"
    UNKNOWN = "UNKNOWN"


class VideoReference(BaseModel):
    """Platform, upstream id and live flag derived from a video URL."""

    model_config = ConfigDict(frozen=True)

    platform: Platform
    resource_id: str = ""
    is_live: bool = False

    @property
    def is_known(self) -> bool:
        return self.platform is not Platform.UNKNOWN and bool(self.resource_id)

    @classmethod
    def unknown(cls) -> "VideoReference":
        return cls(platform=Platform.UNKNOWN)


class ResolvedMetadata(BaseModel):
    title: str
    thumbnail_url: Optional[str] = None
    duration_seconds: Optional[float] = Field(default=None, ge=0, description="Duration in seconds")
    channel_id: Optional[str] = None
    channel_name: Optional[str] = None
    live_opened_at: Optional[datetime] = None
    live_status: Optional[str] = Field(default=None, description="Upstream live state, e.g. OPEN/CLOSE")

    @property
    def is_open_live(self) -> bool:
        return (self.live_status or "").upper() == "OPEN"

    @field_validator("thumbnail_url", "channel_id", "channel_name", mode="before")
    @classmethod
    def _blank_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _zero_duration_is_unknown(cls, v: object) -> object:
        # upstreams report 0 for live streams and unprocessed uploads
        if v in (0, 0.0):
            return None
        return v
