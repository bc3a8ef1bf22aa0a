"""Pure URL classification: video URL -> VideoReference.

Classification never performs I/O and never raises; anything that does not
match a supported pattern comes back as ``Platform.UNKNOWN``.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlsplit

from .models import Platform, VideoReference

YOUTUBE_HOSTS = ("youtube.com", "youtu.be", "youtube-nocookie.com")
YOUTUBE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{6,}$")
YOUTUBE_PATH_PREFIXES = ("embed", "v", "shorts", "live")
CHZZK_HOST = "chzzk.naver.com"
TWITCH_HOST = "twitch.tv"
SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _host_matches(hostname: str, domain: str) -> bool:
    return hostname == domain or hostname.endswith("." + domain)


def _segments(path: str) -> list[str]:
    return [part for part in path.split("/") if part]


def _segment_after(parts: list[str], marker: str) -> str | None:
    try:
        candidate = parts[parts.index(marker) + 1]
    except (ValueError, IndexError):
        return None
    return candidate if SEGMENT_RE.match(candidate) else None


def _youtube_id(hostname: str, path: str, query: str) -> str | None:
    parts = _segments(path)
    if _host_matches(hostname, "youtu.be"):
        candidate = parts[0] if parts else None
    else:
        candidate = None
        values = parse_qs(query).get("v")
        if values:
            candidate = values[0]
        elif len(parts) >= 2 and parts[0] in YOUTUBE_PATH_PREFIXES:
            candidate = parts[1]
    if candidate and YOUTUBE_ID_RE.match(candidate):
        return candidate
    return None


def classify_url(url: object) -> VideoReference:
    """Classify a raw URL string into a platform reference."""
    if not isinstance(url, str) or not url.strip():
        return VideoReference.unknown()
    raw = url.strip()
    if "://" not in raw:
        raw = "https://" + raw
    try:
        parts = urlsplit(raw)
        hostname = (parts.hostname or "").lower()
    except ValueError:
        return VideoReference.unknown()
    if parts.scheme not in ("http", "https") or not hostname:
        return VideoReference.unknown()

    if any(_host_matches(hostname, host) for host in YOUTUBE_HOSTS):
        video_id = _youtube_id(hostname, parts.path, parts.query)
        if video_id:
            return VideoReference(platform=Platform.YOUTUBE, resource_id=video_id)
        return VideoReference.unknown()

    if _host_matches(hostname, CHZZK_HOST):
        segments = _segments(parts.path)
        video_no = _segment_after(segments, "video")
        if video_no:
            return VideoReference(platform=Platform.CHZZK, resource_id=video_no)
        channel_id = _segment_after(segments, "live")
        if channel_id:
            return VideoReference(platform=Platform.CHZZK, resource_id=channel_id, is_live=True)
        return VideoReference.unknown()

    if _host_matches(hostname, TWITCH_HOST):
        video_id = _segment_after(_segments(parts.path), "videos")
        if video_id and video_id.isdigit():
            return VideoReference(platform=Platform.TWITCH, resource_id=video_id)
        return VideoReference.unknown()

    return VideoReference.unknown()


def canonical_url(reference: VideoReference) -> str:
    """Return the normalized public watch URL for a known reference."""
    if reference.platform is Platform.YOUTUBE:
        return f"https://www.youtube.com/watch?v={reference.resource_id}"
    if reference.platform is Platform.CHZZK:
        kind = "live" if reference.is_live else "video"
        return f"https://chzzk.naver.com/{kind}/{reference.resource_id}"
    if reference.platform is Platform.TWITCH:
        return f"https://www.twitch.tv/videos/{reference.resource_id}"
    return ""


def embed_url(reference: VideoReference, parent: str | None = None) -> str:
    """Return the embeddable player URL; Twitch requires the embedding ``parent`` domain."""
    if reference.platform is Platform.YOUTUBE:
        return f"https://www.youtube.com/embed/{reference.resource_id}"
    if reference.platform is Platform.CHZZK:
        kind = "live" if reference.is_live else "video"
        return f"https://chzzk.naver.com/embed/{kind}/{reference.resource_id}"
    if reference.platform is Platform.TWITCH:
        base = f"https://player.twitch.tv/?video={reference.resource_id}"
        return f"{base}&parent={parent}" if parent else base
    return ""
