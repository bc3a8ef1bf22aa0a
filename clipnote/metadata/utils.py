"""Utility helpers shared across the platform metadata adapters."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

ISO_DURATION_RE = re.compile(r"P(?:(\d+)D)?T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?")
COMPACT_DURATION_RE = re.compile(r"(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?")
KST = timezone(timedelta(hours=9))


def iso8601_to_seconds(duration: str | None) -> int:
    """Convert ISO8601 duration strings (PTxxHxxMxxS, P1DTxxH) into seconds."""
    if not duration:
        return 0
    match = ISO_DURATION_RE.fullmatch(duration)
    if not match:
        return 0
    days, hours, minutes, seconds = match.groups()
    return (
        int(days or 0) * 86400
        + int(hours or 0) * 3600
        + int(minutes or 0) * 60
        + int(float(seconds or 0))
    )


def compact_duration_to_seconds(duration: str | None) -> int:
    """Convert Twitch style durations ("3h2m1s", "1h30m", "45m30s", "30s") into seconds.

    Every component is optional and an absent one counts as zero.
    """
    if not duration:
        return 0
    match = COMPACT_DURATION_RE.fullmatch(duration.strip().lower())
    if not match:
        return 0
    hours, minutes, seconds = match.groups()
    return (int(hours or 0) * 3600) + (int(minutes or 0) * 60) + int(seconds or 0)


def fill_thumbnail_template(url: str | None, width: int = 640, height: int = 360) -> Optional[str]:
    """Replace width/height placeholders used by Twitch (%{width}) and Chzzk ({type})."""
    if not url:
        return None
    return (
        url.replace("%{width}", str(width))
        .replace("%{height}", str(height))
        .replace("{width}", str(width))
        .replace("{height}", str(height))
        .replace("{type}", str(height))
    )


def parse_upstream_datetime(value: str | datetime | None, *, naive_tz: timezone = timezone.utc) -> Optional[datetime]:
    """Parse RFC3339 or "YYYY-MM-DD HH:MM:SS" timestamps into aware UTC datetimes.

    Already-parsed datetimes pass through, normalised the same way.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=naive_tz)
    return parsed.astimezone(timezone.utc)
