"""Parse free-text notes into time-coded clips.

One clip per line: ``M:SS - M:SS label`` or ``H:MM:SS - H:MM:SS label``
(either side may use either form, with optional decimal fractions). ``//``
and ``#`` start comments; lines without a time range are ignored.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field

_SIDE = r"(\d{1,2}):(\d{2})(?:\.(\d+))?(?::(\d{2})(?:\.(\d+))?)?"
TIME_RANGE_RE = re.compile(rf"(?<!\d){_SIDE}\s*[-–]\s*{_SIDE}")
SLASH_COMMENT_RE = re.compile(r"(?<!:)//")


class ClipTimestamp(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_seconds: float = Field(ge=0)
    end_seconds: float
    text: str = ""

    @property
    def duration(self) -> float:
        return self.end_seconds - self.start_seconds

    @property
    def is_forward(self) -> bool:
        """False for ranges that end at or before their start; these are kept as written."""
        return self.start_seconds < self.end_seconds


def _fraction(digits: str | None) -> float:
    return float(f"0.{digits}") if digits else 0.0


def _side_seconds(first: str, second: str, frac_a: str | None, third: str | None, frac_b: str | None) -> float:
    if third is not None:
        return int(first) * 3600 + int(second) * 60 + int(third) + _fraction(frac_b)
    return int(first) * 60 + int(second) + _fraction(frac_a)


def strip_comment(line: str) -> str:
    """Drop a trailing ``//`` comment (ignoring ``://``) or else a ``#`` comment."""
    match = SLASH_COMMENT_RE.search(line)
    if match:
        return line[: match.start()]
    hash_at = line.find("#")
    if hash_at != -1:
        return line[:hash_at]
    return line


def parse_line(line: str) -> ClipTimestamp | None:
    content = strip_comment(line)
    if not content.strip():
        return None
    match = TIME_RANGE_RE.search(content)
    if not match:
        return None
    groups = match.groups()
    return ClipTimestamp(
        start_seconds=_side_seconds(*groups[:5]),
        end_seconds=_side_seconds(*groups[5:]),
        text=content[match.end():].strip(),
    )


def parse_notes(text: Any) -> list[ClipTimestamp]:
    """Return the clips found in ``text`` in source order; never raises on bad lines."""
    if not isinstance(text, str) or not text:
        return []
    clips: list[ClipTimestamp] = []
    for line in text.splitlines():
        clip = parse_line(line)
        if clip is not None:
            clips.append(clip)
    return clips


def clips_from_notes(notes: str | Sequence[Mapping[str, Any]] | None) -> list[ClipTimestamp]:
    """Accept either a notes text blob or stored note records (startTime/endTime/text)."""
    if isinstance(notes, str):
        return parse_notes(notes)
    if not notes:
        return []
    clips: list[ClipTimestamp] = []
    for note in notes:
        if not isinstance(note, Mapping):
            continue
        clips.append(
            ClipTimestamp(
                start_seconds=max(float(note.get("startTime") or 0), 0.0),
                end_seconds=float(note.get("endTime") or 0),
                text=str(note.get("text") or ""),
            )
        )
    return clips


def total_duration(clips: Iterable[ClipTimestamp]) -> float:
    return sum(clip.duration for clip in clips)


def format_timestamp(total_seconds: float) -> str:
    """Format seconds as ``M:SS.s`` or ``H:MM:SS.s``."""
    hours = int(total_seconds // 3600)
    minutes = int((total_seconds % 3600) // 60)
    seconds = total_seconds % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:04.1f}"
    return f"{minutes}:{seconds:04.1f}"
