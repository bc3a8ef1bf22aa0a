"""Clip parsing and export helpers."""

from __future__ import annotations

from .export import build_export_script
from .timestamps import ClipTimestamp, clips_from_notes, format_timestamp, parse_notes, total_duration

__all__ = [
    "ClipTimestamp",
    "build_export_script",
    "clips_from_notes",
    "format_timestamp",
    "parse_notes",
    "total_duration",
]
