"""Build copy-pasteable shell scripts that cut and merge clips locally."""

from __future__ import annotations

from typing import Sequence

from ..metadata.classifier import classify_url
from ..metadata.models import Platform
from .timestamps import ClipTimestamp


def _hms(total_seconds: float) -> tuple[int, int, int]:
    whole = int(total_seconds)
    return whole // 3600, (whole % 3600) // 60, whole % 60


def format_section_time(total_seconds: float) -> str:
    """yt-dlp ``--download-sections`` wants whole seconds as H:MM:SS or M:SS."""
    hours, minutes, seconds = _hms(total_seconds)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def filename_segment(total_seconds: float) -> str:
    """Mirror the ``%(section_start)s`` naming yt-dlp uses, e.g. ``01_05_00``."""
    hours, minutes, seconds = _hms(total_seconds)
    prefix = f"{hours:02d}_" if hours > 0 else ""
    return f"{prefix}{minutes:02d}_{seconds:02d}"


def _ytdlp_script(video_url: str, clips: Sequence[ClipTimestamp], output: str) -> str:
    sections = " ".join(
        f'--download-sections "*{format_section_time(clip.start_seconds)}-{format_section_time(clip.end_seconds)}"'
        for clip in clips
    )
    download = (
        f"yt-dlp {sections} --force-keyframes-at-cuts -f \"bv+ba/b/best\" "
        f"-o 'clip_%(section_start)s_to_%(section_end)s.mp4' \"{video_url}\""
    )
    file_lines = [
        f"file 'clip_{filename_segment(clip.start_seconds)}_to_{filename_segment(clip.end_seconds)}.mp4'"
        for clip in clips
    ]
    printf_args = " ".join(f'"{line}"' for line in file_lines)
    return "\n".join(
        [
            "# ClipNote export script",
            "# Requires yt-dlp and ffmpeg on PATH.",
            "",
            "# 1. Download every clip section",
            download,
            "",
            "# 2. Build the concat list",
            f'printf "%s\\n" {printf_args} > filelist.txt',
            "",
            "# 3. Merge clips",
            f'ffmpeg -f concat -safe 0 -i filelist.txt -c copy "{output}"',
            "",
            "# 4. Clean up (optional)",
            "rm clip_*.mp4 filelist.txt",
            "",
        ]
    )


def _ffmpeg_command(video_url: str, clips: Sequence[ClipTimestamp], output: str) -> str:
    filters = []
    inputs = []
    for index, clip in enumerate(clips):
        filters.append(
            f"[0:v]trim=start={clip.start_seconds:g}:end={clip.end_seconds:g},setpts=PTS-STARTPTS[v{index}];"
            f"[0:a]atrim=start={clip.start_seconds:g}:end={clip.end_seconds:g},asetpts=PTS-STARTPTS[a{index}]"
        )
        inputs.append(f"[v{index}][a{index}]")
    concat = f"{''.join(inputs)}concat=n={len(clips)}:v=1:a=1[outv][outa]"
    return (
        f'ffmpeg -i "{video_url}" -filter_complex "{";".join(filters)};{concat}" '
        f'-map "[outv]" -map "[outa]" "{output}"'
    )


def build_export_script(video_url: str, clips: Sequence[ClipTimestamp], output: str = "output.mp4") -> str:
    """Return a shell script (YouTube) or single ffmpeg command (other sources)."""
    if not clips:
        return ""
    if classify_url(video_url).platform is Platform.YOUTUBE:
        return _ytdlp_script(video_url, clips, output)
    return _ffmpeg_command(video_url, clips, output)
