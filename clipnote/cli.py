from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from .clips.export import build_export_script
from .clips.timestamps import format_timestamp, parse_notes, total_duration
from .errors import ClipNoteError
from .metadata.classifier import canonical_url, classify_url
from .refresh import RefreshMode


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _app(args: argparse.Namespace):
    from .app import ClipNoteApp
    from .config import load_config

    return ClipNoteApp(load_config(Path(args.env_file) if args.env_file else None))


def cmd_classify(args: argparse.Namespace) -> int:
    reference = classify_url(args.url)
    payload = reference.model_dump(mode="json")
    if reference.is_known:
        payload["canonical_url"] = canonical_url(reference)
    _print_json(payload)
    return 0 if reference.is_known else 2


def cmd_parse(args: argparse.Namespace) -> int:
    text = Path(args.file).read_text(encoding="utf-8") if args.file else sys.stdin.read()
    clips = parse_notes(text)
    if args.export:
        print(build_export_script(args.export, clips, args.output), end="")
        return 0
    _print_json(
        {
            "clips": [
                {**clip.model_dump(), "start": format_timestamp(clip.start_seconds), "end": format_timestamp(clip.end_seconds)}
                for clip in clips
            ],
            "total_duration": total_duration(clips),
        }
    )
    return 0


def cmd_resolve(args: argparse.Namespace) -> int:
    app = _app(args)
    try:
        metadata = asyncio.run(app.resolver.resolve(args.url))
    finally:
        app.close()
    _print_json(metadata.model_dump(mode="json"))
    return 0


def cmd_refresh(args: argparse.Namespace) -> int:
    app = _app(args)
    try:
        report = asyncio.run(app.refresher.refresh_store(RefreshMode(args.mode)))
    finally:
        app.close()
    _print_json(report.to_dict())
    return 1 if report.failed else 0


def cmd_share(args: argparse.Namespace) -> int:
    app = _app(args)
    try:
        if args.action == "enable":
            result = app.shares.enable_share(args.target)
        elif args.action == "disable":
            result = app.shares.disable_share(args.target)
        else:
            result = app.shares.get_shared_view(args.target)
    finally:
        app.close()
    _print_json(result.model_dump(mode="json"))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="clipnote", description="ClipNote core utilities")
    p.add_argument("--env-file", help="Path to a .env file (defaults to ./.env)")
    sub = p.add_subparsers(dest="command", required=True)

    classify = sub.add_parser("classify", help="Show the platform and id a video URL maps to")
    classify.add_argument("url")
    classify.set_defaults(func=cmd_classify)

    parse = sub.add_parser("parse", help="Parse timestamp notes from a file or stdin")
    parse.add_argument("file", nargs="?")
    parse.add_argument("--export", metavar="VIDEO_URL", help="Print an export script for this video instead")
    parse.add_argument("--output", default="output.mp4")
    parse.set_defaults(func=cmd_parse)

    resolve = sub.add_parser("resolve", help="Fetch metadata for a video URL")
    resolve.add_argument("url")
    resolve.set_defaults(func=cmd_resolve)

    refresh = sub.add_parser("refresh", help="Refresh stored project metadata")
    refresh.add_argument("--mode", choices=[mode.value for mode in RefreshMode], default=RefreshMode.MISSING_ONLY.value)
    refresh.set_defaults(func=cmd_refresh)

    share = sub.add_parser("share", help="Manage share links")
    share.add_argument("action", choices=["enable", "disable", "show"])
    share.add_argument("target", help="Project id (enable/disable) or share id (show)")
    share.set_defaults(func=cmd_share)
    return p


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ClipNoteError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
