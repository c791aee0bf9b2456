"""Thin CLI entry point: builds a config and calls the engine."""

import argparse
import dataclasses
import shutil
import subprocess
import sys
from datetime import datetime
from pathlib import Path

from camreplay.assembler import AssemblyError
from camreplay.config import ArchiveConfig, load_config
from camreplay.engine import ClipEngine
from camreplay.ffutil import FFmpegNotFoundError, check_ffmpeg
from camreplay.logging_config import setup_logger
from camreplay.models import NotFoundError, TimeRange
from camreplay.transport import format_time

TIME_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y%m%d-%H%M%S")


def parse_time(value: str) -> datetime:
    """argparse type for wall-clock times."""
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(
        f"invalid time {value!r}; use YYYY-MM-DDTHH:MM:SS or YYYYMMDD-HHMMSS"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="camreplay",
        description="camreplay: clip extraction and live-tail lookup for a segmented camera archive.",
    )
    parser.add_argument("--config", "-c", type=Path, help="Path to a JSON config file")
    parser.add_argument("--archive", "-a", type=Path, help="Archive directory (overrides config)")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("segments", help="List archive segments")

    clip = sub.add_parser("clip", help="Extract a time range as a single video file")
    clip.add_argument("start", type=parse_time, help="Range start")
    clip.add_argument("end", type=parse_time, help="Range end")
    clip.add_argument("--output", "-o", type=Path, help="Where to move the finished clip")

    sub.add_parser("live", help="Print the segment live playback would show")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    return parser


def _load(args: argparse.Namespace) -> ArchiveConfig:
    if not (args.config or args.archive):
        print("Error: provide --archive or --config.", file=sys.stderr)
        sys.exit(1)

    overrides = {}
    if args.archive:
        overrides["archive_dir"] = args.archive
    if args.log_level:
        overrides["log_level"] = args.log_level

    try:
        if args.config:
            # replace() re-runs validation on the overridden fields.
            return dataclasses.replace(load_config(args.config), **overrides)
        return ArchiveConfig(**overrides)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    config = _load(args)
    component = "web" if args.command == "serve" else "cli"
    setup_logger(component, config.log_level, log_file=config.log_file)

    if args.command == "serve":
        from camreplay.web import create_app
        app = create_app(config)
        print(f"camreplay web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
        return

    engine = ClipEngine(config)

    if args.command == "segments":
        for seg in engine.segments():
            print(f"{seg.start_time:%Y-%m-%d %H:%M:%S}  {seg.name}")
        return

    if args.command == "live":
        try:
            seg = engine.live_segment()
        except NotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(seg.path)
        return

    try:
        time_range = TimeRange(args.start, args.end)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    def on_progress(stage: str, frac: float) -> None:
        print(f"  [{frac:3.0%}] {stage}")

    try:
        check_ffmpeg()
        result = engine.request_clip(time_range, on_progress=on_progress)
    except (FFmpegNotFoundError, NotFoundError, AssemblyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except subprocess.CalledProcessError as e:
        print(f"Error: ffmpeg failed (rc={e.returncode})", file=sys.stderr)
        sys.exit(1)

    output = result.clip.path
    if args.output:
        output = Path(shutil.move(str(result.clip.path), str(args.output)))

    print()
    print(f"Done! Output: {output}")
    print(f"  Segments used: {len(result.parts)}")
    print(f"  Duration: {format_time(result.clip.duration * 1000)} (requested {format_time(result.expected_duration * 1000)})")


if __name__ == "__main__":
    main()
