#!/usr/bin/env python3
"""Generate a synthetic camera archive for camreplay testing.

Produces a few short segments named like the capture service's output
(``CAM_USB-YYYYMMDD-HHMMSS.mp4``), each showing a running clock so clip
boundaries can be checked by eye:

  python scripts/generate_test_archive.py /tmp/archive --segments 3 --length 20

The segment muxer opens a new file every ``--length`` seconds. Because the
source is generated faster than real time, file names are assigned here from
a fixed start time rather than the wall clock.
"""

import argparse
import subprocess
import sys
from datetime import datetime, timedelta
from pathlib import Path


def generate_test_archive(output_dir: Path, segments: int, length: int, start: datetime) -> list[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    scratch = output_dir / "_seg%03d.mp4"

    cmd = [
        "ffmpeg", "-y",
        "-f", "lavfi",
        "-i", f"testsrc=size=320x240:rate=30:duration={segments * length}",
        "-c:v", "libx264",
        "-preset", "ultrafast",
        "-pix_fmt", "yuv420p",
        "-g", "30",
        "-an",
        "-f", "segment",
        "-segment_time", str(length),
        "-reset_timestamps", "1",
        str(scratch),
    ]
    subprocess.run(cmd, check=True)

    produced: list[Path] = []
    for i in range(segments):
        src = output_dir / f"_seg{i:03d}.mp4"
        if not src.exists():
            break
        seg_start = start + timedelta(seconds=i * length)
        dest = output_dir / f"CAM_USB-{seg_start:%Y%m%d}-{seg_start:%H%M%S}.mp4"
        src.rename(dest)
        produced.append(dest)
    return produced


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("output", type=Path, nargs="?", default=Path("tests/fixtures/archive"))
    parser.add_argument("--segments", type=int, default=3)
    parser.add_argument("--length", type=int, default=20, help="Seconds per segment")
    parser.add_argument("--start", type=str, default="20251104-143000", help="YYYYMMDD-HHMMSS")
    args = parser.parse_args()

    try:
        start = datetime.strptime(args.start, "%Y%m%d-%H%M%S")
    except ValueError:
        print(f"Invalid --start {args.start!r}", file=sys.stderr)
        sys.exit(1)

    for path in generate_test_archive(args.output, args.segments, args.length, start):
        print(f"Generated: {path}")
