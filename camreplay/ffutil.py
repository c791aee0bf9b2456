"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import shutil
import subprocess
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

# How often a running ffmpeg process is checked for cancellation.
_CANCEL_POLL = 0.2


class FFmpegNotFoundError(RuntimeError):
    pass


class FFmpegCancelledError(RuntimeError):
    """Raised when an ffmpeg run is terminated through its cancel event."""
    pass


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe_duration(input_path: Path) -> float:
    """Return the container duration in seconds, or 0.0 if it can't be read.

    A segment that is still being written has no index yet, so ffprobe either
    fails or reports nothing; both count as indeterminate.
    """
    cmd = [
        "ffprobe",
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "json",
        str(input_path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=10)
        return max(float(json.loads(result.stdout)["format"]["duration"]), 0.0)
    except subprocess.TimeoutExpired:
        logger.warning("ffprobe timed out on %s", input_path.name)
    except subprocess.CalledProcessError as e:
        logger.warning("ffprobe failed on %s: %s", input_path.name, (e.stderr or "").strip()[-200:])
    except (ValueError, KeyError, TypeError):
        logger.warning("ffprobe reported no duration for %s", input_path.name)
    return 0.0


def run_ffmpeg(cmd: list[str], cancel: threading.Event | None = None) -> None:
    """Run an ffmpeg command to completion.

    If *cancel* is set while the process runs, the process is terminated and
    FFmpegCancelledError is raised. A non-zero exit raises CalledProcessError
    carrying ffmpeg's stderr.
    """
    logger.debug("running %s", " ".join(cmd))
    proc = subprocess.Popen(
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        text=True,
    )
    while True:
        try:
            _, stderr = proc.communicate(timeout=_CANCEL_POLL)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.is_set():
                proc.terminate()
                try:
                    proc.communicate(timeout=5)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.communicate()
                raise FFmpegCancelledError(f"ffmpeg cancelled: {cmd[-1]}")

    if proc.returncode != 0:
        raise subprocess.CalledProcessError(proc.returncode, cmd, stderr=stderr)


def trim(
    input_path: Path,
    output_path: Path,
    offset: float = 0.0,
    duration: float | None = None,
    cancel: threading.Event | None = None,
) -> Path:
    """Stream-copy a slice of *input_path* into *output_path*.

    Input seeking with ``-c copy`` snaps the cut to the keyframe at or before
    *offset*. ``duration=None`` copies through to the end of the file.
    """
    cmd = ["ffmpeg", "-y"]
    if offset > 0:
        cmd += ["-ss", f"{offset:.3f}"]
    cmd += ["-i", str(input_path)]
    if duration is not None:
        cmd += ["-t", f"{duration:.3f}"]
    cmd += ["-map", "0", "-c", "copy", str(output_path)]
    run_ffmpeg(cmd, cancel)
    return output_path


def _concat_entry(path: Path) -> str:
    # concat demuxer quoting: close the quote, emit an escaped quote, reopen
    escaped = str(path.resolve()).replace("'", "'\\''")
    return f"file '{escaped}'"


def write_concat_list(fragments: list[Path], list_path: Path) -> Path:
    """Write the input list consumed by ffmpeg's concat demuxer."""
    list_path.write_text("\n".join(_concat_entry(f) for f in fragments) + "\n", encoding="utf-8")
    return list_path


def concat(
    fragments: list[Path],
    output_path: Path,
    list_path: Path,
    cancel: threading.Event | None = None,
) -> Path:
    """Join same-codec fragments into one file with the concat demuxer.

    No re-encode: every fragment must come from the same capture settings.
    """
    if not fragments:
        raise ValueError("concat called with empty fragment list")

    write_concat_list(fragments, list_path)
    cmd = [
        "ffmpeg", "-y",
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_path),
        "-c", "copy",
        str(output_path),
    ]
    run_ffmpeg(cmd, cancel)
    return output_path
