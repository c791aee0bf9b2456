"""Clip assembler: turns a ResolvedSpan into one playable file."""

import logging
import subprocess
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Callable

from camreplay import ffutil
from camreplay.models import Clip, ResolvedSpan, SpanPart

logger = logging.getLogger(__name__)

CLIP_PREFIX = "playback_"


class AssemblyError(RuntimeError):
    """A trim or concat step failed; *stage* and *path* say which."""

    def __init__(self, stage: str, path: Path, detail: str = ""):
        msg = f"{stage} failed for {path}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.stage = stage
        self.path = path


class AssemblyCancelledError(AssemblyError):
    """The assembly was superseded and its ffmpeg process terminated."""


def _stderr_tail(e: subprocess.CalledProcessError) -> str:
    stderr = e.stderr if isinstance(e.stderr, str) else (e.stderr or b"").decode(errors="replace")
    return stderr.strip()[-500:]


class ClipAssembler:
    """Stream-copy trim (and concat) resolved spans into clip files.

    Finished clips are written to *clip_dir*; multi-segment builds use a
    private scratch directory under *work_root* that is always removed.
    """

    def __init__(self, clip_dir: Path | None = None, work_root: Path | None = None):
        self.clip_dir = Path(clip_dir) if clip_dir else Path(tempfile.gettempdir())
        self.work_root = Path(work_root) if work_root else None

    def assemble(
        self,
        span: ResolvedSpan,
        cancel: threading.Event | None = None,
        on_progress: Callable[[str, float], None] | None = None,
    ) -> Clip:
        def _progress(stage: str, frac: float) -> None:
            if on_progress:
                on_progress(stage, frac)

        self.clip_dir.mkdir(parents=True, exist_ok=True)

        if span.is_single:
            output = self.clip_dir / f"{CLIP_PREFIX}{uuid.uuid4().hex}.mp4"
            _progress("Trimming segment", 0.0)
            self._trim(span.parts[0], output, cancel)
        else:
            output = self.clip_dir / f"{CLIP_PREFIX}merged_{uuid.uuid4().hex}.mp4"
            self._assemble_many(span, output, cancel, _progress)

        _progress("Verifying clip", 0.95)
        clip = Clip(path=output, span=span, duration=ffutil.probe_duration(output))
        logger.info(
            "assembled %s (%.1fs, expected %.1fs)",
            output.name, clip.duration, span.total_duration,
        )
        _progress("Done", 1.0)
        return clip

    def _assemble_many(self, span: ResolvedSpan, output: Path, cancel, _progress) -> None:
        n = len(span.parts)
        if self.work_root is not None:
            self.work_root.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix="camreplay_", dir=self.work_root) as tmpdir:
            work_dir = Path(tmpdir)
            fragments: list[Path] = []
            for i, part in enumerate(span.parts):
                _progress(f"Trimming fragment {i + 1}/{n}", 0.8 * i / n)
                fragment = work_dir / f"{i}.mp4"
                # All but the last fragment run to EOF; only the first has an offset.
                self._trim(part, fragment, cancel, to_eof=i < n - 1)
                fragments.append(fragment)

            _progress("Joining fragments", 0.8)
            try:
                ffutil.concat(fragments, output, work_dir / "mylist.txt", cancel=cancel)
            except ffutil.FFmpegCancelledError as e:
                output.unlink(missing_ok=True)
                raise AssemblyCancelledError("concat", output, str(e)) from e
            except subprocess.CalledProcessError as e:
                output.unlink(missing_ok=True)
                raise AssemblyError("concat", output, _stderr_tail(e)) from e
            except OSError as e:
                output.unlink(missing_ok=True)
                raise AssemblyError("concat", output, str(e)) from e

    def _trim(self, part: SpanPart, output: Path, cancel, to_eof: bool = False) -> None:
        source = part.segment.path
        try:
            ffutil.trim(
                source,
                output,
                offset=part.offset,
                duration=None if to_eof else part.duration,
                cancel=cancel,
            )
        except ffutil.FFmpegCancelledError as e:
            output.unlink(missing_ok=True)
            raise AssemblyCancelledError("trim", source, str(e)) from e
        except subprocess.CalledProcessError as e:
            output.unlink(missing_ok=True)
            raise AssemblyError("trim", source, _stderr_tail(e)) from e
        except OSError as e:
            output.unlink(missing_ok=True)
            raise AssemblyError("trim", source, str(e)) from e
