"""Orchestrator: ties the catalog, resolver, assembler and live selector together."""

import functools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from camreplay.assembler import AssemblyCancelledError, ClipAssembler
from camreplay.catalog import SegmentCatalog
from camreplay.config import ArchiveConfig
from camreplay.live import LiveTailSelector, is_locked
from camreplay.models import Clip, Segment, SpanPart, TimeRange
from camreplay.reconciler import LivePlaybackReconciler
from camreplay.resolver import TimeRangeResolver
from camreplay.transport import PlaybackEngine, SeekDebouncer, TransportControl

logger = logging.getLogger(__name__)


@dataclass
class ClipResult:
    clip: Clip
    parts: list[SpanPart] = field(default_factory=list)
    expected_duration: float = 0.0


class ClipEngine:
    """Entry point for clip requests and live-tail lookups.

    A new :meth:`request_clip` supersedes one still in flight: the older
    request's ffmpeg process is terminated and it raises
    AssemblyCancelledError.
    """

    def __init__(self, config: ArchiveConfig):
        self.config = config
        self.catalog = SegmentCatalog(config.archive_dir)
        self.resolver = TimeRangeResolver(self.catalog)
        self.assembler = ClipAssembler(clip_dir=config.clip_dir)
        self.selector = LiveTailSelector(
            self.catalog,
            lock_probe=functools.partial(is_locked, settle=config.lock_settle_interval),
            allow_locked_fallback=config.allow_locked_fallback,
        )
        self._lock = threading.Lock()
        self._inflight: threading.Event | None = None

    def segments(self) -> list[Segment]:
        return self.catalog.list()

    def live_segment(self) -> Segment:
        return self.selector.select_live_segment()

    def live_reconciler(
        self,
        player: PlaybackEngine,
        on_status: Callable[[str], None] | None = None,
        on_position: Callable[[float, int], None] | None = None,
    ) -> LivePlaybackReconciler:
        """Build a reconciler that drives *player* with the configured timings."""
        cfg = self.config
        transport = TransportControl(
            player,
            debouncer=SeekDebouncer(tolerance=cfg.seek_tolerance, timeout=cfg.seek_timeout),
            fast_forward_rate=cfg.fast_forward_rate,
            rewind_step=cfg.rewind_step,
            rewind_interval=cfg.rewind_interval,
        )
        return LivePlaybackReconciler(
            self.selector,
            player,
            poll_interval=cfg.poll_interval,
            near_live_lookback=cfg.near_live_lookback,
            transport=transport,
            on_status=on_status,
            on_position=on_position,
        )

    def request_clip(
        self,
        time_range: TimeRange,
        on_progress: Callable[[str, float], None] | None = None,
    ) -> ClipResult:
        """Resolve *time_range* and assemble it into a clip.

        Args:
            time_range: Wall-clock range to extract.
            on_progress: Optional callback(stage_name, fraction_complete).
        """

        def _progress(stage: str, frac: float) -> None:
            if on_progress:
                on_progress(stage, frac)

        cancel = threading.Event()
        with self._lock:
            if self._inflight is not None:
                logger.info("superseding in-flight clip request")
                self._inflight.set()
            self._inflight = cancel

        try:
            _progress("Locating recordings", 0.0)
            span = self.resolver.resolve(time_range)
            if cancel.is_set():
                # Superseded before any ffmpeg process started.
                raise AssemblyCancelledError("trim", span.parts[0].segment.path, "superseded")

            if span.is_single:
                _progress("Cutting single recording", 0.1)
            else:
                _progress(f"Range spans {len(span.parts)} recordings, merging", 0.1)

            def _sub_progress(stage: str, frac: float) -> None:
                _progress(stage, 0.1 + frac * 0.9)

            clip = self.assembler.assemble(span, cancel=cancel, on_progress=_sub_progress)
        finally:
            with self._lock:
                if self._inflight is cancel:
                    self._inflight = None

        return ClipResult(
            clip=clip,
            parts=list(span.parts),
            expected_duration=span.total_duration,
        )
