"""Time range resolution against probed segment durations."""

import logging
from datetime import datetime
from typing import Callable

from camreplay import ffutil
from camreplay.catalog import SegmentCatalog
from camreplay.models import RangeNotFoundError, ResolvedSpan, Segment, SpanPart, TimeRange

logger = logging.getLogger(__name__)


class TimeRangeResolver:
    """Map wall-clock times onto catalog segments.

    Boundaries are matched against each file's probed duration, not the
    nominal rotation interval: the last file before a restart is short, and a
    file still being written has no readable duration at all.
    """

    def __init__(
        self,
        catalog: SegmentCatalog,
        probe_duration: Callable[..., float] | None = None,
    ):
        self.catalog = catalog
        self.probe_duration = probe_duration

    def resolve(self, time_range: TimeRange) -> ResolvedSpan:
        segments = self.catalog.list()
        durations: dict = {}

        start_idx = self._locate(segments, time_range.start, durations)
        if start_idx is None:
            raise RangeNotFoundError("start", time_range.start)
        # The end instant itself must be covered, so a range ending exactly
        # where the file still recording begins is not found until that
        # file is sealed.
        end_idx = self._locate(segments, time_range.end, durations)
        if end_idx is None or end_idx < start_idx:
            raise RangeNotFoundError("end", time_range.end)

        first = self._probed(segments[start_idx], durations)
        start_offset = (time_range.start - first.start_time).total_seconds()

        if start_idx == end_idx:
            part = SpanPart(first, offset=start_offset, duration=time_range.duration)
            return ResolvedSpan(time_range, (part,))

        parts = [SpanPart(first, offset=start_offset, duration=first.duration - start_offset)]
        for seg in segments[start_idx + 1 : end_idx]:
            seg = self._probed(seg, durations)
            parts.append(SpanPart(seg, offset=0.0, duration=seg.duration))

        last = self._probed(segments[end_idx], durations)
        tail = (time_range.end - last.start_time).total_seconds()
        if tail > 0:
            parts.append(SpanPart(last, offset=0.0, duration=tail))

        logger.info(
            "resolved %s - %s across %d segments",
            time_range.start, time_range.end, len(parts),
        )
        return ResolvedSpan(time_range, tuple(parts))

    def _locate(self, segments: list[Segment], when: datetime, durations: dict) -> int | None:
        """Index of the first segment whose probed extent contains *when*."""
        for i, seg in enumerate(segments):
            if seg.start_time > when:
                # Later files can't cover an earlier instant.
                break
            seg = self._probed(seg, durations)
            if seg.duration <= 0:
                logger.debug("duration of %s indeterminate, skipping", seg.name)
                continue
            if seg.covers(when):
                return i
        return None

    def _probed(self, seg: Segment, durations: dict) -> Segment:
        if seg.path not in durations:
            probe = self.probe_duration or ffutil.probe_duration
            durations[seg.path] = probe(seg.path)
        return Segment(seg.path, seg.start_time, durations[seg.path])
