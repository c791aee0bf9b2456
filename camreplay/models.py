"""Shared data types used across camreplay."""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path


class NotFoundError(LookupError):
    """Nothing in the archive satisfies the request."""


class RangeNotFoundError(NotFoundError):
    """No segment covers one boundary of a requested time range."""

    def __init__(self, boundary: str, when: datetime):
        super().__init__(f"No segment covers the {boundary} of the range ({when:%Y-%m-%d %H:%M:%S})")
        self.boundary = boundary
        self.when = when


class NoLiveCandidateError(NotFoundError):
    """No segment is safe to offer for live playback."""


@dataclass(frozen=True)
class Segment:
    """One archive file; ``duration`` is 0.0 until probed."""

    path: Path
    start_time: datetime
    duration: float = 0.0

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(seconds=self.duration)

    def covers(self, when: datetime) -> bool:
        return self.duration > 0 and self.start_time <= when < self.end_time

    def same_file(self, other: "Segment | None") -> bool:
        return other is not None and self.path == other.path


@dataclass(frozen=True)
class TimeRange:
    """A wall-clock [start, end) pair."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is not None or self.end.tzinfo is not None:
            raise ValueError("Range times must be naive local times, like segment names")
        if self.end <= self.start:
            raise ValueError(f"Range end {self.end} must be after start {self.start}")

    @property
    def duration(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class SpanPart:
    """A slice of one segment, in seconds relative to the file start."""

    segment: Segment
    offset: float
    duration: float

    @property
    def to_eof(self) -> bool:
        return self.offset + self.duration >= self.segment.duration


@dataclass(frozen=True)
class ResolvedSpan:
    """Ordered slices of consecutive segments covering a TimeRange."""

    time_range: TimeRange
    parts: tuple[SpanPart, ...]

    def __post_init__(self) -> None:
        if not self.parts:
            raise ValueError("ResolvedSpan needs at least one part")

    @property
    def is_single(self) -> bool:
        return len(self.parts) == 1

    @property
    def total_duration(self) -> float:
        return sum(p.duration for p in self.parts)


@dataclass
class Clip:
    """An assembled, independently playable file.

    The caller owns the file once it is returned and is responsible for
    calling :meth:`discard` when done with it.
    """

    path: Path
    span: ResolvedSpan
    duration: float = 0.0

    def discard(self) -> None:
        self.path.unlink(missing_ok=True)


class PlaybackMode(enum.Enum):
    IDLE = "idle"
    CLIP_PLAYBACK = "clip"
    LIVE_FOLLOW = "live"


@dataclass
class PlaybackCursor:
    """Transient reconciler state, replaced whenever the mode changes."""

    mode: PlaybackMode = PlaybackMode.IDLE
    followed_segment: Segment | None = None
    pending_seek: float | None = None
    length_ms: int = 0
    position: float = 0.0
    near_live_seek_done: bool = field(default=False, repr=False)
