"""Playback engine boundary plus seek, fast-forward and rewind handling."""

import enum
import logging
import threading
import time
from typing import Protocol

logger = logging.getLogger(__name__)


class PlaybackEngine(Protocol):
    """What camreplay needs from a video player.

    The player reports back by calling the reconciler's ``on_*`` methods:
    length known, position changed, playback started, end of stream, error.
    """

    def reset(self) -> None:
        """Drop the current media and any queued events."""

    def load(self, uri: str) -> None: ...

    def play(self) -> None: ...

    def seek(self, position: float) -> None:
        """Jump to a normalized position in [0, 1]."""

    def set_rate(self, multiplier: float) -> None: ...


def format_time(ms: int) -> str:
    """Render milliseconds as HH:MM:SS."""
    total = max(int(ms), 0) // 1000
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


class SeekDebouncer:
    """Hold back stale position reports after a seek.

    After :meth:`request`, positions are withheld from the UI until one lands
    within *tolerance* of the target or *timeout* seconds pass.
    """

    def __init__(self, tolerance: float = 0.02, timeout: float = 0.5, clock=time.monotonic):
        self.tolerance = tolerance
        self.timeout = timeout
        self.clock = clock
        self.target: float | None = None
        self._requested_at = 0.0

    @property
    def pending(self) -> bool:
        return self.target is not None

    def request(self, target: float) -> None:
        self.target = min(max(target, 0.0), 1.0)
        self._requested_at = self.clock()

    def clear(self) -> None:
        self.target = None

    def accept(self, position: float) -> bool:
        """Return True if *position* should be shown."""
        if self.target is None:
            return True
        if abs(position - self.target) < self.tolerance:
            self.target = None
            return True
        if self.clock() - self._requested_at >= self.timeout:
            logger.debug("seek to %.3f not confirmed within %.2fs", self.target, self.timeout)
            self.target = None
            return True
        return False


class ProgressThrottle:
    """Let through at most one update per *min_interval* seconds."""

    def __init__(self, min_interval: float = 0.1, clock=time.monotonic):
        self.min_interval = min_interval
        self.clock = clock
        self._last: float | None = None

    def ready(self) -> bool:
        now = self.clock()
        if self._last is not None and now - self._last < self.min_interval:
            return False
        self._last = now
        return True


class ScrubMode(enum.Enum):
    NONE = "none"
    FAST_FORWARD = "fast_forward"
    REWIND = "rewind"


class TransportControl:
    """User-facing seek, fast-forward and rewind on top of a PlaybackEngine.

    Position and length are fed in from engine events through
    :meth:`update`. While scrubbing, the seek debounce and the UI update
    throttle are bypassed.
    """

    def __init__(
        self,
        engine: PlaybackEngine,
        debouncer: SeekDebouncer | None = None,
        throttle: ProgressThrottle | None = None,
        fast_forward_rate: float = 3.0,
        rewind_step: float = 1.0,
        rewind_interval: float = 0.25,
    ):
        self.engine = engine
        self.debouncer = debouncer or SeekDebouncer()
        self.throttle = throttle or ProgressThrottle()
        self.fast_forward_rate = fast_forward_rate
        self.rewind_step = rewind_step
        self.rewind_interval = rewind_interval
        self.scrub = ScrubMode.NONE
        self.position = 0.0
        self.length_ms = 0
        self._rewind_stop: threading.Event | None = None
        self._lock = threading.Lock()

    def update(self, position: float | None = None, length_ms: int | None = None) -> None:
        with self._lock:
            if position is not None:
                self.position = position
            if length_ms is not None:
                self.length_ms = length_ms

    def seek(self, position: float) -> None:
        position = min(max(position, 0.0), 1.0)
        self.debouncer.request(position)
        self.engine.seek(position)

    def should_report(self, position: float) -> bool:
        if self.scrub is not ScrubMode.NONE:
            return True
        if not self.debouncer.accept(position):
            return False
        return self.throttle.ready()

    def start_fast_forward(self) -> None:
        if self.scrub is ScrubMode.FAST_FORWARD:
            return
        self.stop_rewind()
        self.debouncer.clear()
        self.scrub = ScrubMode.FAST_FORWARD
        self.engine.set_rate(self.fast_forward_rate)

    def stop_fast_forward(self) -> None:
        if self.scrub is not ScrubMode.FAST_FORWARD:
            return
        self.engine.set_rate(1.0)
        self.scrub = ScrubMode.NONE

    def rewind_step_once(self) -> float | None:
        """Step back one rewind step; returns the new position."""
        with self._lock:
            if self.length_ms <= 0:
                return None
            step = self.rewind_step * 1000.0 / self.length_ms
            self.position = max(0.0, self.position - step)
            position = self.position
        self.debouncer.clear()
        self.engine.seek(position)
        return position

    def start_rewind(self) -> None:
        if self.scrub is ScrubMode.REWIND:
            return
        self.stop_fast_forward()
        self.debouncer.clear()
        self.scrub = ScrubMode.REWIND
        stop = threading.Event()
        self._rewind_stop = stop
        self.rewind_step_once()

        def run() -> None:
            while not stop.wait(self.rewind_interval):
                self.rewind_step_once()

        threading.Thread(target=run, name="camreplay-rewind", daemon=True).start()

    def stop_rewind(self) -> None:
        if self._rewind_stop is not None:
            self._rewind_stop.set()
            self._rewind_stop = None
        if self.scrub is ScrubMode.REWIND:
            self.scrub = ScrubMode.NONE

    def stop(self) -> None:
        self.stop_rewind()
        self.stop_fast_forward()
        self.debouncer.clear()
