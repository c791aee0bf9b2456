"""Live playback reconciler.

Keeps a playback engine pinned to the live tail of the archive. There is no
real-time transport: when the engine reaches the end of the segment it is
showing, the reconciler polls the catalog until a newer completed segment
appears and loads that one. Latency is bounded by the poll interval plus the
capture rotation interval.

States::

    IDLE --start_live--> LOADING(s) --started--> FOLLOWING(s)
    FOLLOWING(s) --end of stream--> AWAITING_NEXT(s)
    AWAITING_NEXT(s) --poll, same s--> AWAITING_NEXT(s)
    AWAITING_NEXT(s) --poll, new s'--> LOADING(s')
    any --stop / play_clip / engine error--> IDLE
"""

import enum
import logging
import threading
from typing import Callable

from camreplay.live import LiveTailSelector
from camreplay.logging_config import log_with_metadata
from camreplay.models import Clip, NoLiveCandidateError, PlaybackCursor, PlaybackMode, Segment
from camreplay.transport import PlaybackEngine, TransportControl

logger = logging.getLogger(__name__)


class LiveState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    FOLLOWING = "following"
    AWAITING_NEXT = "awaiting_next"


def _spawn_daemon(fn: Callable[[], None]) -> None:
    threading.Thread(target=fn, name="camreplay-live-poll", daemon=True).start()


class LivePlaybackReconciler:
    """Drive a PlaybackEngine from engine events and catalog polling.

    Engine events may arrive on any thread; they are serialised by an
    internal lock. Engine methods are called from whichever thread caused the
    transition, including the background poller.

    Args:
        selector: Source of the live segment.
        engine: The player to drive.
        poll_interval: Seconds between catalog checks while awaiting the next
            segment.
        near_live_lookback: When a segment starts playing, seek to this many
            seconds before its end. 0 plays from the start.
        transport: Seek/scrub handling; built around *engine* if omitted.
        on_status: Callback receiving human-readable status lines.
        on_position: Callback receiving (position, ms) reports that survive
            the seek debounce.
        spawn: Runs the poller; defaults to a daemon thread.
    """

    def __init__(
        self,
        selector: LiveTailSelector,
        engine: PlaybackEngine,
        poll_interval: float = 5.0,
        near_live_lookback: float = 30.0,
        transport: TransportControl | None = None,
        on_status: Callable[[str], None] | None = None,
        on_position: Callable[[float, int], None] | None = None,
        spawn: Callable[[Callable[[], None]], None] | None = None,
    ):
        self.selector = selector
        self.engine = engine
        self.poll_interval = poll_interval
        self.near_live_lookback = near_live_lookback
        self.transport = transport or TransportControl(engine)
        self.on_status = on_status
        self.on_position = on_position
        self.spawn = spawn or _spawn_daemon

        self.state = LiveState.IDLE
        self.segment: Segment | None = None
        self.cursor: PlaybackCursor | None = None

        self._lock = threading.RLock()
        self._generation = 0
        self._cancel: threading.Event | None = None

    # -- user-initiated ---------------------------------------------------

    def start_live(self) -> Segment:
        """Enter live mode on the current live tail.

        Raises NoLiveCandidateError (and stays IDLE) if nothing is playable.
        """
        with self._lock:
            self._go_idle()
            self.cursor = None
        try:
            segment = self.selector.select_live_segment()
        except NoLiveCandidateError:
            self._status("No recording available for live playback")
            raise
        with self._lock:
            self.cursor = PlaybackCursor(mode=PlaybackMode.LIVE_FOLLOW)
            self._load(segment)
        return segment

    def play_clip(self, clip: Clip) -> None:
        """Leave live mode and play an assembled clip."""
        with self._lock:
            self._go_idle()
            self.cursor = PlaybackCursor(mode=PlaybackMode.CLIP_PLAYBACK)
            self.engine.reset()
            self.engine.load(clip.path.resolve().as_uri())
            self.engine.play()
        self._status(f"Loading clip {clip.path.name}")

    def stop(self) -> None:
        with self._lock:
            self._go_idle()
            self.cursor = None

    def seek(self, position: float) -> None:
        with self._lock:
            self.transport.seek(position)
            if self.cursor is not None:
                self.cursor.pending_seek = self.transport.debouncer.target

    # -- engine events ----------------------------------------------------

    def on_length_known(self, length_ms: int) -> None:
        with self._lock:
            self.transport.update(length_ms=length_ms)
            if self.cursor is not None:
                self.cursor.length_ms = length_ms
            if self.state is LiveState.FOLLOWING:
                self._near_live_seek()

    def on_playback_started(self) -> None:
        with self._lock:
            if self.state is LiveState.LOADING:
                self.state = LiveState.FOLLOWING
                self._status(f"Playing latest completed recording {self.segment.name}")
                self._near_live_seek()
            elif self.cursor is not None and self.cursor.mode is PlaybackMode.CLIP_PLAYBACK:
                self._status("Playing clip")

    def on_position_changed(self, position: float, ms: int) -> None:
        with self._lock:
            self.transport.update(position=position)
            report = self.transport.should_report(position)
            if self.cursor is not None:
                self.cursor.position = position
                self.cursor.pending_seek = self.transport.debouncer.target
        if report and self.on_position:
            self.on_position(position, ms)

    def on_end_of_stream(self) -> None:
        with self._lock:
            if self.state not in (LiveState.FOLLOWING, LiveState.LOADING):
                return
            self.state = LiveState.AWAITING_NEXT
            self._status(f"Finished {self.segment.name}, waiting for the next recording")
            logger.info("end of %s, polling every %.1fs", self.segment.name, self.poll_interval)
            generation = self._generation
            cancel = threading.Event()
            self._cancel = cancel
        self.spawn(lambda: self._await_next(generation, cancel))

    def on_engine_error(self, message: str) -> None:
        with self._lock:
            log_with_metadata(
                logger, "error", "playback engine error",
                error=message, state=self.state.value,
                segment=self.segment.name if self.segment else None,
            )
            self._go_idle()
            self.cursor = None
        self._status(f"Playback error: {message}")

    # -- polling ----------------------------------------------------------

    def poll(self) -> bool:
        """Run one AWAITING_NEXT check. Returns True once waiting is over."""
        with self._lock:
            generation = self._generation
        return self._poll(generation)

    def _await_next(self, generation: int, cancel: threading.Event) -> None:
        while not cancel.wait(self.poll_interval):
            if self._poll(generation):
                return

    def _poll(self, generation: int) -> bool:
        with self._lock:
            if generation != self._generation or self.state is not LiveState.AWAITING_NEXT:
                return True
            exhausted = self.segment

        try:
            candidate = self.selector.select_live_segment()
        except NoLiveCandidateError:
            with self._lock:
                if generation == self._generation:
                    logger.warning("no live candidate while awaiting next segment, leaving live mode")
                    self._go_idle()
                    self.cursor = None
            self._status("Live playback ended: no recordings found")
            return True

        with self._lock:
            # stop() or a new start_live() may have run while selecting.
            if generation != self._generation or self.state is not LiveState.AWAITING_NEXT:
                return True
            if candidate.same_file(exhausted):
                logger.debug("live tail is still %s", candidate.name)
                return False
            logger.info("new live segment %s", candidate.name)
            self._load(candidate)
            return True

    # -- internals --------------------------------------------------------

    def _load(self, segment: Segment) -> None:
        self._cancel_wait()
        self.state = LiveState.LOADING
        self.segment = segment
        if self.cursor is None:
            self.cursor = PlaybackCursor(mode=PlaybackMode.LIVE_FOLLOW)
        self.cursor.followed_segment = segment
        self.cursor.near_live_seek_done = False
        self.cursor.pending_seek = None
        self.cursor.length_ms = 0
        self.transport.stop()
        self.transport.update(position=0.0, length_ms=0)
        self.engine.reset()
        self.engine.load(segment.path.resolve().as_uri())
        self.engine.play()
        self._status(f"Loading {segment.name}")

    def _near_live_seek(self) -> None:
        cursor = self.cursor
        if cursor is None or cursor.near_live_seek_done or self.near_live_lookback <= 0:
            return
        if cursor.length_ms <= 0:
            # Length not reported yet; on_length_known retries.
            return
        cursor.near_live_seek_done = True
        target = 1.0 - self.near_live_lookback * 1000.0 / cursor.length_ms
        if target <= 0:
            return
        self.transport.seek(target)
        cursor.pending_seek = self.transport.debouncer.target

    def _go_idle(self) -> None:
        self._generation += 1
        self._cancel_wait()
        self.transport.stop()
        self.state = LiveState.IDLE
        self.segment = None

    def _cancel_wait(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None

    def _status(self, message: str) -> None:
        if self.on_status:
            self.on_status(message)
