"""Live-tail selection: the newest segment that is safe to open."""

import logging
import os
import time
from pathlib import Path
from typing import Callable

from camreplay.catalog import SegmentCatalog
from camreplay.models import NoLiveCandidateError, Segment

logger = logging.getLogger(__name__)

# How long a file's size and mtime must hold still to count as sealed.
SETTLE_INTERVAL = 0.25

if os.name == "nt":
    import ctypes
    from ctypes import wintypes

    _kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    _kernel32.CreateFileW.restype = wintypes.HANDLE
    _kernel32.CreateFileW.argtypes = [
        wintypes.LPCWSTR, wintypes.DWORD, wintypes.DWORD, wintypes.LPVOID,
        wintypes.DWORD, wintypes.DWORD, wintypes.HANDLE,
    ]
    _kernel32.CloseHandle.argtypes = [wintypes.HANDLE]

    _GENERIC_READ = 0x80000000
    _OPEN_EXISTING = 3
    _INVALID_HANDLE = wintypes.HANDLE(-1).value

    def _held_open(path: Path, settle: float) -> bool:
        # Share mode 0 fails with a sharing violation while any other
        # process has the file open, writer or not.
        handle = _kernel32.CreateFileW(str(path), _GENERIC_READ, 0, None, _OPEN_EXISTING, 0, None)
        if handle == _INVALID_HANDLE:
            logger.debug("%s is open elsewhere (error %d)", path.name, ctypes.get_last_error())
            return True
        _kernel32.CloseHandle(handle)
        return False
else:
    import fcntl

    def _held_open(path: Path, settle: float) -> bool:
        try:
            fd = os.open(path, os.O_RDONLY)
        except OSError:
            return True
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            fcntl.flock(fd, fcntl.LOCK_UN)
            before = os.fstat(fd)
        except OSError:
            return True
        finally:
            os.close(fd)

        # A plain appending writer takes no lock; it only shows up as growth.
        if settle > 0:
            time.sleep(settle)
            try:
                after = os.stat(path)
            except OSError:
                return True
            if (after.st_size, after.st_mtime_ns) != (before.st_size, before.st_mtime_ns):
                logger.debug("%s changed while settling", path.name)
                return True
        return False


def is_locked(path: Path, settle: float = SETTLE_INTERVAL) -> bool:
    """Return True if another process appears to be writing *path*.

    On Windows the file is opened with no sharing allowed, which fails while
    the capture process holds its handle. POSIX has no mandatory locks, so a
    held advisory lock counts, and so does any change in size or mtime over
    *settle* seconds. Any failure counts as locked.
    """
    return _held_open(Path(path), settle)


class LiveTailSelector:
    """Pick the segment to show in live mode.

    The newest file is always skipped because the capture process is still
    appending to it and its container index isn't written yet. Of the rest,
    the newest one that isn't locked wins. When every remaining file looks
    locked, the second-newest file is returned anyway unless
    *allow_locked_fallback* is off.
    """

    def __init__(
        self,
        catalog: SegmentCatalog,
        lock_probe: Callable[[Path], bool] = is_locked,
        allow_locked_fallback: bool = True,
    ):
        self.catalog = catalog
        self.lock_probe = lock_probe
        self.allow_locked_fallback = allow_locked_fallback

    def select_live_segment(self) -> Segment:
        candidates = list(reversed(self.catalog.list()))
        if len(candidates) < 2:
            raise NoLiveCandidateError(
                f"Need at least two segments for live playback, found {len(candidates)}"
            )

        logger.debug("skipping newest segment %s (still recording)", candidates[0].name)
        for seg in candidates[1:]:
            if self.lock_probe(seg.path):
                logger.debug("segment %s is locked", seg.name)
                continue
            return seg

        if not self.allow_locked_fallback:
            raise NoLiveCandidateError("Every candidate segment is still being written")

        fallback = candidates[1]
        logger.warning("all segments locked, falling back to %s", fallback.name)
        return fallback
