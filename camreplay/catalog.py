"""Segment catalog: the on-disk archive as an ordered list of segments."""

import logging
from datetime import datetime
from pathlib import Path

from camreplay.models import Segment

logger = logging.getLogger(__name__)

SEGMENT_PREFIX = "CAM_USB"
SEGMENT_SUFFIX = ".mp4"
SEGMENT_GLOB = f"{SEGMENT_PREFIX}-*{SEGMENT_SUFFIX}"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def parse_segment_name(name: str) -> datetime | None:
    """Parse the start time out of ``CAM_USB-YYYYMMDD-HHMMSS.mp4``.

    Returns None for anything that doesn't follow the naming scheme.

    >>> parse_segment_name("CAM_USB-20251104-143025.mp4")
    datetime.datetime(2025, 11, 4, 14, 30, 25)
    >>> parse_segment_name("CAM_USB-latest.mp4") is None
    True
    """
    if not (name.startswith(SEGMENT_PREFIX + "-") and name.endswith(SEGMENT_SUFFIX)):
        return None

    parts = name[: -len(SEGMENT_SUFFIX)].split("-")
    if len(parts) != 3:
        return None

    date_part, time_part = parts[1], parts[2]
    if len(date_part) != 8 or len(time_part) != 6:
        return None

    try:
        return datetime.strptime(date_part + time_part, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def segment_name(start_time: datetime) -> str:
    """Inverse of parse_segment_name."""
    return f"{SEGMENT_PREFIX}-{start_time:%Y%m%d}-{start_time:%H%M%S}{SEGMENT_SUFFIX}"


class SegmentCatalog:
    """Read-only view of the archive directory.

    Every :meth:`list` call re-reads the directory; the capture process adds
    files continuously, so nothing is cached between calls.
    """

    def __init__(self, archive_dir: Path):
        self.archive_dir = Path(archive_dir)

    def list(self) -> list[Segment]:
        """Return all parseable segments, oldest first."""
        if not self.archive_dir.is_dir():
            logger.warning("archive directory %s does not exist", self.archive_dir)
            return []

        segments: list[Segment] = []
        # Filename order is start-time order by construction of the name.
        for path in sorted(self.archive_dir.glob(SEGMENT_GLOB), key=lambda p: p.name):
            if not path.is_file():
                continue
            start_time = parse_segment_name(path.name)
            if start_time is None:
                logger.debug("skipping unparseable segment name %s", path.name)
                continue
            segments.append(Segment(path=path, start_time=start_time))
        return segments
