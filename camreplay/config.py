"""JSON configuration: where the archive lives and how playback behaves."""

import json
import tempfile
from dataclasses import dataclass, field, fields
from pathlib import Path

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ArchiveConfig:
    """Settings shared by the CLI, the web API and the live reconciler."""

    archive_dir: Path
    clip_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    poll_interval: float = 5.0
    near_live_lookback: float = 30.0
    seek_tolerance: float = 0.02
    seek_timeout: float = 0.5
    allow_locked_fallback: bool = True
    lock_settle_interval: float = 0.25
    fast_forward_rate: float = 3.0
    rewind_step: float = 1.0
    rewind_interval: float = 0.25
    log_level: str = "INFO"
    log_file: Path | None = None

    def __post_init__(self) -> None:
        if not self.archive_dir:
            raise ValueError("archive_dir must be a non-empty path")
        self.archive_dir = Path(self.archive_dir)
        self.clip_dir = Path(self.clip_dir)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.near_live_lookback < 0:
            raise ValueError("near_live_lookback can't be negative")
        if not 0 < self.seek_tolerance < 1:
            raise ValueError("seek_tolerance must be between 0 and 1")
        if self.lock_settle_interval < 0:
            raise ValueError("lock_settle_interval can't be negative")
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")


def load_config(path: str | Path) -> ArchiveConfig:
    """Load and validate a config from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if not data.get("archive_dir"):
        raise ValueError("Config must contain an 'archive_dir' field")

    known = {f.name for f in fields(ArchiveConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config fields: {', '.join(unknown)}")

    return ArchiveConfig(**data)
