"""Shared test fixtures."""

from datetime import datetime
from pathlib import Path

import pytest

from camreplay.catalog import segment_name

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_config_path() -> Path:
    return FIXTURES_DIR / "sample_config.json"


@pytest.fixture
def archive(tmp_path: Path):
    """Return a factory that creates empty segment files in an archive dir."""
    archive_dir = tmp_path / "videostore"
    archive_dir.mkdir()

    def make(*starts: datetime) -> list[Path]:
        paths = []
        for start in starts:
            path = archive_dir / segment_name(start)
            path.write_bytes(b"\x00" * 16)
            paths.append(path)
        return paths

    make.dir = archive_dir
    return make
