"""Tests for segment name parsing and the catalog."""

from datetime import datetime
from pathlib import Path

import pytest

from camreplay.catalog import SegmentCatalog, parse_segment_name, segment_name


class TestParseSegmentName:
    def test_valid(self):
        assert parse_segment_name("CAM_USB-20251104-143025.mp4") == datetime(2025, 11, 4, 14, 30, 25)

    @pytest.mark.parametrize("name", [
        "CAM_USB-20251104.mp4",
        "CAM_USB-20251104-143025-extra.mp4",
        "CAM_USB-20251304-143025.mp4",  # month 13
        "CAM_USB-20251104-146025.mp4",  # minute 60
        "CAM_USB-2025110-1430251.mp4",
        "cam_usb-20251104-143025.mp4",
        "CAM_USB-20251104-143025.mkv",
        "notes.txt",
    ])
    def test_invalid_returns_none(self, name):
        assert parse_segment_name(name) is None

    def test_segment_name_inverse(self):
        start = datetime(2025, 1, 2, 3, 4, 5)
        assert segment_name(start) == "CAM_USB-20250102-030405.mp4"
        assert parse_segment_name(segment_name(start)) == start


class TestSegmentCatalog:
    def test_missing_directory_is_empty(self, tmp_path: Path):
        assert SegmentCatalog(tmp_path / "nope").list() == []

    def test_sorted_oldest_first(self, archive):
        archive(
            datetime(2025, 11, 4, 14, 50),
            datetime(2025, 11, 4, 14, 30),
            datetime(2025, 11, 4, 14, 40),
        )
        segments = SegmentCatalog(archive.dir).list()
        starts = [s.start_time for s in segments]
        assert starts == sorted(starts)
        assert [s.name for s in segments] == sorted(s.name for s in segments)

    def test_skips_unparseable_and_foreign_files(self, archive):
        archive(datetime(2025, 11, 4, 14, 30))
        (archive.dir / "CAM_USB-garbage-x.mp4").write_bytes(b"")
        (archive.dir / "thumbnail.jpg").write_bytes(b"")
        (archive.dir / "CAM_USB-20251104-999999.mp4").write_bytes(b"")

        segments = SegmentCatalog(archive.dir).list()
        assert [s.name for s in segments] == ["CAM_USB-20251104-143000.mp4"]

    def test_ignores_subdirectories(self, archive):
        (archive.dir / "CAM_USB-20251104-143000.mp4").mkdir()
        assert SegmentCatalog(archive.dir).list() == []

    def test_unprobed_duration(self, archive):
        archive(datetime(2025, 11, 4, 14, 30))
        (seg,) = SegmentCatalog(archive.dir).list()
        assert seg.duration == 0.0
        assert seg.end_time == seg.start_time

    def test_fresh_read_each_call(self, archive):
        catalog = SegmentCatalog(archive.dir)
        archive(datetime(2025, 11, 4, 14, 30))
        assert len(catalog.list()) == 1
        archive(datetime(2025, 11, 4, 14, 40))
        assert len(catalog.list()) == 2
        (archive.dir / "CAM_USB-20251104-143000.mp4").unlink()
        assert [s.name for s in catalog.list()] == ["CAM_USB-20251104-144000.mp4"]

    def test_lexical_order_matches_day_rollover(self, archive):
        archive(datetime(2025, 11, 5, 0, 0, 5), datetime(2025, 11, 4, 23, 59, 59))
        segments = SegmentCatalog(archive.dir).list()
        assert segments[0].start_time < segments[1].start_time
