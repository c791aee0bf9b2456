"""Tests for the command-line entry point."""

import argparse
import logging
from datetime import datetime
from unittest.mock import patch

import pytest

from camreplay.cli import main, parse_time
from camreplay.engine import ClipResult
from camreplay.logging_config import ROOT_LOGGER
from camreplay.models import Clip, RangeNotFoundError


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.propagate = True


class TestParseTime:
    @pytest.mark.parametrize("value", [
        "2025-11-04T14:31:00",
        "2025-11-04 14:31:00",
        "20251104-143100",
    ])
    def test_formats(self, value):
        assert parse_time(value) == datetime(2025, 11, 4, 14, 31)

    def test_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_time("14:31")


class TestMain:
    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 0
        assert "camreplay" in capsys.readouterr().out

    def test_requires_archive(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["segments"])
        assert exc.value.code == 1
        assert "--archive" in capsys.readouterr().err

    def test_bad_log_level(self, archive, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--archive", str(archive.dir), "--log-level", "LOUD", "segments"])
        assert exc.value.code == 1
        assert "log_level" in capsys.readouterr().err

    def test_bad_config_file(self, tmp_path, capsys):
        config = tmp_path / "camreplay.json"
        config.write_text('{"archive_dir": null}')
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(config), "segments"])
        assert exc.value.code == 1
        assert "archive_dir" in capsys.readouterr().err

    def test_archive_overrides_config(self, archive, tmp_path, capsys):
        archive(datetime(2025, 11, 4, 14, 30))
        config = tmp_path / "camreplay.json"
        config.write_text('{"archive_dir": "/nonexistent", "log_level": "warning"}')
        main(["--config", str(config), "--archive", str(archive.dir), "segments"])
        assert "CAM_USB-20251104-143000.mp4" in capsys.readouterr().out

    def test_segments(self, archive, capsys):
        archive(datetime(2025, 11, 4, 14, 30), datetime(2025, 11, 4, 14, 40))
        main(["--archive", str(archive.dir), "segments"])
        out = capsys.readouterr().out.splitlines()
        assert out == [
            "2025-11-04 14:30:00  CAM_USB-20251104-143000.mp4",
            "2025-11-04 14:40:00  CAM_USB-20251104-144000.mp4",
        ]

    def test_live_needs_two_segments(self, archive, capsys):
        archive(datetime(2025, 11, 4, 14, 30))
        with pytest.raises(SystemExit) as exc:
            main(["--archive", str(archive.dir), "live"])
        assert exc.value.code == 1
        assert "Error" in capsys.readouterr().err

    def test_clip_end_before_start(self, archive, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["-a", str(archive.dir), "clip", "20251104-144000", "20251104-143000"])
        assert exc.value.code == 1

    @patch("camreplay.cli.check_ffmpeg")
    @patch("camreplay.cli.ClipEngine")
    def test_clip_range_not_found(self, mock_engine, mock_check, archive, capsys):
        mock_engine.return_value.request_clip.side_effect = RangeNotFoundError(
            "start", datetime(2025, 11, 4, 9, 0)
        )
        with pytest.raises(SystemExit) as exc:
            main(["-a", str(archive.dir), "clip", "20251104-090000", "20251104-090100"])
        assert exc.value.code == 1
        assert "start" in capsys.readouterr().err

    @patch("camreplay.cli.check_ffmpeg")
    @patch("camreplay.cli.ClipEngine")
    def test_clip_moves_output(self, mock_engine, mock_check, archive, tmp_path, capsys):
        produced = tmp_path / "playback_abc.mp4"
        produced.write_bytes(b"data")
        mock_engine.return_value.request_clip.return_value = ClipResult(
            clip=Clip(produced, span=None, duration=480.0), expected_duration=480.0
        )
        dest = tmp_path / "out.mp4"

        main(["-a", str(archive.dir), "clip", "20251104-143100", "20251104-143900", "-o", str(dest)])

        assert dest.read_bytes() == b"data"
        assert not produced.exists()
        assert "00:08:00" in capsys.readouterr().out
