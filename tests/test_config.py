"""Tests for config loading and validation."""

import json
import tempfile
from pathlib import Path

import pytest

from camreplay.config import ArchiveConfig, load_config


class TestArchiveConfig:
    def test_defaults(self):
        cfg = ArchiveConfig(archive_dir=Path("/srv/videostore"))
        assert cfg.poll_interval == 5.0
        assert cfg.near_live_lookback == 30.0
        assert cfg.seek_tolerance == 0.02
        assert cfg.seek_timeout == 0.5
        assert cfg.allow_locked_fallback is True
        assert cfg.fast_forward_rate == 3.0
        assert cfg.clip_dir == Path(tempfile.gettempdir())
        assert cfg.log_file is None

    def test_paths_coerced(self):
        cfg = ArchiveConfig(archive_dir="/srv/videostore", clip_dir="/tmp/clips", log_file="/tmp/x.log")
        assert cfg.archive_dir == Path("/srv/videostore")
        assert cfg.clip_dir == Path("/tmp/clips")
        assert cfg.log_file == Path("/tmp/x.log")

    @pytest.mark.parametrize("kwargs", [
        {"poll_interval": 0},
        {"near_live_lookback": -1},
        {"seek_tolerance": 1.5},
        {"lock_settle_interval": -0.1},
        {"log_level": "LOUD"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ArchiveConfig(archive_dir=Path("/a"), **kwargs)

    def test_log_level_normalised(self):
        assert ArchiveConfig(archive_dir=Path("/a"), log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize("archive_dir", [None, ""])
    def test_empty_archive_dir(self, archive_dir):
        with pytest.raises(ValueError, match="archive_dir"):
            ArchiveConfig(archive_dir=archive_dir)


class TestLoadConfig:
    def test_load_sample(self, sample_config_path: Path):
        cfg = load_config(sample_config_path)
        assert cfg.archive_dir == Path("/srv/videostore")
        assert cfg.clip_dir == Path("/tmp/camreplay-clips")
        assert cfg.poll_interval == 2.5
        assert cfg.near_live_lookback == 0
        assert cfg.allow_locked_fallback is False

    def test_load_invalid_json(self, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("not json")
        with pytest.raises(json.JSONDecodeError):
            load_config(bad)

    def test_load_missing_archive_dir(self, tmp_path: Path):
        incomplete = tmp_path / "incomplete.json"
        incomplete.write_text('{"poll_interval": 3}')
        with pytest.raises(ValueError, match="must contain"):
            load_config(incomplete)

    def test_load_unknown_field(self, tmp_path: Path):
        typo = tmp_path / "typo.json"
        typo.write_text('{"archive_dir": "/a", "pol_interval": 3}')
        with pytest.raises(ValueError, match="pol_interval"):
            load_config(typo)

    def test_load_null_archive_dir(self, tmp_path: Path):
        null = tmp_path / "null.json"
        null.write_text('{"archive_dir": null}')
        with pytest.raises(ValueError, match="archive_dir"):
            load_config(null)

    def test_load_bad_log_level(self, tmp_path: Path):
        bad = tmp_path / "level.json"
        bad.write_text('{"archive_dir": "/a", "log_level": "chatty"}')
        with pytest.raises(ValueError, match="log_level"):
            load_config(bad)
