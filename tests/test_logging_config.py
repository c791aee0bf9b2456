"""Tests for the JSON logging setup."""

import json
import logging
from pathlib import Path

import pytest

from camreplay.logging_config import JSONFormatter, log_with_metadata, setup_logger


@pytest.fixture(autouse=True)
def _restore_logger():
    logger = logging.getLogger("camreplay")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for h in logger.handlers:
        h.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestJSONFormatter:
    def test_basic_fields(self):
        record = logging.LogRecord("camreplay.live", logging.WARNING, __file__, 1, "locked %s", ("a.mp4",), None)
        entry = json.loads(JSONFormatter("cli").format(record))
        assert entry["level"] == "WARNING"
        assert entry["component"] == "cli"
        assert entry["logger"] == "camreplay.live"
        assert entry["message"] == "locked a.mp4"
        assert entry["timestamp"].endswith("Z")
        assert "metadata" not in entry

    def test_metadata_and_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys
            exc_info = sys.exc_info()
        record = logging.LogRecord("camreplay", logging.ERROR, __file__, 1, "failed", (), exc_info)
        record.metadata = {"stage": "concat", "path": Path("/tmp/x.mp4")}
        entry = json.loads(JSONFormatter("web").format(record))
        assert entry["metadata"] == {"stage": "concat", "path": "/tmp/x.mp4"}
        assert "RuntimeError: boom" in entry["exception"]


class TestSetupLogger:
    def test_file_output(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "camreplay.log"
        logger = setup_logger("cli", "DEBUG", log_file=log_file, console_output=False)
        logging.getLogger("camreplay.resolver").debug("resolved %d", 2)
        log_with_metadata(logger, "info", "clip ready", duration=12.5)
        for h in logger.handlers:
            h.flush()

        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert [l["message"] for l in lines] == ["resolved 2", "clip ready"]
        assert lines[0]["logger"] == "camreplay.resolver"
        assert lines[1]["metadata"] == {"duration": 12.5}

    def test_level_filters(self, tmp_path: Path):
        log_file = tmp_path / "camreplay.log"
        setup_logger("cli", "WARNING", log_file=log_file, console_output=False)
        logging.getLogger("camreplay.live").info("quiet")
        logging.getLogger("camreplay.live").warning("loud")
        for h in logging.getLogger("camreplay").handlers:
            h.flush()
        assert [json.loads(l)["message"] for l in log_file.read_text().splitlines()] == ["loud"]

    def test_repeat_setup_replaces_handlers(self):
        setup_logger("cli", console_output=True)
        logger = setup_logger("cli", console_output=True)
        assert len(logger.handlers) == 1
