"""Logging setup for camreplay.

All modules log through ``logging.getLogger(__name__)`` beneath the
``camreplay`` logger; :func:`setup_logger` attaches newline-delimited JSON
handlers to it.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

ROOT_LOGGER = "camreplay"


class JSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per line."""

    def __init__(self, component: str):
        super().__init__()
        self.component = component

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "component": self.component,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "metadata") and isinstance(record.metadata, dict):
            log_entry["metadata"] = record.metadata

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logger(
    component: str = "camreplay",
    log_level: str = "INFO",
    log_file: Path | None = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
    console_output: bool = True,
) -> logging.Logger:
    """Configure the ``camreplay`` logger with JSON output.

    Args:
        component: Name recorded in every entry (cli, web, ...).
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        log_file: Optional rotating log file.
        max_bytes: Rotation size for *log_file*.
        backup_count: Rotated files to keep.
        console_output: Also log to stderr.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers.clear()
    logger.propagate = False

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter(component))
        logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(JSONFormatter(component))
        logger.addHandler(console_handler)

    return logger


def log_with_metadata(logger: logging.Logger, level: str, message: str, **metadata: Any) -> None:
    """Log *message* with structured key/value fields."""
    log_method = getattr(logger, level.lower())
    log_method(message, extra={"metadata": metadata})
