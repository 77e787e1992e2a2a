"""Structured JSON logging shared by the Victor packages."""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import UTC, datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any

VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """
    Renders each record as one JSON line.

    Fields passed with ``extra={...}`` are nested under ``extra``. When a
    service name is given it is stamped on every line.
    """

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.service:
            entry["service"] = self.service
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
        if extra:
            entry["extra"] = extra
        return json.dumps(entry, default=str)


class DailyRotatingFileHandler(TimedRotatingFileHandler):
    """Writes to ``<directory>/YYYY-MM-DD.log``, switching files at UTC midnight."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        super().__init__(self._today_path(), when="midnight", utc=True)

    def _today_path(self) -> str:
        return str(self.directory / f"{datetime.now(tz=UTC):%Y-%m-%d}.log")

    def doRollover(self) -> None:  # noqa: N802
        if self.stream:
            self.stream.close()
            self.stream = None  # type: ignore[assignment]
        self.baseFilename = str(Path(self._today_path()).resolve())
        if not self.delay:
            self.stream = self._open()
        self.rolloverAt = self.computeRollover(int(time.time()))


def configure_logging(
    level: str,
    namespace: str,
    log_directory: str,
    service: str | None = None,
) -> logging.Logger:
    """
    Send every logger under ``namespace`` to stdout and a daily log file.

    Calling it again replaces the handlers from the previous call.

    Raises:
        ValueError: If level is not a valid log level
    """
    level_name = level.upper()
    if level_name not in VALID_LOG_LEVELS:
        msg = f"Invalid log level: {level}. Must be one of {list(VALID_LOG_LEVELS)}"
        raise ValueError(msg)
    numeric_level: int = getattr(logging, level_name)

    directory = Path(log_directory)
    directory.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(namespace)
    logger.setLevel(numeric_level)
    for old in list(logger.handlers):
        old.close()
        logger.removeHandler(old)

    formatter = JSONFormatter(service)
    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        DailyRotatingFileHandler(directory),
    ]
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_named_logger(namespace: str, name: str) -> logging.Logger:
    """Logger for ``name`` placed under ``namespace`` unless already inside it."""
    if name == namespace or name.startswith(f"{namespace}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{namespace}.{name}")
