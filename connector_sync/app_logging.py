"""Logging setup for the sync service.

Every module logs through ``logging.getLogger(__name__)`` below the
``connector_sync`` logger configured here. Records go to a midnight-rotated
``app.log`` under LOG_DIR and to stderr; uvicorn's access log, when the API
is served, is redirected to ``access.log`` in the same directory.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_RETENTION_DAYS,
LOG_ROTATE_UTC.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from logging.handlers import TimedRotatingFileHandler

LOGGER_NAME = "connector_sync"
ACCESS_LOGGER_NAME = "uvicorn.access"
TEXT_FORMAT = "[%(asctime)s] %(levelname)s %(threadName)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers (LOG_JSON=true)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


@dataclass(frozen=True)
class LogSettings:
    directory: str = "logs"
    level: int = logging.INFO
    json_lines: bool = False
    retention_days: int = 7
    rotate_utc: bool = False

    @classmethod
    def from_env(cls) -> "LogSettings":
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        return cls(
            directory=os.getenv("LOG_DIR", "logs"),
            level=getattr(logging, level_name, logging.INFO),
            json_lines=os.getenv("LOG_JSON", "false").lower() == "true",
            retention_days=int(os.getenv("LOG_RETENTION_DAYS", "7")),
            rotate_utc=os.getenv("LOG_ROTATE_UTC", "false").lower() == "true",
        )

    def formatter(self) -> logging.Formatter:
        return JsonFormatter() if self.json_lines else logging.Formatter(TEXT_FORMAT)

    def file_handler(self, filename: str) -> TimedRotatingFileHandler:
        handler = TimedRotatingFileHandler(
            os.path.join(self.directory, filename),
            when="midnight",
            backupCount=self.retention_days,
            utc=self.rotate_utc,
        )
        handler.setFormatter(self.formatter())
        return handler


def init_logging() -> logging.Logger:
    """Configure the package and access loggers; safe to call repeatedly."""

    settings = LogSettings.from_env()
    os.makedirs(settings.directory, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        logger.addHandler(settings.file_handler("app.log"))
        stderr = logging.StreamHandler()
        stderr.setFormatter(settings.formatter())
        logger.addHandler(stderr)
    logger.setLevel(settings.level)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    for handler in list(access_logger.handlers):
        handler.close()
        access_logger.removeHandler(handler)
    access_logger.addHandler(settings.file_handler("access.log"))
    access_logger.setLevel(settings.level)
    return logger


__all__ = ["LOGGER_NAME", "JsonFormatter", "LogSettings", "init_logging"]
