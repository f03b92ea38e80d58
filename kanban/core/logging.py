"""
Logging configuration.
Console output in plain or JSON format, level taken from settings.
"""
from __future__ import annotations

import json
import logging
import sys

from kanban.core.config import settings

PLAIN_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def setup_logging(level: str | None = None, json_format: bool | None = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL (DEBUG when settings.DEBUG).
        json_format: Emit JSON lines instead of the plain format; defaults to settings.LOG_JSON.
    """
    log_level = level or ("DEBUG" if settings.DEBUG else settings.LOG_LEVEL)
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    use_json = settings.LOG_JSON if json_format is None else json_format

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    if use_json:
        console_handler.setFormatter(JsonFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
    root_logger.addHandler(console_handler)

    # Silence noisy loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.getLogger("kanban").setLevel(numeric_level)
