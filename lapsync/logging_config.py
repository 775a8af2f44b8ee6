"""
Structured logging configuration for lapsync.

Provides JSON-formatted logs with a session_id field so capture, replay and
sync lines from one run can be correlated.

Environment Variables:
    LAPSYNC_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR) - default: INFO
    LAPSYNC_LOG_FORMAT: Log format (json, text) - default: json

Usage:
    from lapsync.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__, session_id="cfg-123")
    logger.info("Pushed events", extra={"count": 4})
"""

import logging
import os
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class SessionIdFilter(logging.Filter):
    """
    Logging filter that adds session_id to all log records.

    Ensures every record has the field, even when not logged through get_logger().
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = "N/A"  # type: ignore
        return True


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure root logger with structured logging.

    Arguments override the environment:
    - LAPSYNC_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    - LAPSYNC_LOG_FORMAT: json, text (default: json)

    Logs go to stderr so command output on stdout stays machine-readable.
    """
    log_level = (level or os.getenv("LAPSYNC_LOG_LEVEL", "INFO")).upper()
    fmt = (log_format or os.getenv("LAPSYNC_LOG_FORMAT", "json")).lower()
    resolved = LEVELS.get(log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved)
    handler.addFilter(SessionIdFilter())

    if fmt == "json":
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s %(session_id)s",
            rename_fields={
                "asctime": "timestamp",
                "name": "logger",
                "levelname": "level",
            },
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s [session_id=%(session_id)s]",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str, session_id: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a logger that stamps every record with session_id.

    Example:
        logger = get_logger(__name__, session_id="cfg-123")
        logger.info("Pull applied")
        # Output (JSON): {"timestamp": "...", "level": "INFO", "message": "Pull applied", "session_id": "cfg-123"}
    """
    logger = logging.getLogger(name)
    return logging.LoggerAdapter(logger, {"session_id": session_id or "N/A"})
