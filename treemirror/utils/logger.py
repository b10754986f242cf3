"""
Logging Setup

Console records go to stderr so stdout only carries command output. Each
record is rendered as tinted text, plain text or JSON, and can also be
written to a size-rotated log file. Worker threads are named, so the file
format includes the thread to tell scan and transfer workers apart.

Author: treemirror Project
License: MIT
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "treemirror"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(module)s:%(lineno)d: %(message)s"
JSON_CONSOLE_FIELDS = "%(asctime)s %(name)s %(levelname)s %(message)s"
JSON_FILE_FIELDS = "%(asctime)s %(name)s %(levelname)s %(threadName)s %(module)s %(lineno)d %(message)s"


class ColoredFormatter(logging.Formatter):
    """Text formatter that wraps the level name in an ANSI color."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def formatMessage(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().formatMessage(record)

        # The record is shared with the file handler
        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = plain


def _resolve_level(log_level: str) -> int:
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    return level


def build_formatter(json_format: bool, colored: bool = False, for_file: bool = False) -> logging.Formatter:
    """Pick the formatter for a console or file handler."""
    if json_format:
        return jsonlogger.JsonFormatter(JSON_FILE_FIELDS if for_file else JSON_CONSOLE_FIELDS)
    if for_file:
        return logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT)
    if colored:
        return ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT)


def _rotating_file_handler(
    log_file_path: str,
    max_bytes: int,
    backup_count: int
) -> RotatingFileHandler:
    path = Path(log_file_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        str(path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_file_path: Optional[str] = None,
    log_rotation_size: int = 10485760,  # 10MB
    log_retention_count: int = 5,
    json_format: bool = False,
    colored: Optional[bool] = None,
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure the ``treemirror`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        log_level: Level name applied to the logger and all handlers
        log_to_file: Also write records to log_file_path
        log_file_path: Log file location (required with log_to_file)
        log_rotation_size: File size in bytes that triggers rotation
        log_retention_count: Rotated files kept next to the active one
        json_format: Emit one JSON object per record
        colored: Tint level names on the console (None = only on a TTY)
        stream: Console stream (defaults to stderr)

    Returns:
        The configured application logger

    Raises:
        ValueError: For an unknown level or a missing log file path
    """
    level = _resolve_level(log_level)
    if log_to_file and not log_file_path:
        raise ValueError("log_file_path is required when log_to_file is enabled")

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(level)
    for old_handler in list(app_logger.handlers):
        app_logger.removeHandler(old_handler)
        old_handler.close()

    stream = stream or sys.stderr
    if colored is None:
        colored = hasattr(stream, "isatty") and stream.isatty()

    handlers = [logging.StreamHandler(stream)]
    handlers[0].setFormatter(build_formatter(json_format, colored=colored))

    if log_to_file:
        file_handler = _rotating_file_handler(log_file_path, log_rotation_size, log_retention_count)
        file_handler.setFormatter(build_formatter(json_format, for_file=True))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        app_logger.addHandler(handler)

    # Records stop here instead of reaching the root logger
    app_logger.propagate = False

    app_logger.debug(
        f"Logging at {logging.getLevelName(level)}"
        + (f", file: {log_file_path}" if log_to_file else "")
    )
    return app_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, nested under the ``treemirror`` logger."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
