# common/logging_config.py
# -*- coding: utf-8 -*-
"""
Centralized logging configuration for the WSL provisioner.

Every run writes two files next to each other:

- a human readable run log, one ``[YYYY-mm-dd HH:MM:SS] [LEVEL] message``
  line per record, which is what users tail and what the report links to;
- an NDJSON event stream (same name, ``.ndjson`` suffix) holding only the
  records logged with an ``event`` field. The host-side monitor reads this
  file to follow progress and outcome without scraping the text log.

SUCCESS is registered as its own level between INFO and WARNING so it is
shown whenever INFO is.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

SUCCESS_LEVEL = 25
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

SECTION_SEPARATOR = "=================================="
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
TEMP_LOG_DIR = Path("/tmp")

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

# Level names as they appear in the run log
DISPLAY_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUCCESS_LEVEL: "SUCCESS",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}

ANSI_COLORS = {
    "DEBUG": "\033[0;36m",
    "INFO": "\033[0;34m",
    "SUCCESS": "\033[0;32m",
    "WARN": "\033[1;33m",
    "ERROR": "\033[0;31m",
}
ANSI_RESET = "\033[0m"

# LogRecord attributes that are never copied into the event payload
_RESERVED_RECORD_KEYS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
        "exc_info",
        "exc_text",
        "stack_info",
    ]
)


def parse_log_level(level_name: Optional[str]) -> int:
    """Map DEBUG/INFO/WARN/WARNING/SUCCESS/ERROR to a numeric level, INFO if unknown."""
    if not level_name:
        return logging.INFO
    name = str(level_name).strip().upper()
    if name == "WARN":
        return logging.WARNING
    if name == "SUCCESS":
        return SUCCESS_LEVEL
    numeric_level = logging.getLevelName(name)
    if isinstance(numeric_level, int):
        return numeric_level
    return logging.INFO


class RunLogFormatter(logging.Formatter):
    """
    Formats records as ``[timestamp] [LEVEL] message``.

    With ``use_color`` the level tag and message are wrapped in the ANSI
    color for the level; the run log file is always written without color.
    """

    def __init__(self, use_color: bool = False):
        super().__init__(datefmt=LOG_DATE_FORMAT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = DISPLAY_LEVEL_NAMES.get(record.levelno, record.levelname)
        timestamp = self.formatTime(record, self.datefmt)
        line = f"[{timestamp}] [{level}] {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        if self.use_color and level in ANSI_COLORS:
            return f"{ANSI_COLORS[level]}{line}{ANSI_RESET}"
        return line


class JSONFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects for the event stream.

    Each object carries timestamp, run_id, level, logger, message and the
    extra fields passed with the record (``event`` and its payload).
    """

    def __init__(self, run_id: Optional[str] = None):
        super().__init__()
        self.run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat().replace("+00:00", "Z"),
            "run_id": self.run_id,
            "level": DISPLAY_LEVEL_NAMES.get(record.levelno, record.levelname),
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS or key.startswith("_"):
                continue
            log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class EventFilter(logging.Filter):
    """Lets through only records that were logged with an ``event`` field."""

    def filter(self, record: logging.LogRecord) -> bool:
        return bool(getattr(record, "event", None))


def get_run_log_path(
    run_id: str,
    logs_dir: Union[str, Path] = "logs",
    temp_mode: bool = False,
) -> Path:
    """
    Return the run log location.

    In temp mode the log lives under /tmp so that writes stay on the Linux
    filesystem; the log streamer copies it back to the source tree.
    """
    if temp_mode:
        return TEMP_LOG_DIR / f"wsl-install-log-{run_id}.log"
    return Path(logs_dir) / f"wsl-installation-{run_id}.log"


def get_event_log_path(log_path: Union[str, Path]) -> Path:
    """The NDJSON event file paired with a run log."""
    return Path(log_path).with_suffix(".ndjson")


def setup_run_logging(
    run_id: str,
    log_level: Optional[str] = None,
    logs_dir: Union[str, Path] = "logs",
    temp_mode: bool = False,
    enable_console: bool = True,
    enable_file: bool = True,
    enable_events: bool = True,
    logger_name: str = "wsl_provisioner",
) -> logging.Logger:
    """
    Set up logging for one run.

    Args:
        run_id: The run identifier, used in file names and every event.
        log_level: DEBUG, INFO, WARN or ERROR. Falls back to the LOG_LEVEL
            environment variable, then INFO.
        logs_dir: Directory for the run log outside temp mode.
        temp_mode: Write the run log under /tmp instead of logs_dir.
        enable_console: Whether to echo records to stdout.
        enable_file: Whether to write the text run log.
        enable_events: Whether to write the NDJSON event stream.
        logger_name: Name of the logger returned to the caller.

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    numeric_level = parse_log_level(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(min(numeric_level, logging.DEBUG) if enable_events else numeric_level)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(
            RunLogFormatter(use_color=sys.stdout.isatty())
        )
        root_logger.addHandler(console_handler)

    log_file_path = get_run_log_path(run_id, logs_dir, temp_mode)
    if enable_file or enable_events:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

    if enable_file:
        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(RunLogFormatter(use_color=False))
        root_logger.addHandler(file_handler)

    if enable_events:
        event_handler = logging.FileHandler(
            get_event_log_path(log_file_path), encoding="utf-8"
        )
        # Events are always recorded, whatever the text log level is
        event_handler.setLevel(logging.DEBUG)
        event_handler.addFilter(EventFilter())
        event_handler.setFormatter(JSONFormatter(run_id))
        root_logger.addHandler(event_handler)

    logger = logging.getLogger(logger_name)
    logger.debug(
        f"Logging initialized (level={log_level}, file={log_file_path if enable_file else 'disabled'})"
    )
    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    message: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Log a record that also lands in the NDJSON event stream.

    Field names must not clash with LogRecord attributes (``name``,
    ``message``, ...); use ``package`` rather than ``name``.
    """
    logger.log(level, message, extra={"event": event, **fields})


def log_section(logger: logging.Logger, title: str) -> None:
    """Log a framed section header."""
    logger.info(SECTION_SEPARATOR)
    logger.info(title)
    logger.info(SECTION_SEPARATOR)


def apply_log_level(level_name: Optional[str]) -> int:
    """
    Change the threshold of the console and run log handlers after
    setup_run_logging(). The event stream handler keeps recording everything.
    """
    numeric_level = parse_log_level(level_name)
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if any(isinstance(f, EventFilter) for f in handler.filters):
            continue
        handler.setLevel(numeric_level)
    if root_logger.level > numeric_level:
        root_logger.setLevel(numeric_level)
    return numeric_level
