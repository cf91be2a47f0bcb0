# provisioner/log_monitor.py
# -*- coding: utf-8 -*-
"""
Host-side monitor for a running installation.

Polls the run log and its NDJSON event file by byte offset, re-emits new
log lines with a color per level, and turns section events (or, without
an event stream, known phase markers in the text) into progress banners.
"""

import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from common.command_utils import get_symbols
from common.logging_config import ANSI_COLORS, ANSI_RESET
from setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

LEVEL_TAG_PATTERN = re.compile(r"\[(DEBUG|INFO|WARN|WARNING|ERROR|SUCCESS)\]")

# Section titles the dispatcher logs; used when no events are available
PHASE_MARKERS = (
    "Installing Prerequisites",
    "Installing APT Packages",
    "Running Shell Setup",
    "Installing Custom Software",
    "Installing Python Packages",
    "Installing PowerShell Modules",
    "Installing Nix Packages",
    "Running Configurations",
    "Cleaning Up",
    "Installation Summary",
)


def classify_line(line: str) -> Optional[str]:
    """The level tag of a formatted log line, or None for plain text."""
    match = LEVEL_TAG_PATTERN.search(line)
    if not match:
        return None
    level = match.group(1)
    return "WARN" if level == "WARNING" else level


class IncrementalReader:
    """
    Reads complete lines appended to a file since the previous call.

    A trailing line without a newline is held back until it is completed
    or flush() is called.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.offset = 0
        self._partial = b""

    def read_lines(self) -> List[str]:
        try:
            size = self.path.stat().st_size
        except FileNotFoundError:
            return []
        if size < self.offset:
            self.offset = 0
            self._partial = b""
        if size == self.offset:
            return []
        with open(self.path, "rb") as f:
            f.seek(self.offset)
            data = f.read()
        self.offset += len(data)
        data = self._partial + data
        *complete, self._partial = data.split(b"\n")
        return [line.decode("utf-8", errors="replace").rstrip("\r") for line in complete]

    def flush(self) -> List[str]:
        remainder = self._partial
        self._partial = b""
        if not remainder:
            return []
        return [remainder.decode("utf-8", errors="replace").rstrip("\r")]


class LogMonitor:
    """
    Follows one run's log and event files.

    Args:
        log_path: Host path of the text run log.
        event_path: Host path of the NDJSON event file, if any.
        app_settings: Settings providing the symbols.
        writer: Receives each output line; defaults to stdout.
        use_color: Wrap lines in ANSI colors per level.
    """

    def __init__(
        self,
        log_path: Union[str, Path],
        event_path: Optional[Union[str, Path]],
        app_settings: Optional[AppSettings] = None,
        writer: Optional[Callable[[str], None]] = None,
        use_color: Optional[bool] = None,
        current_logger: Optional[logging.Logger] = None,
    ):
        self.log_reader = IncrementalReader(log_path)
        self.event_reader = IncrementalReader(event_path) if event_path else None
        self.app_settings = app_settings
        self.symbols = get_symbols(app_settings)
        self.logger = current_logger if current_logger else module_logger
        self.writer = writer or self._write_stdout
        self.use_color = sys.stdout.isatty() if use_color is None else use_color
        self.events_seen = 0
        self.lines_seen = 0
        self.progress = 0
        self.run_finished: Optional[Dict[str, Any]] = None

    @staticmethod
    def _write_stdout(line: str) -> None:
        sys.stdout.write(line + "\n")
        sys.stdout.flush()

    def _emit(self, line: str, level: Optional[str] = None) -> None:
        if self.use_color and level in ANSI_COLORS:
            line = f"{ANSI_COLORS[level]}{line}{ANSI_RESET}"
        self.writer(line)

    def banner(self, text: str) -> None:
        self._emit("")
        self._emit(f"{self.symbols.get('step', '➡️')} {text}", "INFO")
        self._emit("")

    def _handle_line(self, line: str) -> None:
        self.lines_seen += 1
        self._emit(line, classify_line(line))
        if self.events_seen == 0:
            for marker in PHASE_MARKERS:
                if marker in line:
                    self.banner(f"Phase: {marker}")
                    break

    def _handle_event(self, raw: str) -> None:
        if not raw.strip():
            return
        try:
            event = json.loads(raw)
        except json.JSONDecodeError:
            self.logger.debug(f"Ignoring malformed event line: {raw[:200]}")
            return
        if not isinstance(event, dict):
            return
        self.events_seen += 1
        kind = event.get("event")
        if kind == "section_started":
            self.progress = int(event.get("progress", self.progress))
            self.banner(
                f"Progress: {self.progress}% - {event.get('section')} "
                f"({event.get('index')}/{event.get('total')})"
            )
        elif kind == "run_finished":
            self.progress = 100
            self.run_finished = event

    def poll(self) -> int:
        """Process new content once. Returns the number of new log lines."""
        if self.event_reader is not None:
            for raw in self.event_reader.read_lines():
                self._handle_event(raw)
        lines = self.log_reader.read_lines()
        for line in lines:
            self._handle_line(line)
        return len(lines)

    def finish(self) -> None:
        """Final poll, including any unterminated last lines."""
        self.poll()
        if self.event_reader is not None:
            for raw in self.event_reader.flush():
                self._handle_event(raw)
        for line in self.log_reader.flush():
            self._handle_line(line)
