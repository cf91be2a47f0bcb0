# provisioner/log_streamer.py
# -*- coding: utf-8 -*-
"""
Streams a growing log file from the Linux-side temp location to a
host-visible copy while the dispatcher runs.
"""

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from setup.config_models import StreamSettings

module_logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class LogStreamer:
    """
    Copies new bytes from `source` to `dest` in a background thread.

    The streamer waits up to ``wait_timeout`` seconds for the source to
    appear, then tails it every ``tail_interval`` seconds. It ends when
    stop() is called, or after ``max_idle_checks`` idle checks of
    ``check_interval`` seconds without growth. A final read picks up
    anything written before the stop.

    With ``banner`` the destination gets a header and an end marker; the
    NDJSON event copy is streamed without them so every line stays JSON.
    """

    def __init__(
        self,
        source: Union[str, Path],
        dest: Union[str, Path],
        run_id: str,
        settings: Optional[StreamSettings] = None,
        banner: bool = True,
        current_logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = Path(source)
        self.dest = Path(dest)
        self.run_id = run_id
        self.settings = settings or StreamSettings()
        self.banner = banner
        self.logger = current_logger if current_logger else module_logger
        self._sleep = sleep
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._offset = 0
        self.bytes_copied = 0
        self.stop_reason: Optional[str] = None

    # --- file operations ----------------------------------------------------

    def _append_text(self, text: str) -> None:
        with open(self.dest, "a", encoding="utf-8") as f:
            f.write(text)

    def write_header(self) -> None:
        self.dest.parent.mkdir(parents=True, exist_ok=True)
        if not self.banner:
            self.dest.write_bytes(b"")
            return
        self.dest.write_text(
            "=== WSL Installation Log Stream ===\n"
            f"Run ID: {self.run_id}\n"
            f"Started: {_now()}\n"
            f"Source: {self.source}\n"
            "=================================================\n\n",
            encoding="utf-8",
        )

    def write_footer(self) -> None:
        if self.banner:
            self._append_text(f"\n=== Log Stream Ended at {_now()} ===\n")

    def copy_new_content(self) -> int:
        """Append whatever was written to the source since the last call."""
        try:
            size = self.source.stat().st_size
        except FileNotFoundError:
            return 0
        if size < self._offset:
            # Source was truncated or replaced; start over
            self._offset = 0
        if size == self._offset:
            return 0
        copied = 0
        with open(self.source, "rb") as src, open(self.dest, "ab") as dst:
            src.seek(self._offset)
            while True:
                chunk = src.read(CHUNK_SIZE)
                if not chunk:
                    break
                dst.write(chunk)
                copied += len(chunk)
        self._offset += copied
        self.bytes_copied += copied
        return copied

    # --- the streaming loop -------------------------------------------------

    def wait_for_source(self) -> bool:
        waited = 0.0
        while not self.source.exists():
            if self._stop_event.is_set() or waited >= self.settings.wait_timeout:
                return self.source.exists()
            self._sleep(1.0)
            waited += 1.0
        return True

    def stream(self) -> None:
        """Run the streaming loop in the calling thread."""
        self.write_header()
        if not self.wait_for_source():
            self.stop_reason = "source missing"
            self.logger.error(
                f"Timeout waiting for log file to be created: {self.source}"
            )
            if self.banner:
                self._append_text("[ERROR] Timeout waiting for installation to start\n")
            self.write_footer()
            return

        idle_seconds = 0.0
        idle_limit = self.settings.max_idle_checks * self.settings.check_interval
        while not self._stop_event.is_set():
            if self.copy_new_content():
                idle_seconds = 0.0
            else:
                idle_seconds += self.settings.tail_interval
                if idle_seconds >= idle_limit:
                    self.stop_reason = "idle"
                    self.logger.info(
                        f"No log activity for {int(idle_limit)}s, stopping stream of {self.source}"
                    )
                    break
            self._stop_event.wait(self.settings.tail_interval)

        if self.stop_reason is None:
            self.stop_reason = "stopped"
        self.copy_new_content()
        self.write_footer()

    def start(self) -> "LogStreamer":
        self._thread = threading.Thread(
            target=self.stream, name=f"log-streamer-{self.source.name}", daemon=True
        )
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        """Ask the streamer to finish and wait for its final sync."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
