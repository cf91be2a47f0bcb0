# installer/run_context.py
# -*- coding: utf-8 -*-
"""
Run-scoped state: the run identifier, flags and the ordered list of
installation results shared by the dispatcher and the framework.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from setup.config_models import AppSettings

RUN_ID_FORMAT = "%Y%m%d_%H%M%S"


def generate_run_id(now: Optional[datetime] = None) -> str:
    """Run identifier derived from the local time, e.g. ``20250131_154502``."""
    return (now or datetime.now()).strftime(RUN_ID_FORMAT)


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class InstallationResult(BaseModel):
    """Outcome of processing one manifest entry."""

    name: str
    outcome: Outcome
    section: Optional[str] = None
    version: Optional[str] = None
    reason: Optional[str] = None

    def describe(self) -> str:
        label = self.name
        if self.version and self.version not in ("latest", "UNKNOWN"):
            label = f"{label} ({self.version})"
        if self.section:
            label = f"{label} [{self.section}]"
        if self.reason:
            label = f"{label} - {self.reason}"
        return label


class RunContext:
    """
    Everything a run needs to pass around: identifiers, flags, settings and
    the accumulated results.

    Results are append-only while the run is active and frozen by close().
    """

    def __init__(
        self,
        run_id: str,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
        force: bool = False,
        dry_run: bool = False,
    ):
        self.run_id = run_id
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)
        self.force = force
        self.dry_run = dry_run
        self.started_at = datetime.now()
        self._results: List[InstallationResult] = []
        self._closed = False

    def record(self, result: InstallationResult) -> None:
        if self._closed:
            raise RuntimeError(
                f"Run {self.run_id} is closed; cannot record {result.name}"
            )
        self._results.append(result)

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def results(self) -> List[InstallationResult]:
        return list(self._results)

    @property
    def successful(self) -> List[InstallationResult]:
        return [r for r in self._results if r.outcome == Outcome.SUCCESS]

    @property
    def failed(self) -> List[InstallationResult]:
        return [r for r in self._results if r.outcome == Outcome.FAILURE]

    @property
    def skipped(self) -> List[InstallationResult]:
        return [r for r in self._results if r.outcome == Outcome.SKIPPED]

    @property
    def total_processed(self) -> int:
        return len(self._results)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def has_failures(self) -> bool:
        return self.failure_count > 0
