# common/orchestrator.py
# -*- coding: utf-8 -*-
"""
Centralized orchestrator for managing and executing sequences of tasks.

The host-side provisioning flow is a list of tasks run in order. A fatal
task that raises or returns False halts the sequence; non-fatal failures
are logged and the sequence continues.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from common.command_utils import get_symbols


class Orchestrator:
    """A centralized orchestrator to run a series of defined tasks."""

    def __init__(
        self,
        app_settings: Any,
        orchestrator_logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes the Orchestrator.

        Args:
            app_settings: The application settings object.
            orchestrator_logger: An optional logger instance.
        """
        self.app_settings = app_settings
        self.logger = orchestrator_logger or logging.getLogger(__name__)
        self.symbols = get_symbols(app_settings)
        self.tasks: List[Dict[str, Any]] = []
        # Shared context for tasks to pass state between each other
        self.context: Dict[str, Any] = {}
        self.failed_tasks: List[str] = []
        self.fatal_error: Optional[BaseException] = None

    def add_task(
        self,
        name: str,
        func: Callable,
        args: Optional[List[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
        fatal: bool = True,
    ):
        """
        Adds a task to the execution list.

        Args:
            name: A human-readable name for the task.
            func: The function to execute for this task. It receives the
                shared ``context`` dict and ``app_settings`` as keywords.
            args: A list of positional arguments to pass to the function.
            kwargs: A dictionary of keyword arguments to pass to the function.
            fatal: If True, a failure in this task halts the orchestration.
        """
        self.tasks.append({
            "name": name,
            "func": func,
            "args": args or [],
            "kwargs": kwargs or {},
            "fatal": fatal,
        })
        self.logger.debug(f"Task '{name}' added to the queue.")

    def run(self) -> bool:
        """
        Executes all added tasks in sequence.

        A task fails when it raises or returns False.

        Returns:
            True if no fatal task failed, False otherwise. Non-fatal
            failures are listed in ``failed_tasks``.
        """
        self.logger.info("Orchestration started.")
        for i, task in enumerate(self.tasks):
            task_name = task["name"]
            self.logger.info(
                f"--- Stage {i + 1}: Running task '{task_name}' ---"
            )

            error: Optional[BaseException] = None
            try:
                task["kwargs"]["context"] = self.context
                task["kwargs"]["app_settings"] = self.app_settings

                result = task["func"](*task["args"], **task["kwargs"])
                self.context[f"{task_name}_result"] = result
                succeeded = result is not False
            except Exception as e:
                self.logger.critical(
                    f"{self.symbols.get('critical', '🔥')} Task '{task_name}' failed: {e}",
                    exc_info=self.logger.isEnabledFor(logging.DEBUG),
                )
                error = e
                succeeded = False

            if succeeded:
                self.logger.info(
                    f"{self.symbols.get('success', '✅')} Task '{task_name}' completed successfully."
                )
                continue

            self.failed_tasks.append(task_name)
            if task.get("fatal", True):
                self.fatal_error = error
                self.logger.error(
                    f"Task '{task_name}' is fatal. Halting orchestration."
                )
                return False
            self.logger.warning(
                f"Task '{task_name}' was non-fatal. Continuing orchestration."
            )

        self.logger.info(f"{self.symbols.get('sparkles', '✨')} Orchestration finished.")
        return True
