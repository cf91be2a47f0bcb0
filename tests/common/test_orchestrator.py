# tests/common/test_orchestrator.py
# -*- coding: utf-8 -*-
"""
Tests for the centralized orchestrator module.
"""

from unittest.mock import MagicMock

from common.orchestrator import Orchestrator


class TestOrchestrator:
    """Tests for the Orchestrator class."""

    def test_init(self, app_settings):
        logger = MagicMock()

        orchestrator = Orchestrator(app_settings, logger)

        assert orchestrator.app_settings == app_settings
        assert orchestrator.logger == logger
        assert orchestrator.tasks == []
        assert orchestrator.context == {}
        assert orchestrator.failed_tasks == []
        assert orchestrator.fatal_error is None

    def test_add_task(self, app_settings):
        orchestrator = Orchestrator(app_settings, MagicMock())

        task_func = MagicMock()
        orchestrator.add_task(
            "Test Task",
            task_func,
            ["arg1", "arg2"],
            {"kwarg1": "value1"},
            False,
        )

        assert len(orchestrator.tasks) == 1
        task = orchestrator.tasks[0]
        assert task["name"] == "Test Task"
        assert task["func"] == task_func
        assert task["args"] == ["arg1", "arg2"]
        assert task["kwargs"] == {"kwarg1": "value1"}
        assert task["fatal"] is False

    def test_run_success(self, app_settings):
        orchestrator = Orchestrator(app_settings, MagicMock())

        task1 = MagicMock(return_value="result1")
        task2 = MagicMock(return_value="result2")

        orchestrator.add_task("Task 1", task1)
        orchestrator.add_task("Task 2", task2)

        assert orchestrator.run() is True
        task1.assert_called_once()
        task2.assert_called_once()
        assert orchestrator.context["Task 1_result"] == "result1"
        assert orchestrator.context["Task 2_result"] == "result2"

    def test_fatal_exception_halts_without_exiting(self, app_settings):
        logger = MagicMock()
        orchestrator = Orchestrator(app_settings, logger)
        error = RuntimeError("Task 1 failed")
        task1 = MagicMock(side_effect=error)
        task2 = MagicMock()
        orchestrator.add_task("Task 1", task1)
        orchestrator.add_task("Task 2", task2)

        assert orchestrator.run() is False

        task1.assert_called_once()
        task2.assert_not_called()
        assert orchestrator.failed_tasks == ["Task 1"]
        assert orchestrator.fatal_error is error
        logger.error.assert_called_once_with(
            "Task 'Task 1' is fatal. Halting orchestration."
        )

    def test_fatal_false_return_halts(self, app_settings):
        orchestrator = Orchestrator(app_settings, MagicMock())
        task2 = MagicMock()
        orchestrator.add_task("Check", MagicMock(return_value=False))
        orchestrator.add_task("Next", task2)

        assert orchestrator.run() is False
        task2.assert_not_called()
        assert orchestrator.fatal_error is None

    def test_non_fatal_failure_continues(self, app_settings):
        logger = MagicMock()
        orchestrator = Orchestrator(app_settings, logger)

        task1 = MagicMock(side_effect=Exception("Task 1 failed"))
        task2 = MagicMock()

        orchestrator.add_task("Task 1", task1, fatal=False)
        orchestrator.add_task("Task 2", task2)

        assert orchestrator.run() is True
        task1.assert_called_once()
        task2.assert_called_once()
        assert orchestrator.failed_tasks == ["Task 1"]
        logger.warning.assert_called_once_with(
            "Task 'Task 1' was non-fatal. Continuing orchestration."
        )

    def test_context_passing(self, app_settings):
        orchestrator = Orchestrator(app_settings, MagicMock())

        def task1(context, app_settings, **kwargs):
            context["task1_data"] = "data from task 1"
            return "result1"

        def task2(context, app_settings, **kwargs):
            assert context["task1_data"] == "data from task 1"
            context["task2_data"] = "data from task 2"
            return "result2"

        orchestrator.add_task("Task 1", task1)
        orchestrator.add_task("Task 2", task2)

        assert orchestrator.run() is True
        assert orchestrator.context["task2_data"] == "data from task 2"
        assert orchestrator.context["Task 2_result"] == "result2"
