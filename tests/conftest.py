# tests/conftest.py
import logging
import subprocess
import textwrap
from unittest.mock import MagicMock

import pytest

from installer.framework import InstallationFramework
from installer.run_context import RunContext
from setup.config_models import AppSettings

RUN_ID = "20250101_120000"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Keep the developer's shell settings out of every test."""
    for name in (
        "LOG_LEVEL",
        "WSL_INSTALL_LOG_LEVEL",
        "WSL_INSTALL_RUN_ID",
        "WSL_INSTALL_TEMP_MODE",
        "WSL_INSTALL_SOURCE_DIR",
        "WSL_DEFAULT_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app_settings():
    """Settings with fast retries so failure paths do not sleep."""
    return AppSettings(
        download={"max_retries": 2, "retry_delay": 0, "timeout": 5},
        stream={"wait_timeout": 1, "check_interval": 0.01, "max_idle_checks": 2, "tail_interval": 0.01},
        wsl={"poll_interval": 0.01},
    )


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def run_context(app_settings):
    return RunContext(RUN_ID, app_settings, logger=logging.getLogger("tests"))


def completed(returncode=0, stdout="", stderr="", args=None):
    return subprocess.CompletedProcess(args or [], returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def command_runner():
    runner = MagicMock(name="command_runner")
    runner.return_value = completed()
    return runner


@pytest.fixture
def framework(run_context, command_runner):
    """A framework whose every outside effect is a mock."""
    return InstallationFramework(
        run_context,
        downloader=MagicMock(name="downloader"),
        url_validator=MagicMock(name="url_validator", return_value=True),
        command_runner=command_runner,
        fetcher=MagicMock(name="fetcher", return_value=""),
    )


@pytest.fixture
def project_root(tmp_path):
    """A minimal project tree: install.py, a profiles dir and a scripts dir."""
    root = tmp_path / "project"
    (root / "config-profiles").mkdir(parents=True)
    (root / "scripts").mkdir()
    (root / "install.py").write_text("# entry point\n", encoding="utf-8")
    return root


@pytest.fixture
def write_manifest(project_root):
    """Write YAML text under config-profiles/ and return its path."""

    def _write(content, name="test.yaml"):
        path = project_root / "config-profiles" / name
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_result():
    """Factory for subprocess.CompletedProcess return values."""
    return completed
