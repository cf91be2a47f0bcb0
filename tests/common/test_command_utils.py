# tests/common/test_command_utils.py
import subprocess

import pytest

from common.command_utils import (
    command_exists,
    get_symbols,
    log_message,
    run_command,
    run_elevated_command,
)
from common.logging_config import SUCCESS_LEVEL
from setup.config_models import SYMBOLS_DEFAULT


@pytest.fixture
def mock_subprocess_run(mocker):
    return mocker.patch("common.command_utils.subprocess.run")


def test_log_message_levels(mock_logger):
    log_message("warn", "warning", mock_logger)
    log_message("boom", "error", mock_logger)
    log_message("done", "success", mock_logger)
    log_message("other", "unheard-of", mock_logger)

    mock_logger.warning.assert_called_once_with("warn", exc_info=False)
    mock_logger.error.assert_called_once_with("boom", exc_info=False)
    mock_logger.log.assert_called_once_with(SUCCESS_LEVEL, "done", exc_info=False)
    mock_logger.info.assert_called_once_with("other", exc_info=False)


def test_get_symbols_falls_back_to_defaults():
    assert get_symbols(None) == SYMBOLS_DEFAULT


def test_run_command_success_logs_executing(mock_subprocess_run, app_settings, mock_logger):
    mock_subprocess_run.return_value = subprocess.CompletedProcess(
        ["echo", "hello"], 0, stdout="hello\n", stderr=""
    )

    result = run_command(
        ["echo", "hello"], app_settings, capture_output=True, current_logger=mock_logger
    )

    assert result.stdout == "hello\n"
    mock_subprocess_run.assert_called_once_with(
        ["echo", "hello"],
        check=True,
        shell=False,
        capture_output=True,
        text=True,
        input=None,
        stdin=None,
        cwd=None,
        env=None,
        timeout=None,
    )
    mock_logger.info.assert_called_once_with("⚙️ Executing: echo hello", exc_info=False)


def test_run_command_never_logs_stdin(mock_subprocess_run, app_settings, mock_logger):
    mock_subprocess_run.return_value = subprocess.CompletedProcess(["chpasswd"], 0)

    run_command(["chpasswd"], app_settings, cmd_input="dev:s3cret\n", current_logger=mock_logger)

    logged = " ".join(str(c) for c in mock_logger.mock_calls)
    assert "s3cret" not in logged
    assert mock_subprocess_run.call_args.kwargs["input"] == "dev:s3cret\n"


def test_run_command_stdin_devnull(mock_subprocess_run, app_settings, mock_logger):
    mock_subprocess_run.return_value = subprocess.CompletedProcess(["true"], 0)

    run_command(["true"], app_settings, stdin_devnull=True, current_logger=mock_logger)

    assert mock_subprocess_run.call_args.kwargs["stdin"] is subprocess.DEVNULL


def test_run_command_called_process_error_is_logged_and_reraised(
    mock_subprocess_run, app_settings, mock_logger
):
    mock_subprocess_run.side_effect = subprocess.CalledProcessError(
        2, ["false"], output="", stderr="bad things"
    )

    with pytest.raises(subprocess.CalledProcessError):
        run_command(["false"], app_settings, current_logger=mock_logger)

    messages = [c.args[0] for c in mock_logger.error.call_args_list]
    assert "❌ Command `false` failed (rc 2)." in messages
    assert "   stderr: bad things" in messages


def test_run_command_file_not_found(mock_subprocess_run, app_settings, mock_logger):
    error = FileNotFoundError(2, "No such file", "nonexistent")
    mock_subprocess_run.side_effect = error

    with pytest.raises(FileNotFoundError):
        run_command(["nonexistent"], app_settings, current_logger=mock_logger)

    mock_logger.error.assert_called_once_with(
        "❌ Command not found: nonexistent. Ensure it's installed and in PATH.",
        exc_info=False,
    )


def test_run_command_quiet_logs_at_debug(mock_subprocess_run, app_settings, mock_logger):
    mock_subprocess_run.return_value = subprocess.CompletedProcess(["id"], 0)

    run_command(["id"], app_settings, quiet=True, current_logger=mock_logger)

    mock_logger.info.assert_not_called()
    mock_logger.debug.assert_called_once_with("⚙️ Executing: id", exc_info=False)


@pytest.mark.parametrize("euid, expected_prefix", [(0, []), (1000, ["sudo"])])
def test_run_elevated_command_prefix(mocker, app_settings, euid, expected_prefix):
    mocker.patch("common.command_utils.os.geteuid", return_value=euid)
    mock_run = mocker.patch("common.command_utils.run_command")

    run_elevated_command(["apt-get", "update"], app_settings)

    assert mock_run.call_args.args[0] == expected_prefix + ["apt-get", "update"]


def test_command_exists(mocker):
    mocker.patch("common.command_utils.shutil.which", side_effect=lambda c: "/usr/bin/git" if c == "git" else None)

    assert command_exists("git") is True
    assert command_exists("nope") is False
