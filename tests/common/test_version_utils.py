# tests/common/test_version_utils.py
import subprocess

import pytest

from common.version_utils import (
    NOT_INSTALLED,
    UNKNOWN,
    default_version_args,
    extract_version,
    get_command_version,
    version_compare,
)


@pytest.mark.parametrize(
    "output, expected",
    [
        ("git version 2.43.0", "2.43.0"),
        ("v20.11.1", "20.11.1"),
        ("go version go1.22.1 linux/amd64", "1.22.1"),
        ("Client Version: v1.29.2\nKustomize Version: v5.0.4", "1.29.2"),
        ("no digits here", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_version(output, expected):
    assert extract_version(output) == expected


def test_default_version_args():
    assert default_version_args("kubectl") == ["version", "--client"]
    assert default_version_args("go") == ["version"]
    assert default_version_args("helm") == ["version", "--short"]
    assert default_version_args("git") == ["--version"]


class TestGetCommandVersion:
    def test_not_installed(self, mocker, app_settings):
        mocker.patch("common.version_utils.command_exists", return_value=False)
        run = mocker.patch("common.version_utils.run_command")

        assert get_command_version("kubectl", app_settings=app_settings) == NOT_INSTALLED
        run.assert_not_called()

    def test_version_from_stdout(self, mocker, app_settings, make_result):
        mocker.patch("common.version_utils.command_exists", return_value=True)
        run = mocker.patch(
            "common.version_utils.run_command", return_value=make_result(stdout="git version 2.43.0\n")
        )

        assert get_command_version("git", app_settings=app_settings) == "2.43.0"
        assert run.call_args.args[0] == ["git", "--version"]
        assert run.call_args.kwargs["timeout"] == app_settings.version_timeout

    def test_version_from_stderr_and_custom_args(self, mocker, app_settings, make_result):
        mocker.patch("common.version_utils.command_exists", return_value=True)
        run = mocker.patch(
            "common.version_utils.run_command", return_value=make_result(stderr="tool 3.1\n")
        )

        assert get_command_version("tool", "-V", app_settings) == "3.1"
        assert run.call_args.args[0] == ["tool", "-V"]

    def test_unknown_when_no_version(self, mocker, app_settings, make_result):
        mocker.patch("common.version_utils.command_exists", return_value=True)
        mocker.patch("common.version_utils.run_command", return_value=make_result(stdout="usage: tool"))

        assert get_command_version("tool", app_settings=app_settings) == UNKNOWN

    def test_unknown_on_timeout(self, mocker, app_settings):
        mocker.patch("common.version_utils.command_exists", return_value=True)
        mocker.patch(
            "common.version_utils.run_command",
            side_effect=subprocess.TimeoutExpired(["tool"], 10),
        )

        assert get_command_version("tool", app_settings=app_settings) == UNKNOWN


@pytest.mark.parametrize(
    "installed, required, expected",
    [
        ("1.29.2", "latest", True),
        ("1.29.2", "", True),
        ("1.29.2", "1.28", True),
        ("1.28.0", "1.28", True),
        ("1.9.0", "1.10.0", False),
        ("1.10.0", "1.9.0", True),
        ("v20.11.1", "20", True),
        ("2.0.0", "v2.1", False),
        (NOT_INSTALLED, "latest", False),
        (UNKNOWN, "latest", False),
        (None, "1.0", False),
    ],
)
def test_version_compare(installed, required, expected):
    assert version_compare(installed, required) is expected
