# tests/installer/test_base_installer.py
import subprocess

import pytest

from common.errors import InstallError
from installer.base_installer import TIMEOUT_EXIT_CODE, ScriptPackageInstaller


@pytest.fixture
def script(project_root):
    path = project_root / "scripts" / "docker" / "install.sh"
    path.parent.mkdir()
    path.write_text("#!/bin/bash\nexit 0\n", encoding="utf-8")
    return path


class TestScriptPackageInstaller:
    def test_requires_exactly_one_source(self, framework, script):
        with pytest.raises(ValueError):
            ScriptPackageInstaller(framework, "docker")
        with pytest.raises(ValueError):
            ScriptPackageInstaller(framework, "docker", script_path=script, inline_script="true")

    def test_runs_script_with_environment(self, framework, command_runner, script, run_context, app_settings):
        run_context.force = True
        installer = ScriptPackageInstaller(framework, "docker", script_path=script)

        installer.install()

        command = command_runner.call_args.args[0]
        kwargs = command_runner.call_args.kwargs
        assert command == ["bash", str(script)]
        assert kwargs["cwd"] == str(script.parent)
        assert kwargs["timeout"] == app_settings.script_timeout
        assert kwargs["stdin_devnull"] is True
        assert kwargs["env"]["FORCE_INSTALL"] == "true"
        assert kwargs["env"]["INSTALLING_SOFTWARE"] == "docker"
        assert kwargs["env"]["WSL_INSTALL_RUN_ID"] == run_context.run_id

    def test_inline_script(self, framework, command_runner):
        installer = ScriptPackageInstaller(framework, "git-defaults", inline_script="git config --global init.defaultBranch main\n")

        installer.install()

        assert command_runner.call_args.args[0] == ["bash", "-c", "git config --global init.defaultBranch main\n"]
        assert command_runner.call_args.kwargs["cwd"] is None
        assert command_runner.call_args.kwargs["env"]["FORCE_INSTALL"] == "false"

    def test_missing_script(self, framework, project_root, command_runner):
        installer = ScriptPackageInstaller(framework, "ghost", script_path=project_root / "scripts" / "ghost.sh")

        with pytest.raises(InstallError, match="not found"):
            installer.install()
        command_runner.assert_not_called()

    def test_nonzero_exit(self, framework, command_runner, script, make_result):
        command_runner.return_value = make_result(3)

        with pytest.raises(InstallError) as exc_info:
            ScriptPackageInstaller(framework, "docker", script_path=script).install()

        assert exc_info.value.returncode == 3
        assert "exited with code 3" in str(exc_info.value)

    def test_timeout_exit_code(self, framework, command_runner, script, make_result):
        command_runner.return_value = make_result(TIMEOUT_EXIT_CODE)

        with pytest.raises(InstallError, match="timed out"):
            ScriptPackageInstaller(framework, "docker", script_path=script).install()

    def test_subprocess_timeout(self, framework, command_runner, script):
        command_runner.side_effect = subprocess.TimeoutExpired("bash", 1800)

        with pytest.raises(InstallError) as exc_info:
            ScriptPackageInstaller(framework, "docker", script_path=script).install()

        assert exc_info.value.returncode == TIMEOUT_EXIT_CODE

    def test_without_command_name_is_never_installed(self, framework, script):
        installer = ScriptPackageInstaller(framework, "docker", script_path=script)

        assert installer.is_installed() == (False, "NOT_INSTALLED")
        assert installer.verify() is True

    def test_command_name_is_checked(self, framework, script, mocker):
        is_installed = mocker.patch.object(framework, "is_installed", return_value=(True, "24.0.7"))
        installer = ScriptPackageInstaller(
            framework, "docker", script_path=script, command_name="docker", version_args=["--version"]
        )

        assert installer.is_installed() == (True, "24.0.7")
        is_installed.assert_called_once_with("docker", ["--version"])
