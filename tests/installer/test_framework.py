# tests/installer/test_framework.py
import subprocess
from unittest.mock import MagicMock

import pytest

from common.errors import DownloadError, InstallError
from installer.base_installer import PackageInstaller
from installer.run_context import Outcome


class FakeInstaller(PackageInstaller):
    """Installer whose installed states are scripted by the test."""

    name = "fake"
    command_name = "fake"

    def __init__(self, framework, states=None, install_error=None, verified=True):
        super().__init__(framework)
        self.states = list(states or [(False, "NOT_INSTALLED"), (True, "1.2.3")])
        self.install_error = install_error
        self.verified = verified
        self.install_calls = 0

    def is_installed(self):
        return self.states.pop(0) if len(self.states) > 1 else self.states[0]

    def install(self):
        self.install_calls += 1
        if self.install_error:
            raise self.install_error

    def verify(self):
        return self.verified


@pytest.fixture
def mock_command_exists(mocker):
    return mocker.patch("installer.framework.command_exists", return_value=True)


class TestInstallPackage:
    def test_installs_and_records_success(self, framework, run_context):
        installer = FakeInstaller(framework)

        result = framework.install_package(installer, section="custom_software")

        assert installer.install_calls == 1
        assert result.outcome == Outcome.SUCCESS
        assert result.version == "1.2.3"
        assert result.section == "custom_software"
        assert run_context.results == [result]

    def test_already_installed_is_skipped(self, framework, run_context):
        installer = FakeInstaller(framework, states=[(True, "2.0.0")])

        result = framework.install_package(installer)

        assert installer.install_calls == 0
        assert result.outcome == Outcome.SKIPPED
        assert result.reason == "already installed"

    def test_older_than_required_is_reinstalled(self, framework):
        installer = FakeInstaller(framework, states=[(True, "1.0.0"), (True, "2.1.0")])

        result = framework.install_package(installer, required_version="2.0.0")

        assert installer.install_calls == 1
        assert result.outcome == Outcome.SUCCESS

    def test_force_reinstalls(self, framework, run_context):
        run_context.force = True
        installer = FakeInstaller(framework, states=[(True, "2.0.0")])

        result = framework.install_package(installer)

        assert installer.install_calls == 1
        assert result.outcome == Outcome.SUCCESS

    @pytest.mark.parametrize(
        "error",
        [
            InstallError("script exited with code 3", 3),
            DownloadError("Checksum mismatch"),
            subprocess.CalledProcessError(100, "apt-get"),
            FileNotFoundError("bash"),
        ],
    )
    def test_errors_are_recorded_not_raised(self, framework, run_context, error):
        installer = FakeInstaller(framework, install_error=error)

        result = framework.install_package(installer)

        assert result.outcome == Outcome.FAILURE
        assert result.reason == str(error)
        assert run_context.failure_count == 1

    def test_missing_command_after_install_is_failure(self, framework):
        installer = FakeInstaller(framework, verified=False)

        result = framework.install_package(installer)

        assert result.outcome == Outcome.FAILURE
        assert "not available after installation" in result.reason

    def test_dry_run_records_nothing(self, framework, run_context, mocker):
        run_context.dry_run = True
        installer = FakeInstaller(framework)
        log_dry_run = mocker.spy(framework, "log_dry_run")

        assert framework.install_package(installer, required_version="1.0", description="demo") is None

        assert installer.install_calls == 0
        assert run_context.total_processed == 0
        log_dry_run.assert_called_once_with("fake", "1.0", "demo")

    @pytest.mark.parametrize("error", [IndexError("list index out of range"), KeyError("terraform")])
    def test_unexpected_errors_are_recorded_not_raised(self, framework, run_context, error):
        installer = FakeInstaller(framework, install_error=error)

        result = framework.install_package(installer, section="custom_software")

        assert result.outcome == Outcome.FAILURE
        assert result.reason.startswith(type(error).__name__)
        assert run_context.failure_count == 1

    def test_dry_run_falls_back_to_plugin_description(self, framework, run_context, mocker):
        run_context.dry_run = True
        installer = FakeInstaller(framework)
        mocker.patch.object(installer, "get_description", return_value="from metadata")
        log_dry_run = mocker.spy(framework, "log_dry_run")

        framework.install_package(installer)

        log_dry_run.assert_called_once_with("fake", "latest", "from metadata")

    def test_result_emits_package_event(self, framework, mocker):
        log_event = mocker.patch("installer.framework.log_event")

        framework.install_package(FakeInstaller(framework), section="apt_packages")

        log_event.assert_called_once()
        assert log_event.call_args.args[1] == "package_result"
        assert log_event.call_args.kwargs["package"] == "fake"
        assert log_event.call_args.kwargs["outcome"] == "success"


class TestInstalledChecks:
    def test_is_installed_missing(self, framework, mocker):
        mocker.patch("installer.framework.command_exists", return_value=False)

        assert framework.is_installed("kubectl") == (False, "NOT_INSTALLED")

    def test_is_installed_with_version(self, framework, mock_command_exists, mocker):
        mocker.patch("installer.framework.get_command_version", return_value="1.29.2")

        assert framework.is_installed("kubectl", ["version", "--client"]) == (True, "1.29.2")

    def test_check_already_installed(self, framework, run_context, mock_command_exists, mocker):
        mocker.patch("installer.framework.get_command_version", return_value="UNKNOWN")

        assert framework.check_already_installed("git") is True
        run_context.force = True
        assert framework.check_already_installed("git") is False

    def test_check_already_installed_rejects_bad_name(self, framework):
        with pytest.raises(ValueError):
            framework.check_already_installed("git; rm -rf /")


class TestVerifyInstallation:
    def test_missing_command(self, framework, mocker):
        mocker.patch("installer.framework.command_exists", return_value=False)

        assert framework.verify_installation("kubectl") is False

    def test_default_smoke_test(self, framework, command_runner, mock_command_exists):
        assert framework.verify_installation("terraform") is True

        assert command_runner.call_args.args[0] == ["terraform", "--help"]

    def test_pattern_mismatch_is_a_warning(self, framework, command_runner, mock_command_exists, mocker, make_result):
        command_runner.return_value = make_result(0, stdout="something else")
        warn = mocker.patch("installer.framework.log_message")

        assert framework.verify_installation("docker", ["docker", "--version"], "Docker version") is True

        assert any(call.args[1] == "warning" for call in warn.call_args_list)

    def test_timeout_is_a_warning(self, framework, command_runner, mock_command_exists):
        command_runner.side_effect = subprocess.TimeoutExpired("docker", 30)

        assert framework.verify_installation("docker", "docker info") is True

    def test_string_smoke_test_is_split(self, framework, command_runner, mock_command_exists, make_result):
        command_runner.return_value = make_result(0, stdout="Client Version: v1.29.2")

        assert framework.verify_installation("kubectl", "kubectl version --client", "client version")

        assert command_runner.call_args.args[0] == ["kubectl", "version", "--client"]


class TestCapabilities:
    def test_download_delegates_with_settings(self, framework, app_settings, tmp_path):
        framework.download_file("https://example.com/x", tmp_path / "x", "abc")

        framework.downloader.assert_called_once_with(
            "https://example.com/x",
            tmp_path / "x",
            "abc",
            app_settings=app_settings,
            current_logger=framework.logger,
        )

    def test_run_elevated_prefixes_sudo(self, framework, command_runner, mocker):
        mocker.patch("installer.framework.get_elevated_command_prefix", return_value=["sudo"])

        framework.run_elevated(["apt-get", "update"], check=False)

        assert command_runner.call_args.args[0] == ["sudo", "apt-get", "update"]
        assert command_runner.call_args.kwargs["check"] is False

    def test_fetch_text(self, framework):
        framework.fetcher = MagicMock(return_value="v1.29.2\n")

        assert framework.fetch_text("https://dl.k8s.io/release/stable.txt") == "v1.29.2\n"

    @pytest.mark.parametrize("url_call", ["download", "fetch"])
    def test_rejected_url_never_reaches_the_network(self, framework, tmp_path, url_call):
        framework.url_validator.return_value = False

        with pytest.raises(DownloadError, match="failed validation"):
            if url_call == "download":
                framework.download_file("https://example.com/x", tmp_path / "x")
            else:
                framework.fetch_text("https://example.com/x")

        framework.url_validator.assert_called_once_with(
            "https://example.com/x", framework.app_settings, framework.logger
        )
        framework.downloader.assert_not_called()
        framework.fetcher.assert_not_called()
