# tests/provisioner/test_wsl_provisioner.py
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from provisioner.wsl_provisioner import ProvisionOptions, WslProvisioner

RUN_ID = "20250101_120000"


@pytest.fixture
def wsl_client(make_result):
    client = MagicMock(name="wsl_client")
    client.distribution_exists.return_value = True
    client.install.return_value = True
    client.unregister.return_value = True
    client.terminate.return_value = True
    client.run_in_distribution.return_value = make_result(0)
    return client


@pytest.fixture
def monitor():
    instance = MagicMock(name="monitor")
    instance.run_finished = {"event": "run_finished", "exit_code": 0, "failed": 0, "total": 7}
    return instance


@pytest.fixture
def make_provisioner(project_root, app_settings, wsl_client, monitor):
    def _make(password=None, **overrides):
        values = {"distribution": "Ubuntu-24.04", "install_path": project_root}
        values.update(overrides)
        return WslProvisioner(
            ProvisionOptions(**values),
            app_settings,
            run_id=RUN_ID,
            wsl_client=wsl_client,
            monitor_factory=MagicMock(return_value=monitor),
            password_resolver=MagicMock(return_value=password),
        )

    return _make


class TestBuildCommand:
    def test_temp_copy_mode(self, make_provisioner, mocker):
        mocker.patch("provisioner.wsl_provisioner.to_wsl_path", return_value="/mnt/c/src/wsl-setup")
        provisioner = make_provisioner(dispatcher_args=["--config", "minimal.yaml"], force=True, log_level="DEBUG")

        command, env = provisioner.build_command()

        assert command == [
            "python3",
            "/mnt/c/src/wsl-setup/run_installation.py",
            f"/tmp/wsl-install-{RUN_ID}",
            RUN_ID,
            "/mnt/c/src/wsl-setup/logs",
            "--config",
            "minimal.yaml",
            "--force",
            "--log-level",
            "DEBUG",
        ]
        assert env == {"WSL_INSTALL_RUN_ID": RUN_ID}

    def test_direct_mode(self, make_provisioner, mocker):
        mocker.patch("provisioner.wsl_provisioner.to_wsl_path", return_value="/mnt/c/src/wsl-setup")
        provisioner = make_provisioner(run_direct=True, dispatcher_args=["--dry-run"])

        command, env = provisioner.build_command()

        assert command == ["python3", "/mnt/c/src/wsl-setup/install.py", "--dry-run"]
        assert env == {"WSL_INSTALL_RUN_ID": RUN_ID, "WSL_INSTALL_SOURCE_DIR": "/mnt/c/src/wsl-setup"}

    def test_forwarded_flags_are_not_duplicated(self, make_provisioner):
        provisioner = make_provisioner(dispatcher_args=["-f", "--log-level=WARN"], force=True, log_level="DEBUG")

        assert provisioner.dispatcher_arguments() == ["-f", "--log-level=WARN"]

    def test_host_log_paths(self, make_provisioner, project_root):
        log_path, event_path = make_provisioner().host_log_paths

        assert log_path == project_root / "logs" / f"wsl-installation-{RUN_ID}.log"
        assert event_path == project_root / "logs" / f"wsl-installation-{RUN_ID}.ndjson"


class TestProvision:
    def test_success(self, make_provisioner, wsl_client, monitor):
        provisioner = make_provisioner()

        assert provisioner.provision() == 0

        wsl_client.install.assert_not_called()
        args, kwargs = wsl_client.run_in_distribution.call_args
        assert args[0] == "Ubuntu-24.04"
        assert kwargs["env"] == {"WSL_INSTALL_RUN_ID": RUN_ID}
        assert kwargs["capture_output"] is True
        monitor.finish.assert_called_once()
        wsl_client.terminate.assert_called_once_with("Ubuntu-24.04")
        assert provisioner.run_finished["total"] == 7

    @pytest.mark.parametrize(
        "overrides",
        [
            {"distribution": "Ubuntu;calc.exe"},
            {"dispatcher_args": ["--sections", "apt_packages;reboot"]},
            {"dispatcher_args": ["--rm-rf"]},
            {"log_level": "TRACE"},
            {"username": "Bad User"},
            {"install_path": Path("/nonexistent/wsl-setup")},
        ],
    )
    def test_validation_failure_makes_no_wsl_calls(self, make_provisioner, wsl_client, overrides):
        assert make_provisioner(**overrides).provision() == 2

        assert wsl_client.mock_calls == []

    def test_injected_client_is_used_untouched(self, make_provisioner, wsl_client):
        provisioner = make_provisioner()

        assert provisioner.wsl is wsl_client
        assert wsl_client.mock_calls == []

    def test_missing_distribution_is_installed(self, make_provisioner, wsl_client):
        wsl_client.distribution_exists.return_value = False

        assert make_provisioner().provision() == 0
        wsl_client.install.assert_called_once_with("Ubuntu-24.04")

    def test_install_failure_is_fatal(self, make_provisioner, wsl_client):
        wsl_client.distribution_exists.return_value = False
        wsl_client.install.return_value = False

        assert make_provisioner().provision() == 1
        wsl_client.run_in_distribution.assert_not_called()

    def test_reset_unregisters_then_installs(self, make_provisioner, wsl_client):
        assert make_provisioner(reset_wsl=True).provision() == 0

        names = [call[0] for call in wsl_client.mock_calls]
        assert names.index("unregister") < names.index("install")

    def test_reset_of_missing_distribution_just_installs(self, make_provisioner, wsl_client):
        wsl_client.distribution_exists.return_value = False

        make_provisioner(reset_wsl=True).provision()

        wsl_client.unregister.assert_not_called()
        wsl_client.install.assert_called_once()

    def test_installation_exit_code_is_returned(self, make_provisioner, wsl_client, make_result, monitor):
        wsl_client.run_in_distribution.return_value = make_result(1, stdout="line\n" * 50, stderr="boom\n")
        monitor.run_finished = {"event": "run_finished", "exit_code": 1, "failed": 2, "total": 9}

        provisioner = make_provisioner()

        assert provisioner.provision() == 1
        assert provisioner.exit_code == 1
        wsl_client.terminate.assert_not_called()

    def test_monitor_polls_while_running(self, make_provisioner, wsl_client, monitor, make_result):
        def slow_run(*args, **kwargs):
            time.sleep(0.1)
            return make_result(0)

        wsl_client.run_in_distribution.side_effect = slow_run

        assert make_provisioner().provision() == 0
        assert monitor.poll.call_count >= 1

    def test_terminate_failure_is_not_fatal(self, make_provisioner, wsl_client):
        wsl_client.terminate.return_value = False

        assert make_provisioner().provision() == 0


class TestBootstrapUser:
    def test_runs_after_installation(self, make_provisioner, wsl_client, mocker):
        bootstrap = mocker.patch("provisioner.wsl_provisioner.WslUserBootstrapper")
        bootstrap.return_value.bootstrap.return_value = True

        assert make_provisioner(auto_install=True, username="dev", password="s3cret").provision() == 0

        spec = bootstrap.return_value.bootstrap.call_args.args[0]
        assert spec.username == "dev"
        assert spec.password.get_secret_value() == "s3cret"

    def test_default_username_from_host(self, make_provisioner, mocker):
        mocker.patch("provisioner.wsl_provisioner.getpass.getuser", return_value="DevUser")
        bootstrap = mocker.patch("provisioner.wsl_provisioner.WslUserBootstrapper")

        make_provisioner(auto_install=True, password="pw").provision()

        assert bootstrap.return_value.bootstrap.call_args.args[0].username == "devuser"

    def test_no_password_skips(self, make_provisioner, mocker):
        bootstrap = mocker.patch("provisioner.wsl_provisioner.WslUserBootstrapper")

        assert make_provisioner(auto_install=True, username="dev", password=None).provision() == 0
        bootstrap.assert_not_called()

    def test_bootstrap_failure_is_not_fatal(self, make_provisioner, mocker):
        bootstrap = mocker.patch("provisioner.wsl_provisioner.WslUserBootstrapper")
        bootstrap.return_value.bootstrap.return_value = False

        assert make_provisioner(auto_install=True, username="dev", password="pw").provision() == 0

    def test_not_requested(self, make_provisioner, mocker):
        bootstrap = mocker.patch("provisioner.wsl_provisioner.WslUserBootstrapper")

        make_provisioner(password="pw").provision()

        bootstrap.assert_not_called()
