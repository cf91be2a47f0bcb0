# tests/provisioner/test_install_wsl_cli.py
import logging

import pytest

import install_wsl
from common.errors import ValidationError
from installer.dispatcher import EXIT_FAILURES, EXIT_INVALID
from setup.config_models import AppSettings


@pytest.fixture
def provisioner_class(mocker):
    mocker.patch("install_wsl.setup_run_logging", return_value=logging.getLogger("tests.install_wsl"))
    mocker.patch("install_wsl.load_app_settings", return_value=AppSettings())
    mocker.patch("install_wsl.generate_run_id", return_value="20250101_120000")
    provisioner = mocker.patch("install_wsl.WslProvisioner")
    provisioner.return_value.provision.return_value = 0
    return provisioner


def _options(provisioner_class):
    return provisioner_class.call_args.args[0]


def test_parse_args_forwards_everything_after_config():
    args = install_wsl.parse_args(
        ["--force", "--config", "--config", "minimal.yaml", "--dry-run", "--sections", "apt_packages"]
    )

    assert args.force is True
    assert args.dispatcher_args == ["--config", "minimal.yaml", "--dry-run", "--sections", "apt_packages"]


def test_parse_args_rejects_unknown_log_level():
    with pytest.raises(SystemExit):
        install_wsl.parse_args(["--log-level", "TRACE"])


def test_defaults(provisioner_class):
    assert install_wsl.main([]) == 0

    options = _options(provisioner_class)
    assert options.distribution == "Ubuntu-24.04"
    assert options.install_path == install_wsl.PROJECT_ROOT
    assert options.dispatcher_args == []
    assert options.auto_install is False
    assert provisioner_class.call_args.kwargs["run_id"] == "20250101_120000"


def test_options_are_passed_through(provisioner_class, tmp_path):
    install_wsl.main(
        [
            "--distribution", "Debian",
            "--install-path", str(tmp_path),
            "--reset-wsl",
            "--auto-install",
            "--run-direct",
            "--username", "dev",
            "--log-level", "DEBUG",
            "--config", "--dry-run",
        ]
    )

    options = _options(provisioner_class)
    assert options.distribution == "Debian"
    assert options.install_path == tmp_path.resolve()
    assert options.reset_wsl and options.auto_install and options.run_direct
    assert options.username == "dev"
    assert options.log_level == "DEBUG"
    assert options.dispatcher_args == ["--dry-run"]


def test_exit_code_is_propagated(provisioner_class):
    provisioner_class.return_value.provision.return_value = 1

    assert install_wsl.main([]) == 1


def test_validation_error(provisioner_class):
    provisioner_class.side_effect = ValidationError("Invalid distribution name", field="distribution")

    assert install_wsl.main([]) == EXIT_INVALID


def test_unexpected_error(provisioner_class):
    provisioner_class.return_value.provision.side_effect = RuntimeError("wsl.exe vanished")

    assert install_wsl.main([]) == EXIT_FAILURES
