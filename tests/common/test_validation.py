# tests/common/test_validation.py
import pytest

from common.errors import ValidationError
from common.validation import (
    VALID_SECTIONS,
    validate_config_argument,
    validate_dispatcher_arguments,
    validate_distribution_name,
    validate_log_level,
    validate_run_id,
    validate_sections,
)


class TestValidateSections:
    def test_single_and_multiple(self):
        assert validate_sections("apt_packages") == ["apt_packages"]
        assert validate_sections("prerequisites,custom_software") == [
            "prerequisites",
            "custom_software",
        ]

    def test_every_known_section(self):
        assert validate_sections(",".join(VALID_SECTIONS)) == list(VALID_SECTIONS)

    @pytest.mark.parametrize(
        "value", ["", "apt_packages;reboot", "apt-packages", "apt_packages, shell_setup", ",,,"]
    )
    def test_bad_characters_or_empty(self, value):
        with pytest.raises(ValidationError) as excinfo:
            validate_sections(value)
        assert excinfo.value.field == "sections"

    def test_unknown_section(self):
        with pytest.raises(ValidationError, match="Unknown section 'games'"):
            validate_sections("apt_packages,games")


class TestValidateConfigArgument:
    def test_local_path_and_profile(self, app_settings):
        assert validate_config_argument("minimal.yaml", app_settings) == "minimal.yaml"
        assert validate_config_argument("config-profiles/full-install.yaml", app_settings)

    def test_public_url(self, app_settings):
        url = "https://example.com/team.yaml"
        assert validate_config_argument(url, app_settings) == url

    @pytest.mark.parametrize(
        "value",
        [
            "http://192.168.1.10/config.yaml",
            "file:///etc/passwd",
            "s3://bucket/config.yaml",
            "../../etc/shadow",
            "config.yaml;id",
            "",
        ],
    )
    def test_rejected(self, value, app_settings):
        with pytest.raises(ValidationError):
            validate_config_argument(value, app_settings)


def test_log_level():
    assert validate_log_level("WARN") == "WARN"
    with pytest.raises(ValidationError):
        validate_log_level("TRACE")


def test_distribution_name():
    assert validate_distribution_name("Ubuntu-24.04") == "Ubuntu-24.04"
    for bad in ("", "Ubuntu 24.04", "Ubuntu;calc.exe"):
        with pytest.raises(ValidationError):
            validate_distribution_name(bad)


def test_run_id():
    assert validate_run_id("20250131_154502") == "20250131_154502"
    for bad in ("", "2025-01-31", "20250131_1545021", "../x"):
        with pytest.raises(ValidationError):
            validate_run_id(bad)


class TestValidateDispatcherArguments:
    def test_accepts_known_flags(self, app_settings):
        args = ["--sections", "apt_packages", "--dry-run", "-f", "--config=minimal.yaml", "-l", "DEBUG"]

        assert validate_dispatcher_arguments(args, app_settings) == args

    def test_empty(self, app_settings):
        assert validate_dispatcher_arguments([], app_settings) == []

    @pytest.mark.parametrize(
        "args, field",
        [
            (["--sections", "apt_packages;reboot"], "sections"),
            (["--sections"], "sections"),
            (["--config", "http://10.0.0.1/x.yaml"], "config"),
            (["--log-level", "LOUD"], "log_level"),
            (["--evil"], "arguments"),
            (["; rm -rf /"], "arguments"),
        ],
    )
    def test_rejects(self, args, field, app_settings):
        with pytest.raises(ValidationError) as excinfo:
            validate_dispatcher_arguments(args, app_settings)
        assert excinfo.value.field == field
