# provisioner/user_setup.py
# -*- coding: utf-8 -*-
"""
Default-user bootstrap for a freshly provisioned distribution.

Creates the Linux user, sets its password through chpasswd on stdin, grants
sudo, records it as the default user in /etc/wsl.conf and with
``wsl.exe --manage``, then terminates the distribution so the new default
takes effect on next launch.
"""

import configparser
import getpass
import io
import logging
import sys
from typing import Callable, Optional

from pydantic import BaseModel, SecretStr, field_validator

from common.command_utils import get_symbols, log_message
from common.security import MAX_USERNAME_LENGTH, USERNAME_PATTERN
from provisioner.wsl_client import WslClient
from setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

WSL_CONF_PATH = "/etc/wsl.conf"


class WSLUserSpec(BaseModel):
    """The user to create inside the distribution."""

    username: str
    password: SecretStr
    shell: str = "/bin/bash"

    @field_validator("username")
    @classmethod
    def _check_username(cls, value: str) -> str:
        if len(value) > MAX_USERNAME_LENGTH:
            raise ValueError(f"username longer than {MAX_USERNAME_LENGTH} characters")
        if not USERNAME_PATTERN.match(value):
            raise ValueError(f"invalid username: {value!r}")
        return value

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: SecretStr) -> SecretStr:
        secret = value.get_secret_value()
        if not secret:
            raise ValueError("password cannot be empty")
        # chpasswd reads one "name:password" pair per line
        if "\n" in secret or "\r" in secret:
            raise ValueError("password cannot contain newlines")
        return value


def render_wsl_conf(existing: str, username: str) -> str:
    """
    Set ``[user] default=<username>`` in wsl.conf content, keeping every
    other section and key as it was.
    """
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # keep key case, wsl.conf is case sensitive
    if existing.strip():
        parser.read_string(existing)
    if not parser.has_section("user"):
        parser.add_section("user")
    parser.set("user", "default", username)
    buffer = io.StringIO()
    parser.write(buffer)
    return buffer.getvalue()


def resolve_password(
    app_settings: AppSettings,
    username: str,
    prompt: Callable[[str], str] = getpass.getpass,
    isatty: Callable[[], bool] = sys.stdin.isatty,
) -> Optional[str]:
    """
    The password for `username`: WSL_DEFAULT_PASSWORD when set, otherwise
    an interactive prompt when stdin is a TTY. None means no password is
    available and the bootstrap should be skipped.
    """
    if app_settings.default_password:
        return app_settings.default_password
    if not isatty():
        return None
    password = prompt(f"Password for WSL user '{username}': ")
    if not password:
        return None
    confirmation = prompt("Confirm password: ")
    if password != confirmation:
        module_logger.error("Passwords do not match.")
        return None
    return password


class WslUserBootstrapper:
    """Applies a WSLUserSpec to one distribution through a WslClient."""

    def __init__(
        self,
        wsl_client: WslClient,
        distribution: str,
        app_settings: AppSettings,
        current_logger: Optional[logging.Logger] = None,
    ):
        self.wsl = wsl_client
        self.distribution = distribution
        self.app_settings = app_settings
        self.logger = current_logger if current_logger else module_logger
        self.symbols = get_symbols(app_settings)

    def _run(self, command, cmd_input: Optional[str] = None, capture_output: bool = False):
        return self.wsl.run_in_distribution(
            self.distribution,
            command,
            user="root",
            cmd_input=cmd_input,
            capture_output=capture_output,
        )

    def user_exists(self, username: str) -> bool:
        return self._run(["id", "-u", username], capture_output=True).returncode == 0

    def create_user(self, spec: WSLUserSpec) -> bool:
        result = self._run(
            ["useradd", "--create-home", "--shell", spec.shell, spec.username]
        )
        return result.returncode == 0

    def set_password(self, spec: WSLUserSpec) -> bool:
        payload = f"{spec.username}:{spec.password.get_secret_value()}\n"
        return self._run(["chpasswd"], cmd_input=payload).returncode == 0

    def add_to_sudo(self, username: str) -> bool:
        return self._run(["usermod", "-aG", "sudo", username]).returncode == 0

    def configure_wsl_conf(self, username: str) -> bool:
        current = self._run(["cat", WSL_CONF_PATH], capture_output=True)
        existing = current.stdout if current.returncode == 0 and current.stdout else ""
        content = render_wsl_conf(existing, username)
        result = self._run(["tee", WSL_CONF_PATH], cmd_input=content, capture_output=True)
        return result.returncode == 0

    def set_default_user(self, username: str) -> None:
        if not self.wsl.set_default_user(self.distribution, username):
            log_message(
                f"{self.symbols.get('warning', '⚠️')} wsl.exe --manage could not set the default user; "
                f"{WSL_CONF_PATH} will apply it on next start",
                "warning",
                self.logger,
                self.app_settings,
            )

    def bootstrap(self, spec: WSLUserSpec) -> bool:
        """
        Create or update the user and make it the distribution default.

        Returns:
            True when the user exists with its password, sudo membership and
            wsl.conf entry in place.
        """
        log_message(
            f"{self.symbols.get('step', '➡️')} Configuring default user '{spec.username}' in {self.distribution}",
            "info",
            self.logger,
            self.app_settings,
        )
        if self.user_exists(spec.username):
            log_message(f"User '{spec.username}' already exists", "info", self.logger, self.app_settings)
        elif not self.create_user(spec):
            log_message(
                f"{self.symbols.get('error', '❌')} Failed to create user '{spec.username}'",
                "error",
                self.logger,
                self.app_settings,
            )
            return False

        steps = (
            ("set the password", lambda: self.set_password(spec)),
            ("add the user to sudo", lambda: self.add_to_sudo(spec.username)),
            (f"update {WSL_CONF_PATH}", lambda: self.configure_wsl_conf(spec.username)),
        )
        for description, step in steps:
            if not step():
                log_message(
                    f"{self.symbols.get('error', '❌')} Failed to {description} for '{spec.username}'",
                    "error",
                    self.logger,
                    self.app_settings,
                )
                return False

        self.set_default_user(spec.username)
        self.wsl.terminate(self.distribution)
        log_message(
            f"{self.symbols.get('success', '✅')} Default user '{spec.username}' configured",
            "success",
            self.logger,
            self.app_settings,
        )
        return True
