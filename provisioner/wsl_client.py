# provisioner/wsl_client.py
# -*- coding: utf-8 -*-
"""
Thin wrapper around wsl.exe for the host-side orchestrator.

Every call goes through common.command_utils.run_command, so each wsl.exe
invocation is logged as "Executing: ...". Secrets are only ever passed on
stdin, never as arguments.
"""

import logging
import os
import re
import subprocess
from pathlib import PureWindowsPath
from typing import Callable, Dict, List, Optional, Sequence, Union

from common.command_utils import run_command
from setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

WINDOWS_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:[\\/]")


def to_wsl_path(path: Union[str, os.PathLike]) -> str:
    """
    Translate a Windows path (``C:\\Users\\me\\wsl``) to its /mnt mount
    (``/mnt/c/Users/me/wsl``). POSIX paths are returned unchanged.
    """
    text = str(path)
    if not WINDOWS_DRIVE_PATTERN.match(text):
        return text.replace("\\", "/")
    windows_path = PureWindowsPath(text)
    drive = windows_path.drive.rstrip(":").lower()
    rest = "/".join(windows_path.parts[1:])
    return f"/mnt/{drive}/{rest}" if rest else f"/mnt/{drive}"


def parse_distribution_list(output: str) -> List[str]:
    """
    Names from ``wsl.exe --list --quiet``. Older wsl.exe builds emit
    UTF-16 even with WSL_UTF8=1, which shows up as NUL bytes.
    """
    cleaned = output.replace("\x00", "").replace("\ufeff", "")
    return [line.strip() for line in cleaned.splitlines() if line.strip()]


class WslClient:
    """Runs wsl.exe subcommands for one host session."""

    def __init__(
        self,
        app_settings: AppSettings,
        current_logger: Optional[logging.Logger] = None,
        command_runner: Callable[..., subprocess.CompletedProcess] = run_command,
    ):
        self.app_settings = app_settings
        self.logger = current_logger if current_logger else module_logger
        self.command_runner = command_runner
        self.wsl_command = app_settings.wsl.command

    def _wsl(self, arguments: Sequence[str], **kwargs) -> subprocess.CompletedProcess:
        env = dict(os.environ)
        env["WSL_UTF8"] = "1"
        kwargs.setdefault("check", False)
        return self.command_runner(
            [self.wsl_command] + list(arguments),
            self.app_settings,
            current_logger=self.logger,
            env=env,
            **kwargs,
        )

    def list_distributions(self) -> List[str]:
        result = self._wsl(["--list", "--quiet"], capture_output=True, quiet=True)
        if result.returncode != 0:
            return []
        return parse_distribution_list(result.stdout or "")

    def distribution_exists(self, distribution: str) -> bool:
        return distribution in self.list_distributions()

    def install(self, distribution: str) -> bool:
        return self._wsl(["--install", "-d", distribution, "--no-launch"]).returncode == 0

    def unregister(self, distribution: str) -> bool:
        return self._wsl(["--unregister", distribution]).returncode == 0

    def terminate(self, distribution: str) -> bool:
        return self._wsl(["--terminate", distribution]).returncode == 0

    def set_default_user(self, distribution: str, username: str) -> bool:
        return self._wsl(
            ["--manage", distribution, "--set-default-user", username],
            capture_output=True,
        ).returncode == 0

    def run_in_distribution(
        self,
        distribution: str,
        command: Sequence[str],
        user: str = "root",
        env: Optional[Dict[str, str]] = None,
        capture_output: bool = False,
        cmd_input: Optional[str] = None,
        timeout: Optional[float] = None,
        check: bool = False,
    ) -> subprocess.CompletedProcess:
        """
        Execute `command` inside the distribution without a shell. `env`
        is applied through env(1) on the Linux side.
        """
        linux_command = list(command)
        if env:
            linux_command = ["env"] + [f"{k}={v}" for k, v in env.items()] + linux_command
        return self._wsl(
            ["-d", distribution, "-u", user, "--exec"] + linux_command,
            capture_output=capture_output,
            cmd_input=cmd_input,
            timeout=timeout,
            check=check,
            stdin_devnull=cmd_input is None,
        )
