# installer/base_installer.py
# -*- coding: utf-8 -*-
"""
Base class for all package installers.

A PackageInstaller answers three questions for one piece of software: is it
installed (and at what version), how is it installed, and does it work
afterwards. The InstallationFramework drives these through its state machine;
installers never record results themselves.
"""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from common.errors import InstallError
from common.version_utils import NOT_INSTALLED
from installer.framework import InstallationFramework

# Exit status used by timeout(1); installer scripts propagate it
TIMEOUT_EXIT_CODE = 124


def first_token(content: str, source: str) -> str:
    """
    First whitespace-separated word of a fetched marker or checksum file.

    Raises:
        InstallError: The content is empty.
    """
    tokens = content.split()
    if not tokens:
        raise InstallError(f"Empty response from {source}")
    return tokens[0]


class PackageInstaller(ABC):
    """
    Base class for all package installers.

    Subclasses set ``command_name`` (the executable that proves the package
    is present) and implement install(). The defaults for is_installed()
    and verify() delegate to the framework using that command.
    """

    name: str = ""
    description: str = ""
    command_name: Optional[str] = None
    version_args: Optional[List[str]] = None
    smoke_test: Optional[Union[str, List[str]]] = None
    expected_pattern: Optional[str] = None
    # Version the manifest asks for; "latest" or None means the newest release
    required_version: Optional[str] = None

    # Class-level metadata that can be overridden by subclasses or set by the registry decorator
    metadata: Dict[str, Any] = {
        "dependencies": [],  # Names of installers that must run first
        "description": "",
    }

    def __init__(
        self,
        framework: InstallationFramework,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the installer.

        Args:
            framework: The run's installation framework.
            logger: Optional logger instance. Defaults to the framework's logger.
        """
        self.framework = framework
        self.app_settings = framework.app_settings
        self.logger = logger or framework.logger
        if not self.name:
            self.name = self.__class__.__name__

    def is_installed(self) -> Tuple[bool, str]:
        """
        Returns:
            ``(installed, version)`` where version may be ``UNKNOWN`` or
            ``NOT_INSTALLED``.
        """
        if not self.command_name:
            return False, NOT_INSTALLED
        return self.framework.is_installed(self.command_name, self.version_args)

    @abstractmethod
    def install(self) -> None:
        """
        Install the package.

        Raises:
            InstallError, DownloadError: The installation did not complete.
        """

    def verify(self) -> bool:
        """
        Returns False only when the package's command is missing after
        installation; smoke test problems are warnings.
        """
        if not self.command_name:
            return True
        return self.framework.verify_installation(
            self.command_name, self.smoke_test, self.expected_pattern
        )

    def get_description(self) -> str:
        return self.description or str(self.metadata.get("description", ""))


class ScriptPackageInstaller(PackageInstaller):
    """
    Runs an external installer script, or inline shell content, with bash.

    Scripts follow a simple contract: no required arguments, exit 0 on
    success or when already installed, non-zero otherwise. They receive
    FORCE_INSTALL, INSTALLING_SOFTWARE and WSL_INSTALL_RUN_ID in their
    environment and never get a terminal on stdin.
    """

    def __init__(
        self,
        framework: InstallationFramework,
        name: str,
        script_path: Optional[Path] = None,
        inline_script: Optional[str] = None,
        command_name: Optional[str] = None,
        version_args: Optional[List[str]] = None,
        description: str = "",
        logger: Optional[logging.Logger] = None,
    ):
        if (script_path is None) == (inline_script is None):
            raise ValueError(
                f"{name}: exactly one of script_path or inline_script is required"
            )
        self.name = name
        self.description = description
        self.command_name = command_name
        self.version_args = version_args
        self.script_path = Path(script_path) if script_path is not None else None
        self.inline_script = inline_script
        super().__init__(framework, logger)

    def _environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        env["FORCE_INSTALL"] = "true" if self.framework.context.force else "false"
        env["INSTALLING_SOFTWARE"] = self.name
        env["WSL_INSTALL_RUN_ID"] = self.framework.context.run_id
        return env

    def install(self) -> None:
        timeout = self.app_settings.script_timeout
        if self.script_path is not None:
            if not self.script_path.is_file():
                raise InstallError(f"Installation script not found: {self.script_path}")
            command = ["bash", str(self.script_path)]
            cwd: Optional[str] = str(self.script_path.parent)
            label = str(self.script_path)
        else:
            command = ["bash", "-c", self.inline_script or ""]
            cwd = None
            label = f"inline script for {self.name}"

        try:
            result = self.framework.run(
                command,
                check=False,
                cwd=cwd,
                env=self._environment(),
                timeout=timeout,
                stdin_devnull=True,
            )
        except subprocess.TimeoutExpired as e:
            raise InstallError(
                f"{label} timed out after {timeout}s", TIMEOUT_EXIT_CODE
            ) from e

        if result.returncode == TIMEOUT_EXIT_CODE:
            raise InstallError(f"{label} timed out", TIMEOUT_EXIT_CODE)
        if result.returncode != 0:
            raise InstallError(
                f"{label} exited with code {result.returncode}", result.returncode
            )
