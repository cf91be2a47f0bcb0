# installer/section_installers.py
# -*- coding: utf-8 -*-
"""
Installers for the manifest sections that are handled by a foreign package
manager rather than a plugin: pip, PowerShell Gallery and Nix.
"""

import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from common.command_utils import command_exists
from common.errors import InstallError
from common.version_utils import LATEST, NOT_INSTALLED, UNKNOWN
from installer.base_installer import PackageInstaller
from installer.framework import InstallationFramework

NIX_FEATURES = ["--extra-experimental-features", "nix-command flakes"]
NIX_FLAKE_PRIORITY = "5"
# Single-user and multi-user nix installs put the binary outside the default PATH
NIX_FALLBACK_LOCATIONS = (
    Path.home() / ".nix-profile" / "bin" / "nix",
    Path("/nix/var/nix/profiles/default/bin/nix"),
)

PIP_VERSION_PATTERN = re.compile(r"^Version:\s*(\S+)", re.MULTILINE)


def _pinned(version: Optional[str]) -> bool:
    return bool(version) and version != LATEST


class PythonPackageInstaller(PackageInstaller):
    """Installs a package into the system interpreter with pip."""

    def __init__(
        self,
        framework: InstallationFramework,
        name: str,
        version: str = LATEST,
        description: str = "",
        logger: Optional[logging.Logger] = None,
    ):
        self.name = name
        self.description = description
        self.version = version
        super().__init__(framework, logger)
        self.python = self.app_settings.wsl.python_command

    def is_installed(self) -> Tuple[bool, str]:
        try:
            result = self.framework.run(
                [self.python, "-m", "pip", "show", self.name],
                check=False,
                capture_output=True,
                stdin_devnull=True,
                timeout=self.app_settings.version_timeout,
                quiet=True,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False, NOT_INSTALLED
        if result.returncode != 0:
            return False, NOT_INSTALLED
        match = PIP_VERSION_PATTERN.search(result.stdout or "")
        return True, match.group(1) if match else UNKNOWN

    def install(self) -> None:
        requirement = f"{self.name}=={self.version}" if _pinned(self.version) else self.name
        self.framework.run_elevated(
            [self.python, "-m", "pip", "install", "--break-system-packages", requirement],
            timeout=self.app_settings.script_timeout,
            stdin_devnull=True,
        )

    def verify(self) -> bool:
        return self.is_installed()[0]


class PowerShellModuleInstaller(PackageInstaller):
    """Installs a PowerShell Gallery module for all users with pwsh."""

    def __init__(
        self,
        framework: InstallationFramework,
        name: str,
        version: str = LATEST,
        description: str = "",
        logger: Optional[logging.Logger] = None,
    ):
        self.name = name
        self.description = description
        self.version = version
        super().__init__(framework, logger)

    def _pwsh(self, script: str) -> List[str]:
        return ["pwsh", "-NoProfile", "-NonInteractive", "-Command", script]

    def is_installed(self) -> Tuple[bool, str]:
        if not command_exists("pwsh"):
            return False, NOT_INSTALLED
        query = (
            f"Get-Module -ListAvailable -Name {self.name} | "
            "Sort-Object Version -Descending | Select-Object -First 1 | "
            "ForEach-Object { $_.Version.ToString() }"
        )
        try:
            result = self.framework.run(
                self._pwsh(query),
                check=False,
                capture_output=True,
                stdin_devnull=True,
                timeout=self.app_settings.verify_timeout,
                quiet=True,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False, NOT_INSTALLED
        version = (result.stdout or "").strip()
        if result.returncode != 0 or not version:
            return False, NOT_INSTALLED
        return True, version

    def install(self) -> None:
        if not command_exists("pwsh"):
            raise InstallError("PowerShell (pwsh) is not installed")
        script = f"Install-Module -Name {self.name}"
        if _pinned(self.version):
            script += f" -RequiredVersion {self.version}"
        script += " -Force -AllowClobber -Scope AllUsers"
        self.framework.run_elevated(
            self._pwsh(script),
            timeout=self.app_settings.script_timeout,
            stdin_devnull=True,
        )

    def verify(self) -> bool:
        return self.is_installed()[0]


def find_nix() -> Optional[str]:
    """Path of the nix executable, looking past PATH into the nix profiles."""
    on_path = shutil.which("nix")
    if on_path:
        return on_path
    for candidate in NIX_FALLBACK_LOCATIONS:
        if candidate.is_file():
            return str(candidate)
    return None


class _NixInstaller(PackageInstaller):
    """Shared plumbing for ``nix profile install`` based installers."""

    installable: str = ""
    priority: Optional[str] = None

    def _nix(self) -> str:
        nix = find_nix()
        if not nix:
            raise InstallError("Nix is not installed")
        return nix

    def is_installed(self) -> Tuple[bool, str]:
        nix = find_nix()
        if not nix:
            return False, NOT_INSTALLED
        try:
            result = self.framework.run(
                [nix] + NIX_FEATURES + ["profile", "list"],
                check=False,
                capture_output=True,
                stdin_devnull=True,
                timeout=self.app_settings.verify_timeout,
                quiet=True,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False, NOT_INSTALLED
        if result.returncode == 0 and self.installable in (result.stdout or ""):
            return True, UNKNOWN
        return False, NOT_INSTALLED

    def install(self) -> None:
        command = [self._nix()] + NIX_FEATURES + ["profile", "install", self.installable]
        if self.priority:
            command += ["--priority", self.priority]
        self.framework.run(
            command,
            timeout=self.app_settings.script_timeout,
            stdin_devnull=True,
        )

    def verify(self) -> bool:
        return find_nix() is not None


class NixFlakeInstaller(_NixInstaller):
    """Installs a local flake directory or a remote flake reference."""

    priority = NIX_FLAKE_PRIORITY

    def __init__(
        self,
        framework: InstallationFramework,
        name: str,
        source: str,
        description: str = "",
        logger: Optional[logging.Logger] = None,
    ):
        self.name = name
        self.description = description
        self.installable = source
        super().__init__(framework, logger)


class NixPackageInstaller(_NixInstaller):
    """Installs one attribute from nixpkgs."""

    def __init__(
        self,
        framework: InstallationFramework,
        name: str,
        package: str,
        description: str = "",
        logger: Optional[logging.Logger] = None,
    ):
        self.name = name
        self.description = description
        self.installable = f"nixpkgs#{package}"
        super().__init__(framework, logger)
