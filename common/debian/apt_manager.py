# common/debian/apt_manager.py
# -*- coding: utf-8 -*-
import logging
import subprocess
from typing import Dict, List, Optional, Sequence, Union

from common.command_utils import (
    command_exists,
    run_command,
    run_elevated_command,
)
from setup.config_models import AppSettings

# Environment that keeps apt, debconf and needrestart from ever prompting
NONINTERACTIVE_ENV: Dict[str, str] = {
    "DEBIAN_FRONTEND": "noninteractive",
    "NEEDRESTART_MODE": "a",
    "NEEDRESTART_SUSPEND": "1",
    "APT_LISTCHANGES_FRONTEND": "none",
    "DEBIAN_PRIORITY": "critical",
}

DPKG_OPTIONS: List[str] = [
    "-o",
    "Dpkg::Options::=--force-confdef",
    "-o",
    "Dpkg::Options::=--force-confold",
]


def package_argument(name: str, version: Optional[str] = None) -> str:
    """``name`` or ``name=version`` for apt-get install."""
    if version and version != "latest":
        return f"{name}={version}"
    return name


class AptManager:
    """
    A centralized manager for apt packages, run noninteractively so that an
    unattended WSL provisioning run never blocks on a prompt.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initializes the AptManager.
        Args:
            logger: An optional logging object.
        """
        self.logger = logger or logging.getLogger(__name__)
        if not command_exists("apt-get"):
            self.logger.critical(
                "'apt-get' command not found. This manager cannot function."
            )
            raise FileNotFoundError(
                "'apt-get' not found. Is this a Debian-based system?"
            )

    @staticmethod
    def _noninteractive(command: List[str]) -> List[str]:
        # sudo drops the caller's environment, so pass it through env(1)
        return ["env"] + [f"{k}={v}" for k, v in NONINTERACTIVE_ENV.items()] + command

    def update(
        self, app_settings: AppSettings, raise_error: bool = False
    ) -> bool:
        """
        Updates the list of available packages using 'apt-get update'.

        Args:
            app_settings: The application settings.
            raise_error: Whether to raise an exception on failure.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info("Updating apt package lists via 'apt-get update'...")
        try:
            run_elevated_command(
                self._noninteractive(["apt-get", "update", "-qq"]),
                app_settings,
                current_logger=self.logger,
                stdin_devnull=True,
            )
            self.logger.info("Apt package lists updated successfully.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to update apt cache: {e}")
            if raise_error:
                raise
            return False

    def upgrade(self, app_settings: AppSettings) -> bool:
        """
        Upgrades all installed packages.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info("Upgrading installed packages via 'apt-get upgrade'...")
        try:
            run_elevated_command(
                self._noninteractive(
                    ["apt-get", "upgrade", "-y", "-qq"] + DPKG_OPTIONS
                ),
                app_settings,
                current_logger=self.logger,
                stdin_devnull=True,
            )
            self.logger.info("System packages upgraded successfully.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to upgrade packages: {e}")
            return False

    def get_installed_version(
        self, package_name: str, app_settings: AppSettings
    ) -> Optional[str]:
        """
        Returns the installed version of a package, or None when it is not
        installed.
        """
        try:
            result = run_command(
                [
                    "dpkg-query",
                    "-W",
                    "-f=${db:Status-Status}\t${Version}",
                    package_name,
                ],
                app_settings,
                capture_output=True,
                check=False,
                current_logger=self.logger,
                quiet=True,
            )
        except FileNotFoundError:
            self.logger.error(
                f"dpkg-query not found. Cannot check package '{package_name}'."
            )
            return None
        if result.returncode != 0 or not result.stdout:
            return None
        status, _, version = result.stdout.strip().partition("\t")
        if status != "installed":
            return None
        return version or None

    def install(
        self,
        packages: Union[Sequence[str], str],
        app_settings: AppSettings,
        update_first: bool = False,
    ) -> bool:
        """
        Installs one or more packages in a single 'apt-get install' call.

        Args:
            packages: Package arguments (``name`` or ``name=version``).
            app_settings: The application settings.
            update_first: Whether to update the package lists before installing.

        Returns:
            True if successful, False otherwise.
        """
        if isinstance(packages, str):
            packages = [packages]
        packages = list(packages)
        if not packages:
            return True

        if update_first:
            if not self.update(app_settings):
                return False

        self.logger.info(
            f"Committing installation for: {', '.join(packages)}"
        )
        try:
            cmd = ["apt-get", "install", "-y", "-qq"] + DPKG_OPTIONS + packages
            run_elevated_command(
                self._noninteractive(cmd),
                app_settings,
                current_logger=self.logger,
                stdin_devnull=True,
            )
            self.logger.info("Packages installed successfully.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to install packages: {e}")
            return False

    def add_repository(
        self,
        repo_name: str,
        repo_line: str,
        app_settings: AppSettings,
        update_after: bool = True,
    ) -> bool:
        """
        Adds an apt source by writing /etc/apt/sources.list.d/<repo_name>.list.

        Returns:
            True if successful, False otherwise.
        """
        repo_file_path = f"/etc/apt/sources.list.d/{repo_name}.list"
        self.logger.info(f"Adding repository '{repo_name}': {repo_line}")
        try:
            run_elevated_command(
                ["tee", repo_file_path],
                app_settings,
                cmd_input=repo_line.rstrip("\n") + "\n",
                capture_output=True,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["chmod", "644", repo_file_path],
                app_settings,
                current_logger=self.logger,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(
                f"Failed to create repository file '{repo_file_path}': {e}"
            )
            return False

        if update_after:
            return self.update(app_settings)
        return True

    def add_gpg_key(
        self, key_path: str, keyring_path: str, app_settings: AppSettings
    ) -> bool:
        """
        Dearmors a downloaded GPG key into a keyring under /etc/apt/keyrings.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info(f"Adding GPG key {key_path} to {keyring_path}")
        try:
            run_elevated_command(
                ["install", "-m", "0755", "-d", "/etc/apt/keyrings"],
                app_settings,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["gpg", "--batch", "--yes", "--dearmor", "-o", keyring_path, key_path],
                app_settings,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["chmod", "a+r", keyring_path],
                app_settings,
                current_logger=self.logger,
            )
            self.logger.info("GPG key added and permissions set.")
            return True
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            self.logger.error(f"Failed to add GPG key: {e}")
            return False

    def autoremove(self, app_settings: AppSettings) -> bool:
        """
        Removes automatically installed packages that are no longer needed.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info("Running autoremove to clean up unused packages...")
        try:
            run_elevated_command(
                self._noninteractive(["apt-get", "autoremove", "-y", "-qq"]),
                app_settings,
                current_logger=self.logger,
                stdin_devnull=True,
            )
            self.logger.info("Autoremove completed successfully.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to autoremove packages: {e}")
            return False

    def autoclean(self, app_settings: AppSettings) -> bool:
        """
        Clears out the local repository of retrieved package files that can
        no longer be downloaded.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info("Running autoclean to clear the package cache...")
        try:
            run_elevated_command(
                self._noninteractive(["apt-get", "autoclean", "-qq"]),
                app_settings,
                current_logger=self.logger,
                stdin_devnull=True,
            )
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to autoclean: {e}")
            return False
