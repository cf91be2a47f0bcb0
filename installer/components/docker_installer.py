# installer/components/docker_installer.py
# -*- coding: utf-8 -*-
"""
Docker installer module.

Installs Docker Engine from Docker's apt repository and adds the invoking
user to the docker group.
"""

import os
import tempfile
from pathlib import Path

from common.command_utils import log_message
from common.debian.apt_manager import AptManager
from common.errors import InstallError
from common.system_utils import read_os_release
from installer.base_installer import PackageInstaller
from installer.registry import InstallerRegistry

DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_KEYRING = "/etc/apt/keyrings/docker.gpg"
DOCKER_REPO_URL = "https://download.docker.com/linux/ubuntu"
DOCKER_PREREQUISITES = ["ca-certificates", "curl", "gnupg", "lsb-release"]
DOCKER_PACKAGES = [
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
]


@InstallerRegistry.register(
    name="docker",
    metadata={
        "dependencies": [],
        "description": "Docker Engine with the buildx and compose plugins",
    },
)
class DockerInstaller(PackageInstaller):
    """
    Installer for Docker Engine.

    Follows Docker's documented apt repository setup: prerequisites, the
    signing key dearmored into /etc/apt/keyrings, a signed-by source line
    for the distribution codename, then the engine packages.
    """

    command_name = "docker"
    smoke_test = ["docker", "--version"]
    expected_pattern = "Docker version"

    def _codename(self) -> str:
        os_release = read_os_release(
            app_settings=self.app_settings, current_logger=self.logger
        )
        codename = os_release.get("VERSION_CODENAME") or os_release.get(
            "UBUNTU_CODENAME"
        )
        if not codename:
            raise InstallError("Could not determine the distribution codename")
        return codename

    def _dpkg_architecture(self) -> str:
        result = self.framework.run(
            ["dpkg", "--print-architecture"], capture_output=True, quiet=True
        )
        return result.stdout.strip()

    def install(self) -> None:
        symbols = self.framework.symbols
        apt_manager = AptManager(logger=self.logger)

        if not apt_manager.install(
            DOCKER_PREREQUISITES, self.app_settings, update_first=True
        ):
            raise InstallError("Failed to install Docker prerequisites")

        with tempfile.TemporaryDirectory(prefix="docker-key-") as temp_dir:
            key_path = self.framework.download_file(
                DOCKER_GPG_URL, Path(temp_dir) / "docker.asc"
            )
            if not apt_manager.add_gpg_key(
                str(key_path), DOCKER_KEYRING, self.app_settings
            ):
                raise InstallError("Failed to add the Docker signing key")

        repo_line = (
            f"deb [arch={self._dpkg_architecture()} signed-by={DOCKER_KEYRING}] "
            f"{DOCKER_REPO_URL} {self._codename()} stable"
        )
        if not apt_manager.add_repository("docker", repo_line, self.app_settings):
            raise InstallError("Failed to add the Docker apt repository")

        if not apt_manager.install(DOCKER_PACKAGES, self.app_settings):
            raise InstallError("Failed to install the Docker packages")

        target_user = os.environ.get("SUDO_USER") or os.environ.get("USER")
        if target_user and target_user != "root":
            self.framework.run_elevated(["usermod", "-aG", "docker", target_user])
            log_message(
                f"{symbols.get('info', 'ℹ️')} Added {target_user} to the docker group; log out and back in to use docker without sudo",
                "info",
                self.logger,
                self.app_settings,
            )
