# installer/components/kubectl_installer.py
# -*- coding: utf-8 -*-
"""
kubectl installer module.

Downloads the current stable kubectl release binary, checks it against the
published SHA-256 and installs it into /usr/local/bin.
"""

import tempfile
from pathlib import Path

from common.errors import InstallError
from common.security import validate_version_string
from common.system_utils import get_architecture
from installer.base_installer import PackageInstaller, first_token
from installer.registry import InstallerRegistry

KUBECTL_STABLE_URL = "https://dl.k8s.io/release/stable.txt"
KUBECTL_RELEASE_URL = "https://dl.k8s.io/release/{version}/bin/linux/{arch}/kubectl"
INSTALL_PATH = "/usr/local/bin/kubectl"


@InstallerRegistry.register(
    name="kubectl",
    metadata={
        "dependencies": [],
        "description": "Kubernetes command-line tool",
    },
)
class KubectlInstaller(PackageInstaller):
    command_name = "kubectl"
    version_args = ["version", "--client"]
    smoke_test = ["kubectl", "version", "--client"]
    expected_pattern = "Client Version"

    def install(self) -> None:
        version = self.framework.fetch_text(KUBECTL_STABLE_URL).strip()
        if not validate_version_string(version, self.app_settings, self.logger):
            raise InstallError(f"Unexpected kubectl release marker: {version!r}")

        try:
            arch = get_architecture()
        except ValueError as e:
            raise InstallError(str(e)) from e

        binary_url = KUBECTL_RELEASE_URL.format(version=version, arch=arch)
        checksum = first_token(
            self.framework.fetch_text(f"{binary_url}.sha256"), f"{binary_url}.sha256"
        )

        with tempfile.TemporaryDirectory(prefix="kubectl-") as temp_dir:
            binary_path = self.framework.download_file(
                binary_url, Path(temp_dir) / "kubectl", checksum
            )
            self.framework.run_elevated(
                ["install", "-o", "root", "-g", "root", "-m", "0755", str(binary_path), INSTALL_PATH]
            )
