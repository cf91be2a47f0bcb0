# installer/components/helm_installer.py
# -*- coding: utf-8 -*-
"""
Helm installer module, using the upstream get-helm-3 script.
"""

import tempfile
from pathlib import Path

from installer.base_installer import PackageInstaller
from installer.registry import InstallerRegistry

HELM_INSTALL_SCRIPT_URL = "https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3"


@InstallerRegistry.register(
    name="helm",
    metadata={
        "dependencies": ["kubectl"],
        "description": "Kubernetes package manager",
    },
)
class HelmInstaller(PackageInstaller):
    command_name = "helm"
    version_args = ["version", "--short"]
    smoke_test = ["helm", "version", "--short"]

    def install(self) -> None:
        with tempfile.TemporaryDirectory(prefix="helm-") as temp_dir:
            script_path = self.framework.download_file(
                HELM_INSTALL_SCRIPT_URL, Path(temp_dir) / "get_helm.sh"
            )
            self.framework.run_elevated(
                ["bash", str(script_path)],
                timeout=self.app_settings.script_timeout,
                stdin_devnull=True,
            )
