# installer/components/nodejs_installer.py
# -*- coding: utf-8 -*-
"""
Node.js installer module.

This module installs Node.js and npm from the NodeSource Node.js Binary
Distributions: the major line pinned in the manifest, or the current LTS.
"""

import json
import re
import tempfile
from pathlib import Path
from typing import Optional

from common.command_utils import log_message
from common.debian.apt_manager import AptManager
from common.errors import InstallError
from common.version_utils import LATEST
from installer.base_installer import PackageInstaller
from installer.registry import InstallerRegistry

NODE_INDEX_URL = "https://nodejs.org/dist/index.json"
NODESOURCE_SETUP_URL = "https://deb.nodesource.com/setup_{major}.x"
FALLBACK_LTS_MAJOR = "22"


def latest_lts_major(index_json: str) -> str:
    """
    Major version of the newest LTS release in the nodejs.org dist index,
    which lists releases newest first.
    """
    for release in json.loads(index_json):
        if release.get("lts"):
            return release["version"].lstrip("v").split(".")[0]
    raise ValueError("No LTS release in the Node.js index")


def pinned_major(version: Optional[str]) -> Optional[str]:
    """Major line of a pinned version such as "20" or "v20.11.1"; None for latest."""
    if not version or version == LATEST:
        return None
    match = re.match(r"v?(\d+)", version)
    return match.group(1) if match else None


@InstallerRegistry.register(
    name="nodejs",
    metadata={
        "dependencies": [],
        "description": "Node.js JavaScript runtime",
    },
)
class NodejsInstaller(PackageInstaller):
    """
    Installer for the Node.js JavaScript runtime.

    This installer ensures that Node.js LTS and npm are installed
    using the NodeSource Node.js Binary Distributions.
    """

    command_name = "node"
    version_args = ["--version"]
    smoke_test = ["node", "--version"]

    def _lts_major(self) -> str:
        try:
            return latest_lts_major(self.framework.fetch_text(NODE_INDEX_URL))
        except ValueError as e:
            log_message(
                f"{self.framework.symbols.get('warning', '⚠️')} Could not determine the Node.js LTS line ({e}); using {FALLBACK_LTS_MAJOR}",
                "warning",
                self.logger,
                self.app_settings,
            )
            return FALLBACK_LTS_MAJOR

    def _release_major(self) -> str:
        pinned = pinned_major(self.required_version)
        return pinned if pinned else self._lts_major()

    def install(self) -> None:
        major = self._release_major()
        apt_manager = AptManager(logger=self.logger)

        with tempfile.TemporaryDirectory(prefix="nodesource-") as temp_dir:
            setup_script = self.framework.download_file(
                NODESOURCE_SETUP_URL.format(major=major),
                Path(temp_dir) / "nodesource_setup.sh",
            )
            self.framework.run_elevated(
                ["bash", str(setup_script)],
                timeout=self.app_settings.script_timeout,
                stdin_devnull=True,
            )

        if not apt_manager.install("nodejs", self.app_settings, update_first=True):
            raise InstallError("Failed to install the nodejs package")
