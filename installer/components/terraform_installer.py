# installer/components/terraform_installer.py
# -*- coding: utf-8 -*-
"""
Terraform installer module.

Resolves the latest release through the HashiCorp releases API, verifies the
zip against the release's SHA256SUMS and installs the binary into
/usr/local/bin.
"""

import json
import tempfile
import zipfile
from pathlib import Path

from common.errors import InstallError
from common.security import validate_version_string
from common.system_utils import get_architecture
from installer.base_installer import PackageInstaller
from installer.registry import InstallerRegistry

RELEASES_API_URL = "https://api.releases.hashicorp.com/v1/releases/terraform?limit=1"
RELEASE_BASE_URL = "https://releases.hashicorp.com/terraform/{version}"
INSTALL_PATH = "/usr/local/bin/terraform"


def parse_sha256sums(content: str, filename: str) -> str:
    """Checksum for `filename` from a ``<sha256>  <file>`` listing."""
    for line in content.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[1] == filename:
            return parts[0]
    raise InstallError(f"No checksum published for {filename}")


@InstallerRegistry.register(
    name="terraform",
    metadata={
        "dependencies": [],
        "description": "HashiCorp Terraform",
    },
)
class TerraformInstaller(PackageInstaller):
    command_name = "terraform"
    version_args = ["version"]
    smoke_test = ["terraform", "version"]
    expected_pattern = "Terraform"

    def _latest_version(self) -> str:
        try:
            releases = json.loads(self.framework.fetch_text(RELEASES_API_URL))
            version = releases[0]["version"]
        except (ValueError, LookupError, TypeError) as e:
            raise InstallError(f"Could not read the latest Terraform release: {e}") from e
        if not validate_version_string(version, self.app_settings, self.logger):
            raise InstallError(f"Unexpected Terraform version: {version!r}")
        return version

    def install(self) -> None:
        version = self._latest_version()
        try:
            arch = get_architecture()
        except ValueError as e:
            raise InstallError(str(e)) from e

        base_url = RELEASE_BASE_URL.format(version=version)
        archive_name = f"terraform_{version}_linux_{arch}.zip"
        checksum = parse_sha256sums(
            self.framework.fetch_text(f"{base_url}/terraform_{version}_SHA256SUMS"),
            archive_name,
        )

        with tempfile.TemporaryDirectory(prefix="terraform-") as temp_dir:
            archive_path = self.framework.download_file(
                f"{base_url}/{archive_name}", Path(temp_dir) / archive_name, checksum
            )
            try:
                with zipfile.ZipFile(archive_path) as archive:
                    archive.extract("terraform", temp_dir)
            except (zipfile.BadZipFile, KeyError) as e:
                raise InstallError(f"Unusable Terraform archive {archive_name}: {e}") from e
            self.framework.run_elevated(
                ["install", "-m", "0755", str(Path(temp_dir) / "terraform"), INSTALL_PATH]
            )
