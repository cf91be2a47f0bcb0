# installer/components/golang_installer.py
# -*- coding: utf-8 -*-
"""
Go installer module.

Installs the latest Go release tarball from go.dev into /usr/local/go and
links go and gofmt into /usr/local/bin so they are on every user's PATH.
"""

import tempfile
from pathlib import Path

from common.errors import InstallError
from common.system_utils import get_architecture
from installer.base_installer import PackageInstaller, first_token
from installer.registry import InstallerRegistry

GO_VERSION_URL = "https://go.dev/VERSION?m=text"
GO_DOWNLOAD_URL = "https://go.dev/dl/{filename}"
GO_CHECKSUM_URL = "https://dl.google.com/go/{filename}.sha256"
GO_ROOT = "/usr/local/go"
GO_BINARIES = ("go", "gofmt")


@InstallerRegistry.register(
    name="golang",
    metadata={
        "dependencies": [],
        "description": "Go programming language",
    },
)
class GolangInstaller(PackageInstaller):
    command_name = "go"
    version_args = ["version"]
    smoke_test = ["go", "version"]
    expected_pattern = "go version"

    def install(self) -> None:
        # The release, e.g. "go1.23.4", comes first; later lines are metadata
        release = first_token(self.framework.fetch_text(GO_VERSION_URL), GO_VERSION_URL)
        if not release.startswith("go"):
            raise InstallError(f"Unexpected Go release marker: {release!r}")
        try:
            arch = get_architecture()
        except ValueError as e:
            raise InstallError(str(e)) from e

        filename = f"{release}.linux-{arch}.tar.gz"
        checksum_url = GO_CHECKSUM_URL.format(filename=filename)
        checksum = first_token(self.framework.fetch_text(checksum_url), checksum_url)

        with tempfile.TemporaryDirectory(prefix="golang-") as temp_dir:
            archive_path = self.framework.download_file(
                GO_DOWNLOAD_URL.format(filename=filename),
                Path(temp_dir) / filename,
                checksum,
            )
            self.framework.run_elevated(["rm", "-rf", GO_ROOT])
            self.framework.run_elevated(
                ["tar", "-C", str(Path(GO_ROOT).parent), "-xzf", str(archive_path)]
            )

        for binary in GO_BINARIES:
            self.framework.run_elevated(
                ["ln", "-sf", f"{GO_ROOT}/bin/{binary}", f"/usr/local/bin/{binary}"]
            )
