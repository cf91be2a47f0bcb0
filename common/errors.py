# common/errors.py
# -*- coding: utf-8 -*-
"""
Exception hierarchy shared by the dispatcher, the installation framework and
the host-side orchestrator.

ValidationError and ManifestError abort a whole run. DownloadError and
InstallError are caught at the framework boundary and recorded as a failed
package. VerificationError is only ever logged as a warning.
"""

from typing import Optional


class ProvisioningError(Exception):
    """Base class for all provisioning errors."""


class ValidationError(ProvisioningError):
    """An argument or parameter failed its allow-list check."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ManifestError(ProvisioningError):
    """The manifest could not be read, parsed or resolved."""


class DownloadError(ProvisioningError):
    """A download was blocked, failed after all retries, or had a bad checksum."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class InstallError(ProvisioningError):
    """A package manager call or installer script failed."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class VerificationError(ProvisioningError):
    """A post-install smoke test did not pass."""
