# installer/framework.py
# -*- coding: utf-8 -*-
"""
The installation framework: the uniform "idempotent install" contract that
every package installer goes through.

An InstallationFramework is built once per run with its capabilities
(downloader, URL validator, command runner) injected, and handed to every
PackageInstaller. It owns the per-package state machine:

    NotChecked -> (installed ? Skipped : Installing) -> Verifying -> Success | Failure

Errors raised by an installer are recorded as a failed result and never
propagate past install_package.
"""

import logging
import re
import shlex
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple, Union

from common.command_utils import (
    command_exists,
    get_elevated_command_prefix,
    get_symbols,
    log_message,
    run_command,
)
from common.errors import (
    DownloadError,
    InstallError,
    ProvisioningError,
    VerificationError,
)
from common.logging_config import log_event
from common.network_utils import download_file, fetch_text
from common.security import validate_command_name, validate_url
from common.version_utils import (
    LATEST,
    NOT_INSTALLED,
    UNKNOWN,
    get_command_version,
    version_compare,
)
from installer.run_context import InstallationResult, Outcome, RunContext

if TYPE_CHECKING:
    from installer.base_installer import PackageInstaller

module_logger = logging.getLogger(__name__)

DownloadFn = Callable[..., Path]
UrlValidatorFn = Callable[..., bool]
CommandRunnerFn = Callable[..., subprocess.CompletedProcess]
FetchFn = Callable[..., str]


class InstallationFramework:
    """
    Capability object shared by all installers of one run.

    Args:
        context: The run's RunContext; results are recorded into it.
        downloader: Function with the signature of common.network_utils.download_file.
        url_validator: Function with the signature of common.security.validate_url.
        command_runner: Function with the signature of common.command_utils.run_command.
        fetcher: Function with the signature of common.network_utils.fetch_text.
    """

    def __init__(
        self,
        context: RunContext,
        downloader: DownloadFn = download_file,
        url_validator: UrlValidatorFn = validate_url,
        command_runner: CommandRunnerFn = run_command,
        fetcher: FetchFn = fetch_text,
    ):
        self.context = context
        self.app_settings = context.app_settings
        self.logger = context.logger or module_logger
        self.symbols = get_symbols(self.app_settings)
        self.downloader = downloader
        self.url_validator = url_validator
        self.command_runner = command_runner
        self.fetcher = fetcher

    # --- command execution -------------------------------------------------

    def run(
        self, command: List[str], **kwargs
    ) -> subprocess.CompletedProcess:
        """Run a command through the injected runner with this run's logger."""
        return self.command_runner(
            command, self.app_settings, current_logger=self.logger, **kwargs
        )

    def run_elevated(
        self, command: List[str], **kwargs
    ) -> subprocess.CompletedProcess:
        return self.run(get_elevated_command_prefix() + list(command), **kwargs)

    # --- installed checks ----------------------------------------------------

    def is_installed(
        self,
        command_name: str,
        version_args: Optional[Union[str, Sequence[str]]] = None,
    ) -> Tuple[bool, str]:
        """
        Returns ``(False, "NOT_INSTALLED")``, ``(True, "UNKNOWN")`` or
        ``(True, "<version>")``.
        """
        if not command_exists(command_name):
            return False, NOT_INSTALLED
        version = get_command_version(
            command_name, version_args, self.app_settings, self.logger
        )
        if version == NOT_INSTALLED:
            return False, NOT_INSTALLED
        return True, version

    def check_already_installed(
        self,
        command_name: str,
        version_args: Optional[Union[str, Sequence[str]]] = None,
    ) -> bool:
        """
        True when the caller may skip its install path: the command is
        present and no reinstall is forced.

        Raises:
            ValueError: The command name is not a plain executable name.
        """
        if not validate_command_name(command_name, self.app_settings, self.logger):
            raise ValueError(f"Invalid command name: {command_name}")

        installed, version = self.is_installed(command_name, version_args)
        if not installed:
            return False
        if self.context.force:
            log_message(
                f"{self.symbols.get('info', 'ℹ️')} {command_name} is installed (version: {version}), reinstall forced",
                "info",
                self.logger,
                self.app_settings,
            )
            return False
        log_message(
            f"{self.symbols.get('success', '✅')} {command_name} is already installed (version: {version})",
            "success",
            self.logger,
            self.app_settings,
        )
        return True

    # --- downloads -----------------------------------------------------------

    def _check_url(self, url: str) -> None:
        if not self.url_validator(url, self.app_settings, self.logger):
            raise DownloadError(f"URL failed validation: {url}", url=url)

    def download_file(
        self,
        url: str,
        dest_path: Union[str, Path],
        expected_checksum: Optional[str] = None,
    ) -> Path:
        """
        Validate and download a file. Raises DownloadError on a blocked URL,
        exhausted retries or checksum mismatch.
        """
        self._check_url(url)
        return self.downloader(
            url,
            dest_path,
            expected_checksum,
            app_settings=self.app_settings,
            current_logger=self.logger,
        )

    def fetch_text(self, url: str) -> str:
        """GET a small text resource such as a release marker or checksum."""
        self._check_url(url)
        return self.fetcher(url, app_settings=self.app_settings, current_logger=self.logger)

    # --- verification --------------------------------------------------------

    def _smoke_test(
        self,
        command_name: str,
        smoke_test: Optional[Union[str, Sequence[str]]],
        expected_pattern: Optional[str],
    ) -> None:
        if smoke_test is None:
            test_command = [command_name, "--help"]
        elif isinstance(smoke_test, str):
            test_command = shlex.split(smoke_test)
        else:
            test_command = list(smoke_test)

        try:
            result = self.run(
                test_command,
                check=False,
                capture_output=True,
                timeout=self.app_settings.verify_timeout,
                stdin_devnull=True,
                quiet=True,
            )
        except subprocess.TimeoutExpired as e:
            raise VerificationError(
                f"'{' '.join(test_command)}' did not finish within {self.app_settings.verify_timeout}s"
            ) from e
        except OSError as e:
            raise VerificationError(f"'{' '.join(test_command)}' could not run: {e}") from e

        if result.returncode != 0:
            raise VerificationError(
                f"'{' '.join(test_command)}' exited with {result.returncode}"
            )
        if expected_pattern:
            output = f"{result.stdout or ''}\n{result.stderr or ''}"
            if not re.search(expected_pattern, output, re.IGNORECASE):
                raise VerificationError(
                    f"output of '{' '.join(test_command)}' does not mention '{expected_pattern}'"
                )

    def verify_installation(
        self,
        command_name: str,
        smoke_test: Optional[Union[str, Sequence[str]]] = None,
        expected_pattern: Optional[str] = None,
    ) -> bool:
        """
        Re-check that `command_name` is on PATH and run a smoke test.

        A missing command returns False. A smoke test that times out, fails
        or lacks `expected_pattern` is only a warning: slow-starting
        services (dockerd) routinely fail it right after installation.
        """
        if not command_exists(command_name):
            log_message(
                f"{self.symbols.get('error', '❌')} Verification failed: {command_name} not found in PATH",
                "error",
                self.logger,
                self.app_settings,
            )
            return False
        try:
            self._smoke_test(command_name, smoke_test, expected_pattern)
        except VerificationError as e:
            log_message(
                f"{self.symbols.get('warning', '⚠️')} Verification warning for {command_name}: {e}",
                "warning",
                self.logger,
                self.app_settings,
            )
            return True
        log_message(
            f"{self.symbols.get('success', '✅')} Verified {command_name}",
            "debug",
            self.logger,
            self.app_settings,
        )
        return True

    # --- results and log helpers -------------------------------------------

    def log_installation_result(
        self,
        name: str,
        outcome: Outcome,
        version: Optional[str] = None,
        reason: Optional[str] = None,
        section: Optional[str] = None,
    ) -> InstallationResult:
        result = InstallationResult(
            name=name,
            outcome=outcome,
            version=version,
            reason=reason,
            section=section,
        )
        self.context.record(result)
        log_event(
            self.logger,
            "package_result",
            f"Result for {name}: {outcome.value}",
            level=logging.DEBUG,
            package=name,
            outcome=outcome.value,
            section=section,
            version=version,
            reason=reason,
        )
        return result

    def log_install_start(self, name: str) -> None:
        log_message(
            f"{self.symbols.get('package', '📦')} Installing {name}...",
            "info",
            self.logger,
            self.app_settings,
        )

    def log_install_success(self, name: str, version: Optional[str] = None) -> None:
        suffix = f" (version: {version})" if version else ""
        log_message(
            f"{self.symbols.get('success', '✅')} Successfully installed {name}{suffix}",
            "success",
            self.logger,
            self.app_settings,
        )

    def log_install_failure(self, name: str, error: str) -> None:
        log_message(
            f"{self.symbols.get('error', '❌')} Failed to install {name}: {error}",
            "error",
            self.logger,
            self.app_settings,
        )

    def log_install_skip(self, name: str, reason: str) -> None:
        log_message(
            f"{self.symbols.get('skip', '⏭️')}  Skipping {name}: {reason}",
            "info",
            self.logger,
            self.app_settings,
        )

    def log_dry_run(
        self,
        name: str,
        version: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """The single line a dry run prints per selected entry."""
        log_message(
            f"[DRY RUN] Would install: {name} ({version or LATEST}) - {description or ''}".rstrip(" -"),
            "info",
            self.logger,
            self.app_settings,
        )

    # --- the per-package state machine --------------------------------------

    def install_package(
        self,
        installer: "PackageInstaller",
        section: Optional[str] = None,
        required_version: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[InstallationResult]:
        """
        Check, install and verify one package, recording the outcome.

        Returns the recorded result, or None in dry-run mode where nothing is
        recorded.
        """
        name = installer.name
        required = required_version or LATEST

        if self.context.dry_run:
            self.log_dry_run(name, required, description or installer.get_description())
            return None

        self.log_install_start(name)
        try:
            installed, version = installer.is_installed()
            if installed and not self.context.force and (
                required == LATEST or version_compare(version, required)
            ):
                self.log_install_skip(name, f"already installed (version: {version})")
                return self.log_installation_result(
                    name, Outcome.SKIPPED, version, "already installed", section
                )

            installer.install()

            if not installer.verify():
                raise InstallError(
                    f"{installer.command_name or name} is not available after installation"
                )
            _, current_version = installer.is_installed()
            new_version = (
                None if current_version in (NOT_INSTALLED, UNKNOWN) else current_version
            )
            self.log_install_success(name, new_version)
            return self.log_installation_result(
                name, Outcome.SUCCESS, new_version, None, section
            )
        except (
            ProvisioningError,
            subprocess.CalledProcessError,
            subprocess.TimeoutExpired,
            OSError,
        ) as e:
            self.log_install_failure(name, str(e))
            self.logger.debug(f"Failure details for {name}", exc_info=True)
            return self.log_installation_result(
                name, Outcome.FAILURE, None, str(e), section
            )
        except Exception as e:
            # Plugin bugs fail this entry only
            reason = f"{type(e).__name__}: {e}"
            self.log_install_failure(name, reason)
            log_message(
                f"Unexpected error installing {name}",
                "error",
                self.logger,
                self.app_settings,
                exc_info=True,
            )
            return self.log_installation_result(
                name, Outcome.FAILURE, None, reason, section
            )
