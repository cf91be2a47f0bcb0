# installer/dispatcher.py
# -*- coding: utf-8 -*-
"""
The YAML dispatcher: walks a validated manifest section by section and
hands every entry to the installation framework.

Sections run in a fixed order, optionally filtered. Each entry ends up as
exactly one InstallationResult in the run context (none in dry-run mode),
and the run's exit code is derived from those results.
"""

import logging
import shlex
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from common.command_utils import get_symbols, log_message
from common.debian.apt_manager import AptManager, package_argument
from common.logging_config import log_event, log_section
from common.validation import VALID_SECTIONS
from common.version_utils import LATEST, extract_version, version_compare
from installer.base_installer import PackageInstaller, ScriptPackageInstaller
from installer.framework import InstallationFramework
from installer.manifest import Manifest, PackageSpec, order_by_dependencies
from installer.registry import InstallerRegistry
from installer.report import write_installation_report
from installer.run_context import Outcome, RunContext
from installer.section_installers import (
    NixFlakeInstaller,
    NixPackageInstaller,
    PowerShellModuleInstaller,
    PythonPackageInstaller,
)

module_logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURES = 1
EXIT_INVALID = 2

SECTION_TITLES = {
    "prerequisites": "Installing Prerequisites",
    "apt_packages": "Installing APT Packages",
    "shell_setup": "Running Shell Setup",
    "custom_software": "Installing Custom Software",
    "python_packages": "Installing Python Packages",
    "powershell_modules": "Installing PowerShell Modules",
    "nix_packages": "Installing Nix Packages",
    "configurations": "Running Configurations",
}


class Dispatcher:
    """
    Runs one manifest through the installation framework.

    Args:
        context: The run context that collects results.
        manifest: A manifest already checked by installer.manifest.load_manifest.
        project_root: Directory that script paths are relative to.
        framework: The framework to install through; built from the context
            when omitted.
        sections: Sections to run, in any order; None runs all of them.
        run_apt_upgrade: Upgrade installed packages before the first section.
        apt_manager_factory: Builds the AptManager on first use, so dry runs
            and hosts without apt never need one.
        config_path: Manifest location, for the report.
        report_dir: Where the version report goes; None skips the report.
    """

    def __init__(
        self,
        context: RunContext,
        manifest: Manifest,
        project_root: Path,
        framework: Optional[InstallationFramework] = None,
        sections: Optional[Sequence[str]] = None,
        run_apt_upgrade: bool = False,
        apt_manager_factory: Callable[..., AptManager] = AptManager,
        config_path: Optional[Path] = None,
        report_dir: Optional[Path] = None,
    ):
        self.context = context
        self.manifest = manifest
        self.project_root = Path(project_root)
        self.framework = framework if framework is not None else InstallationFramework(context)
        self.app_settings = context.app_settings
        self.logger = context.logger or module_logger
        self.symbols = get_symbols(self.app_settings)
        requested = set(sections) if sections else set(VALID_SECTIONS)
        self.sections = [s for s in VALID_SECTIONS if s in requested]
        self.run_apt_upgrade = run_apt_upgrade
        self.apt_manager_factory = apt_manager_factory
        self.config_path = config_path
        self.report_dir = report_dir
        self._apt_manager: Optional[AptManager] = None
        self._package_lists_updated = False
        self._stopped = False

    # --- helpers ----------------------------------------------------------------

    @property
    def apt_manager(self) -> AptManager:
        if self._apt_manager is None:
            self._apt_manager = self.apt_manager_factory(logger=self.logger)
        return self._apt_manager

    def _ensure_package_lists(self) -> None:
        if not self._package_lists_updated:
            self.apt_manager.update(self.app_settings)
            self._package_lists_updated = True

    def _should_stop(self) -> bool:
        if self._stopped:
            return True
        if not self.manifest.settings.continue_on_error and self.context.has_failures():
            log_message(
                f"{self.symbols.get('error', '❌')} Stopping after the first failure (continue_on_error is false)",
                "error",
                self.logger,
                self.app_settings,
            )
            self._stopped = True
        return self._stopped

    def _record_disabled(self, section: str, name: str) -> None:
        if self.context.dry_run:
            log_message(f"Skipping disabled entry: {name}", "debug", self.logger, self.app_settings)
            return
        self.framework.log_install_skip(name, "disabled")
        self.framework.log_installation_result(
            name, Outcome.SKIPPED, reason="disabled", section=section
        )

    def _run_installers(
        self, section: str, entries: List[PackageSpec], build: Callable[[PackageSpec], PackageInstaller]
    ) -> None:
        for spec in entries:
            if self._should_stop():
                return
            if not spec.enabled:
                self._record_disabled(section, spec.name)
                continue
            self.framework.install_package(
                build(spec), section, spec.version, spec.description
            )

    # --- sections ---------------------------------------------------------------

    def process_apt_section(self, section: str) -> None:
        """
        Install a section of apt packages in one batched apt-get call,
        retrying one by one when the batch fails.
        """
        specs = self.manifest.entries(section)
        enabled = []
        for spec in specs:
            if spec.enabled:
                enabled.append(spec)
            else:
                self._record_disabled(section, spec.name)

        if not enabled:
            log_message(f"No {section} defined", "info", self.logger, self.app_settings)
            return
        if self.context.dry_run:
            for spec in enabled:
                self.framework.log_dry_run(spec.name, spec.version, spec.description)
            return

        pending: List[PackageSpec] = []
        for spec in enabled:
            installed_version = self.apt_manager.get_installed_version(spec.name, self.app_settings)
            acceptable = installed_version is not None and (
                spec.version == LATEST
                or version_compare(extract_version(installed_version) or installed_version, spec.version)
            )
            if acceptable and not self.context.force:
                self.framework.log_install_skip(
                    spec.name, f"already installed (version: {installed_version})"
                )
                self.framework.log_installation_result(
                    spec.name, Outcome.SKIPPED, installed_version, "already installed", section
                )
            else:
                pending.append(spec)

        if not pending:
            return

        self._ensure_package_lists()
        if self.apt_manager.install(
            [package_argument(spec.name, spec.version) for spec in pending],
            self.app_settings,
        ):
            for spec in pending:
                self._record_apt_success(section, spec)
            return

        log_message(
            f"{self.symbols.get('warning', '⚠️')} Batched apt install failed; retrying {len(pending)} package(s) individually",
            "warning",
            self.logger,
            self.app_settings,
        )
        for spec in pending:
            if self._should_stop():
                return
            self.framework.log_install_start(spec.name)
            if self.apt_manager.install(
                [package_argument(spec.name, spec.version)], self.app_settings
            ):
                self._record_apt_success(section, spec)
            else:
                self.framework.log_install_failure(spec.name, "apt-get install failed")
                self.framework.log_installation_result(
                    spec.name, Outcome.FAILURE, reason="apt-get install failed", section=section
                )

    def _record_apt_success(self, section: str, spec: PackageSpec) -> None:
        version = self.apt_manager.get_installed_version(spec.name, self.app_settings)
        self.framework.log_install_success(spec.name, version)
        self.framework.log_installation_result(
            spec.name, Outcome.SUCCESS, version, None, section
        )

    def _build_custom_installer(self, spec: PackageSpec) -> PackageInstaller:
        version_args = shlex.split(spec.version_flag) if spec.version_flag else None
        if spec.installer:
            installer = InstallerRegistry.get_installer(spec.installer)(self.framework)
            installer.name = spec.name
            if spec.description:
                installer.description = spec.description
            if spec.command:
                installer.command_name = spec.command
            if version_args:
                installer.version_args = version_args
            installer.required_version = spec.version
            return installer
        return ScriptPackageInstaller(
            self.framework,
            spec.name,
            script_path=self.project_root / spec.script,
            command_name=spec.command,
            version_args=version_args,
            description=spec.description,
        )

    def _build_script_installer(self, spec: PackageSpec) -> PackageInstaller:
        if spec.script_is_file:
            return ScriptPackageInstaller(
                self.framework,
                spec.name,
                script_path=self.project_root / spec.script,
                command_name=spec.command,
                description=spec.description,
            )
        return ScriptPackageInstaller(
            self.framework,
            spec.name,
            inline_script=spec.script,
            command_name=spec.command,
            description=spec.description,
        )

    def _with_plugin_dependencies(self, specs: List[PackageSpec]) -> List[PackageSpec]:
        """
        Add the dependencies a plugin declares in its registry metadata to
        the entry's depends_on, naming the entries that use those plugins.
        """
        entry_for_installer = {s.installer: s.name for s in specs if s.installer}
        merged = []
        for spec in specs:
            if not spec.installer:
                merged.append(spec)
                continue
            try:
                plugin_deps = InstallerRegistry.resolve_dependencies([spec.installer])[:-1]
            except (KeyError, ValueError) as e:
                log_message(
                    f"Cannot resolve installer dependencies of {spec.name}: {e}",
                    "warning",
                    self.logger,
                    self.app_settings,
                )
                merged.append(spec)
                continue
            extra = [
                entry_for_installer.get(dep, dep)
                for dep in plugin_deps
                if entry_for_installer.get(dep, dep) not in spec.depends_on
            ]
            if extra:
                spec = spec.model_copy(update={"depends_on": list(spec.depends_on) + extra})
            merged.append(spec)
        return merged

    def process_custom_software(self) -> None:
        specs = self.manifest.entries("custom_software")
        ordered = order_by_dependencies(
            self._with_plugin_dependencies([s for s in specs if s.enabled]),
            self.app_settings,
            self.logger,
        )
        # Disabled entries keep their manifest position at the front
        disabled = [s for s in specs if not s.enabled]
        self._run_installers("custom_software", disabled + ordered, self._build_custom_installer)

    def process_script_section(self, section: str) -> None:
        self._run_installers(section, self.manifest.entries(section), self._build_script_installer)

    def process_python_packages(self) -> None:
        self._run_installers(
            "python_packages",
            self.manifest.entries("python_packages"),
            lambda spec: PythonPackageInstaller(
                self.framework, spec.name, spec.version, spec.description
            ),
        )

    def process_powershell_modules(self) -> None:
        self._run_installers(
            "powershell_modules",
            self.manifest.entries("powershell_modules"),
            lambda spec: PowerShellModuleInstaller(
                self.framework, spec.name, spec.version, spec.description
            ),
        )

    def process_nix_packages(self) -> None:
        if not self.manifest.nix_packages:
            log_message("No nix_packages defined", "info", self.logger, self.app_settings)
            return
        for entry in self.manifest.nix_packages:
            installers: List[PackageInstaller] = []
            flake = entry.flake
            if flake is not None:
                if flake.enabled:
                    source = flake.source
                    if flake.type == "local":
                        source = str((self.project_root / flake.source).resolve())
                    installers.append(
                        NixFlakeInstaller(
                            self.framework, flake.description, source, flake.description
                        )
                    )
                else:
                    self._record_disabled("nix_packages", flake.description)
            if entry.packages is not None:
                for item in entry.packages.items:
                    if not entry.packages.enabled:
                        self._record_disabled("nix_packages", item.name)
                        continue
                    installers.append(
                        NixPackageInstaller(
                            self.framework, item.name, item.package, item.description
                        )
                    )
            for installer in installers:
                if self._should_stop():
                    return
                self.framework.install_package(
                    installer, "nix_packages", LATEST, installer.description
                )

    def _section_handlers(self) -> Dict[str, Callable[[], None]]:
        return {
            "prerequisites": lambda: self.process_apt_section("prerequisites"),
            "apt_packages": lambda: self.process_apt_section("apt_packages"),
            "shell_setup": lambda: self.process_script_section("shell_setup"),
            "custom_software": self.process_custom_software,
            "python_packages": self.process_python_packages,
            "powershell_modules": self.process_powershell_modules,
            "nix_packages": self.process_nix_packages,
            "configurations": lambda: self.process_script_section("configurations"),
        }

    # --- run --------------------------------------------------------------------

    def log_header(self) -> None:
        metadata = self.manifest.metadata
        log_section(self.logger, f"{self.symbols.get('rocket', '🚀')} {metadata.name}")
        if metadata.description:
            self.logger.info(f"Description: {metadata.description}")
        self.logger.info(f"Configuration version: {metadata.version}")
        if metadata.author:
            self.logger.info(f"Author: {metadata.author}")
        if metadata.support_url:
            self.logger.info(f"Support: {metadata.support_url}")
        self.logger.info(f"Run ID: {self.context.run_id}")
        if self.context.dry_run:
            self.logger.info("Mode: DRY RUN (nothing will be installed)")
        if self.context.force:
            self.logger.info("Mode: FORCE (installed packages are reinstalled)")

    def prepare_system(self) -> None:
        if self.context.dry_run or not self.run_apt_upgrade:
            return
        log_section(self.logger, "Upgrading System Packages")
        self._ensure_package_lists()
        if not self.apt_manager.upgrade(self.app_settings):
            log_message(
                f"{self.symbols.get('warning', '⚠️')} System upgrade failed; continuing with installation",
                "warning",
                self.logger,
                self.app_settings,
            )

    def cleanup(self) -> None:
        if self.context.dry_run or not self.manifest.settings.cleanup_after_install:
            return
        if self._apt_manager is None:
            return
        log_section(self.logger, "Cleaning Up")
        self.apt_manager.autoremove(self.app_settings)
        self.apt_manager.autoclean(self.app_settings)

    def log_summary(self) -> None:
        context = self.context
        log_section(self.logger, "Installation Summary")
        self.logger.info(f"Total items processed: {context.total_processed}")
        self.logger.info(f"Successful installations: {len(context.successful)}")
        self.logger.info(f"Failed installations: {context.failure_count}")
        self.logger.info(f"Skipped: {len(context.skipped)}")

        if context.successful:
            self.logger.info("Successful installations:")
            for result in context.successful:
                self.logger.info(f"  {self.symbols.get('success', '✅')} {result.describe()}")
        if context.skipped:
            self.logger.info("Skipped:")
            for result in context.skipped:
                self.logger.info(f"  {self.symbols.get('skip', '⏭️')} {result.describe()}")
        if context.failed:
            self.logger.error("Failed installations:")
            for result in context.failed:
                self.logger.error(f"  {self.symbols.get('error', '❌')} {result.describe()}")

        log_event(
            self.logger,
            "summary",
            f"Summary for run {context.run_id}",
            level=logging.DEBUG,
            total=context.total_processed,
            successful=len(context.successful),
            failed=context.failure_count,
            skipped=len(context.skipped),
        )

    def exit_code(self) -> int:
        if self.context.dry_run or not self.context.has_failures():
            return EXIT_SUCCESS
        return EXIT_FAILURES

    def run(self) -> int:
        """Process the selected sections and return the run's exit code."""
        self.log_header()
        log_event(
            self.logger,
            "run_started",
            f"Installation run {self.context.run_id} started",
            level=logging.DEBUG,
            sections=self.sections,
            dry_run=self.context.dry_run,
            force=self.context.force,
        )
        self.prepare_system()

        handlers = self._section_handlers()
        total = len(self.sections)
        for index, section in enumerate(self.sections):
            if self._should_stop():
                log_message(
                    f"Skipping remaining sections: {', '.join(self.sections[index:])}",
                    "warning",
                    self.logger,
                    self.app_settings,
                )
                break
            log_section(self.logger, SECTION_TITLES[section])
            log_event(
                self.logger,
                "section_started",
                f"Section {section} ({index + 1}/{total})",
                level=logging.DEBUG,
                section=section,
                index=index + 1,
                total=total,
                progress=int(index * 100 / total),
            )
            handlers[section]()

        self.cleanup()
        self.context.close()
        self.log_summary()

        if self.report_dir is not None and not self.context.dry_run:
            write_installation_report(
                self.context,
                self.manifest,
                self.report_dir,
                apt_manager=self._apt_manager,
                config_path=self.config_path,
                current_logger=self.logger,
            )

        code = self.exit_code()
        if code == EXIT_SUCCESS:
            log_message(
                f"{self.symbols.get('sparkles', '✨')} Installation completed successfully",
                "success",
                self.logger,
                self.app_settings,
            )
        else:
            log_message(
                f"{self.symbols.get('error', '❌')} Installation completed with {self.context.failure_count} failure(s)",
                "error",
                self.logger,
                self.app_settings,
            )
        log_event(
            self.logger,
            "run_finished",
            f"Installation run {self.context.run_id} finished with exit code {code}",
            level=logging.DEBUG,
            exit_code=code,
            failed=self.context.failure_count,
            total=self.context.total_processed,
        )
        return code
