# provisioner/wsl_provisioner.py
# -*- coding: utf-8 -*-
"""
Host-side provisioning flow.

A provisioning run is a short list of Orchestrator tasks:

1. validate every value that will cross into WSL (fatal),
2. make sure the distribution exists, resetting it on request (fatal),
3. run the installation inside the distribution while following its log
   and event files from the host (fatal),
4. terminate the distribution (non-fatal),
5. optionally create the default user (non-fatal).

Validation happens before the first wsl.exe call, so a bad argument never
reaches a process.
"""

import concurrent.futures
import getpass
import logging
import subprocess
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from common.command_utils import get_symbols, log_message
from common.errors import ValidationError
from common.file_utils import REQUIRED_ENTRY_POINT
from common.orchestrator import Orchestrator
from common.security import validate_username
from common.validation import (
    validate_dispatcher_arguments,
    validate_distribution_name,
    validate_log_level,
    validate_run_id,
)
from installer.dispatcher import EXIT_FAILURES, EXIT_INVALID, EXIT_SUCCESS
from installer.run_context import generate_run_id
from provisioner.log_monitor import LogMonitor
from provisioner.runner import destination_log_paths
from provisioner.user_setup import WslUserBootstrapper, WSLUserSpec, resolve_password
from provisioner.wsl_client import WslClient, to_wsl_path
from setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

RUNNER_SCRIPT = "run_installation.py"
TEMP_DIR_TEMPLATE = "/tmp/wsl-install-{run_id}"
OUTPUT_TAIL_LINES = 20


class ProvisionOptions(BaseModel):
    """What the host CLI asked for."""

    distribution: str
    install_path: Path
    dispatcher_args: List[str] = Field(default_factory=list)
    run_direct: bool = False
    reset_wsl: bool = False
    auto_install: bool = False
    force: bool = False
    username: Optional[str] = None
    log_level: Optional[str] = None


def _tail(text: Optional[str], lines: int = OUTPUT_TAIL_LINES) -> List[str]:
    if not text:
        return []
    return text.strip().splitlines()[-lines:]


class WslProvisioner:
    """Runs one provisioning session against a WSL distribution."""

    def __init__(
        self,
        options: ProvisionOptions,
        app_settings: AppSettings,
        run_id: Optional[str] = None,
        wsl_client: Optional[WslClient] = None,
        monitor_factory: Callable[..., LogMonitor] = LogMonitor,
        password_resolver: Callable[..., Optional[str]] = resolve_password,
        current_logger: Optional[logging.Logger] = None,
    ):
        self.options = options
        self.app_settings = app_settings
        self.run_id = run_id or generate_run_id()
        self.logger = current_logger if current_logger else module_logger
        self.symbols = get_symbols(app_settings)
        self.wsl = (
            wsl_client if wsl_client is not None else WslClient(app_settings, current_logger=self.logger)
        )
        self.monitor_factory = monitor_factory
        self.password_resolver = password_resolver
        self.exit_code: Optional[int] = None
        self.run_finished: Optional[Dict[str, Any]] = None

    # --- derived values -----------------------------------------------------

    @property
    def wsl_root(self) -> str:
        return to_wsl_path(self.options.install_path)

    @property
    def host_log_paths(self) -> Tuple[Path, Path]:
        return destination_log_paths(
            self.options.install_path / self.app_settings.logs_dir, self.run_id
        )

    def dispatcher_arguments(self) -> List[str]:
        """Forwarded arguments plus --force/--log-level from the host CLI."""
        args = list(self.options.dispatcher_args)
        if self.options.force and not {"-f", "--force"} & set(args):
            args.append("--force")
        if self.options.log_level and not any(
            a in ("-l", "--log-level") or a.startswith("--log-level=") for a in args
        ):
            args += ["--log-level", self.options.log_level]
        return args

    def build_command(self) -> Tuple[List[str], Dict[str, str]]:
        """The Linux-side command line and environment for this run."""
        python = self.app_settings.wsl.python_command
        root = PurePosixPath(self.wsl_root)
        args = self.dispatcher_arguments()
        if self.options.run_direct:
            command = [python, str(root / REQUIRED_ENTRY_POINT)] + args
            env = {
                "WSL_INSTALL_RUN_ID": self.run_id,
                "WSL_INSTALL_SOURCE_DIR": str(root),
            }
        else:
            log_dir = root / PurePosixPath(self.app_settings.logs_dir.as_posix())
            command = [
                python,
                str(root / RUNNER_SCRIPT),
                TEMP_DIR_TEMPLATE.format(run_id=self.run_id),
                self.run_id,
                str(log_dir),
            ] + args
            env = {"WSL_INSTALL_RUN_ID": self.run_id}
        return command, env

    # --- tasks --------------------------------------------------------------

    def validate(self, context: Dict[str, Any], app_settings: AppSettings) -> bool:
        """
        Check everything that crosses the host/WSL boundary.

        Raises:
            ValidationError: On the first rejected value.
        """
        validate_run_id(self.run_id)
        validate_distribution_name(self.options.distribution)
        validate_dispatcher_arguments(self.options.dispatcher_args, app_settings, self.logger)
        if self.options.log_level:
            validate_log_level(self.options.log_level)
        if self.options.username and not validate_username(
            self.options.username, app_settings, self.logger
        ):
            raise ValidationError(f"Invalid username: {self.options.username!r}", field="username")
        entry_point = self.options.install_path / REQUIRED_ENTRY_POINT
        if not entry_point.is_file():
            raise ValidationError(
                f"{REQUIRED_ENTRY_POINT} not found under install path {self.options.install_path}",
                field="install_path",
            )
        return True

    def prepare_distribution(self, context: Dict[str, Any], app_settings: AppSettings) -> bool:
        name = self.options.distribution
        if self.options.reset_wsl:
            log_message(
                f"{self.symbols.get('warning', '⚠️')} Resetting WSL distribution {name}",
                "warning",
                self.logger,
                app_settings,
            )
            if self.wsl.distribution_exists(name) and not self.wsl.unregister(name):
                log_message(f"Failed to unregister {name}", "error", self.logger, app_settings)
                return False
            return self.wsl.install(name)
        if self.wsl.distribution_exists(name):
            log_message(f"Using existing distribution {name}", "info", self.logger, app_settings)
            return True
        log_message(
            f"{self.symbols.get('package', '📦')} Distribution {name} not found, installing it",
            "info",
            self.logger,
            app_settings,
        )
        return self.wsl.install(name)

    def run_installation(self, context: Dict[str, Any], app_settings: AppSettings) -> bool:
        """
        Run the installation in a worker thread and follow its logs until
        the process exits. The process exit code decides success.
        """
        command, env = self.build_command()
        log_path, event_path = self.host_log_paths
        monitor = self.monitor_factory(
            log_path, event_path, app_settings=app_settings, current_logger=self.logger
        )
        log_message(
            f"{self.symbols.get('rocket', '🚀')} Starting installation {self.run_id} in "
            f"{self.options.distribution} ({'direct' if self.options.run_direct else 'temp copy'} mode)",
            "info",
            self.logger,
            app_settings,
        )
        log_message(f"Host log file: {log_path}", "info", self.logger, app_settings)

        with concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="wsl-install") as executor:
            future = executor.submit(
                self.wsl.run_in_distribution,
                self.options.distribution,
                command,
                env=env,
                capture_output=True,
            )
            while True:
                try:
                    result: subprocess.CompletedProcess = future.result(
                        timeout=app_settings.wsl.poll_interval
                    )
                    break
                except concurrent.futures.TimeoutError:
                    monitor.poll()
        monitor.finish()

        self.exit_code = result.returncode
        self.run_finished = monitor.run_finished
        context["exit_code"] = self.exit_code
        context["run_finished"] = self.run_finished

        if self.run_finished is not None:
            log_message(
                f"Installation reported {self.run_finished.get('failed', 0)} failed of "
                f"{self.run_finished.get('total', 0)} items",
                "info",
                self.logger,
                app_settings,
            )
        if self.exit_code == EXIT_SUCCESS:
            log_message(
                f"{self.symbols.get('success', '✅')} Installation completed successfully",
                "success",
                self.logger,
                app_settings,
            )
            return True

        log_message(
            f"{self.symbols.get('error', '❌')} Installation failed with exit code {self.exit_code}",
            "error",
            self.logger,
            app_settings,
        )
        for line in _tail(result.stdout) + _tail(result.stderr):
            log_message(f"   {line}", "error", self.logger, app_settings)
        return False

    def terminate(self, context: Dict[str, Any], app_settings: AppSettings) -> bool:
        return self.wsl.terminate(self.options.distribution)

    def bootstrap_user(self, context: Dict[str, Any], app_settings: AppSettings) -> bool:
        username = self.options.username or getpass.getuser().lower()
        if not validate_username(username, app_settings, self.logger):
            return False
        password = self.password_resolver(app_settings, username)
        if password is None:
            log_message(
                f"{self.symbols.get('warning', '⚠️')} No password available (set WSL_DEFAULT_PASSWORD); "
                "skipping default user setup",
                "warning",
                self.logger,
                app_settings,
            )
            return True
        spec = WSLUserSpec(username=username, password=password, shell=app_settings.wsl.default_shell)
        bootstrapper = WslUserBootstrapper(
            self.wsl, self.options.distribution, app_settings, current_logger=self.logger
        )
        return bootstrapper.bootstrap(spec)

    # --- entry point --------------------------------------------------------

    def build_orchestrator(self) -> Orchestrator:
        orchestrator = Orchestrator(self.app_settings, self.logger)
        orchestrator.add_task("Validate arguments", self.validate, fatal=True)
        orchestrator.add_task("Prepare distribution", self.prepare_distribution, fatal=True)
        orchestrator.add_task("Run installation", self.run_installation, fatal=True)
        orchestrator.add_task("Terminate distribution", self.terminate, fatal=False)
        if self.options.auto_install:
            orchestrator.add_task("Bootstrap default user", self.bootstrap_user, fatal=False)
        return orchestrator

    def provision(self) -> int:
        """
        Returns:
            0 on success, the installation's own exit code when it failed,
            2 when validation rejected the request, 1 for any other failure.
        """
        orchestrator = self.build_orchestrator()
        if orchestrator.run():
            return EXIT_SUCCESS
        if isinstance(orchestrator.fatal_error, ValidationError):
            return EXIT_INVALID
        if self.exit_code:
            return self.exit_code
        return EXIT_FAILURES
