# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing shell commands and logging their output.
"""

import logging
import os
import shutil
import subprocess
from typing import Dict, List, Optional, Union

from common.logging_config import SUCCESS_LEVEL
from setup.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)


def log_message(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a message at a named level on the given logger.

    Args:
        message (str): The log message to be recorded.
        level (str): "debug", "info", "success", "warning", "error" or
            "critical". Anything else is logged at info.
        current_logger (Optional[logging.Logger]): A logger instance to use for logging. If not provided,
            a module-level logger will be used.
        app_settings (Optional[AppSettings]): Optional application settings that can influence logging behavior.
        exc_info (bool): Indicator to include exception details in the log. By default, this is set to False.

    Returns:
        None
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    elif level == "success":
        effective_logger.log(SUCCESS_LEVEL, message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def get_symbols(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    """Symbols from the settings, or the defaults when none are available."""
    if app_settings is not None and getattr(app_settings, "symbols", None):
        return app_settings.symbols
    return SYMBOLS_DEFAULT


def get_elevated_command_prefix() -> List[str]:
    """
    Determines the command prefix that ensures elevated privileges when required.

    Returns:
        List[str]: ["sudo"] if the effective user is not root, otherwise an
        empty list.
    """
    return [] if os.geteuid() == 0 else ["sudo"]


def run_command(
    command: Union[List[str], str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    shell: bool = False,
    capture_output: bool = False,
    text: bool = True,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    stdin_devnull: bool = False,
    quiet: bool = False,
) -> subprocess.CompletedProcess:
    """
    Executes a system command and logs the process details and results.

    Args:
        command (Union[List[str], str]): The system command to execute. This can be
            provided as a string or a list of strings. If shell mode is enabled and
            the input is a list, elements will be joined into a single string.
        app_settings (Optional[AppSettings]): Settings providing the logging symbols.
        check (bool): Whether to raise a CalledProcessError when a non-zero exit code is returned.
        shell (bool): If True, the system command will be executed in a shell. Defaults to False.
        capture_output (bool): Whether to capture standard output and standard error. Defaults to False.
        text (bool): Indicates if the output streams should be interpreted as text. Defaults to True.
        cmd_input (Optional[str]): Input to be passed to the command's standard input. The input
            is never logged, so it is the channel for secrets.
        current_logger (Optional[logging.Logger]): A logger to use for logging details.
        cwd (Optional[str]): The working directory for the command.
        env (Optional[Dict[str, str]]): Environment for the command. Defaults to the inherited one.
        timeout (Optional[float]): Seconds before the command is killed and TimeoutExpired raised.
        stdin_devnull (bool): Attach /dev/null to stdin so prompts can never block.
        quiet (bool): Log the "Executing" line and output at debug level only.

    Returns:
        subprocess.CompletedProcess: The completed process instance.

    Raises:
        subprocess.CalledProcessError: Non-zero exit while `check` is True.
        subprocess.TimeoutExpired: The command ran longer than `timeout`.
        FileNotFoundError: The executable is not on PATH.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    detail_level = "debug" if quiet else "info"
    command_to_log_str: str
    command_to_run: Union[List[str], str]

    if shell:
        if isinstance(command, list):
            command_to_run = " ".join(command)
        else:
            command_to_run = command
        command_to_log_str = str(command_to_run)
    else:
        if isinstance(command, str):
            log_message(
                f"{symbols.get('warning', '!')} Running string command '{command}' without shell=True. Consider list format.",
                "warning",
                effective_logger,
                app_settings,
            )
            command_to_run = command.split()
            command_to_log_str = command
        else:
            command_to_run = command
            command_to_log_str = subprocess.list2cmdline(command)

    log_message(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}".rstrip(),
        detail_level,
        effective_logger,
        app_settings,
    )
    try:
        result = subprocess.run(
            command_to_run,
            check=check,
            shell=shell,
            capture_output=capture_output,
            text=text,
            input=cmd_input,
            stdin=subprocess.DEVNULL if stdin_devnull and cmd_input is None else None,
            cwd=cwd,
            env=env,
            timeout=timeout,
        )
        if capture_output and text:
            if result.stdout and result.stdout.strip():
                log_message(
                    f"   stdout: {result.stdout.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
            if result.stderr and result.stderr.strip():
                log_message(
                    f"   stderr: {result.stderr.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
        return result
    except subprocess.CalledProcessError as e:
        stdout_info = (
            e.stdout.strip()
            if e.stdout and hasattr(e.stdout, "strip")
            else "N/A"
        )
        stderr_info = (
            e.stderr.strip()
            if e.stderr and hasattr(e.stderr, "strip")
            else "N/A"
        )
        cmd_executed_str = (
            subprocess.list2cmdline(e.cmd)
            if isinstance(e.cmd, list)
            else str(e.cmd)
        )

        log_message(
            f"{symbols.get('error', '❌')} Command `{cmd_executed_str}` failed (rc {e.returncode}).",
            "error",
            effective_logger,
            app_settings,
        )
        if stdout_info != "N/A":
            log_message(
                f"   stdout: {stdout_info}",
                "error",
                effective_logger,
                app_settings,
            )
        if stderr_info != "N/A":
            log_message(
                f"   stderr: {stderr_info}",
                "error",
                effective_logger,
                app_settings,
            )
        raise
    except subprocess.TimeoutExpired:
        log_message(
            f"{symbols.get('warning', '!')} Command `{command_to_log_str}` timed out after {timeout}s.",
            "warning",
            effective_logger,
            app_settings,
        )
        raise
    except FileNotFoundError as e:
        log_message(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "error",
            effective_logger,
            app_settings,
        )
        raise


def run_elevated_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    stdin_devnull: bool = False,
) -> subprocess.CompletedProcess:
    """
    Executes a command with root privileges, prefixing it with sudo when the
    current process is not already root.

    sudo resets the environment, so callers that need variables inside the
    elevated process pass them on the command line (``env VAR=value cmd``)
    rather than through `env`.

    Returns:
        subprocess.CompletedProcess
            The result of the command execution, containing the return code, stdout, and stderr.

    Raises:
        subprocess.CalledProcessError
            Raised if check is True and the executed command returns an error.
    """
    prefix = get_elevated_command_prefix()
    elevated_command_list = prefix + list(command)
    return run_command(
        elevated_command_list,
        app_settings,
        check=check,
        shell=False,
        capture_output=capture_output,
        text=True,
        cmd_input=cmd_input,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
        timeout=timeout,
        stdin_devnull=stdin_devnull,
    )


def command_exists(command_name: str) -> bool:
    """
    Check if a command exists in the system's PATH.

    Parameters:
        command_name (str): The name of the command to check for existence.

    Returns:
        bool: True if the command is found in the system's PATH, False otherwise.
    """
    return shutil.which(command_name) is not None
