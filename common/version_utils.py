# common/version_utils.py
# -*- coding: utf-8 -*-
"""
Command presence and version probing.

Versions are reported as strings: the extracted version number,
``UNKNOWN`` when the command exists but no version could be read, or
``NOT_INSTALLED``.
"""

import logging
import re
import subprocess
from typing import List, Optional, Sequence, Tuple, Union

from setup.config_models import VERSION_TIMEOUT_DEFAULT, AppSettings

from .command_utils import command_exists, log_message, run_command

module_logger = logging.getLogger(__name__)

NOT_INSTALLED = "NOT_INSTALLED"
UNKNOWN = "UNKNOWN"
LATEST = "latest"

VERSION_PATTERN = re.compile(r"[0-9]+\.[0-9]+(?:\.[0-9]+)*")

# Tools whose version is not printed by ``--version``
VERSION_ARGS_BY_COMMAND = {
    "go": ["version"],
    "kubectl": ["version", "--client"],
    "helm": ["version", "--short"],
    "terraform": ["version"],
    "tofu": ["version"],
}
DEFAULT_VERSION_ARGS = ["--version"]


def extract_version(output: Optional[str]) -> Optional[str]:
    """Return the first dotted version number in `output`, if any."""
    if not output:
        return None
    match = VERSION_PATTERN.search(output)
    return match.group(0) if match else None


def default_version_args(command_name: str) -> List[str]:
    return list(VERSION_ARGS_BY_COMMAND.get(command_name, DEFAULT_VERSION_ARGS))


def get_command_version(
    command_name: str,
    version_args: Optional[Union[str, Sequence[str]]] = None,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Ask a command for its version.

    Args:
        command_name: Executable to look up on PATH.
        version_args: Arguments that make the command print its version.
            A string is split on whitespace. Defaults depend on the command
            (``go version``, ``kubectl version --client``, ...).
        app_settings: Settings providing the version check timeout.
        current_logger: Optional logger instance.

    Returns:
        The version, ``UNKNOWN`` or ``NOT_INSTALLED``.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if not command_exists(command_name):
        return NOT_INSTALLED

    if version_args is None:
        args = default_version_args(command_name)
    elif isinstance(version_args, str):
        args = version_args.split()
    else:
        args = list(version_args)

    timeout = (
        app_settings.version_timeout if app_settings else VERSION_TIMEOUT_DEFAULT
    )
    try:
        result = run_command(
            [command_name, *args],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
            timeout=timeout,
            stdin_devnull=True,
            quiet=True,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        log_message(
            f"Could not read version of {command_name}: {e}",
            "debug",
            logger_to_use,
            app_settings,
        )
        return UNKNOWN

    version = extract_version(f"{result.stdout or ''}\n{result.stderr or ''}")
    return version if version else UNKNOWN


def _version_key(version: str) -> Tuple[Tuple[int, Union[int, str]], ...]:
    """
    Natural sort key, comparable to ``sort -V``: digit runs compare
    numerically and sort before text at the same position.
    """
    parts = re.findall(r"\d+|[A-Za-z]+", version)
    key = []
    for part in parts:
        if part.isdigit():
            key.append((1, int(part)))
        else:
            key.append((0, part))
    return tuple(key)


def version_compare(installed: Optional[str], required: Optional[str]) -> bool:
    """
    Return True when `installed` satisfies `required`.

    ``NOT_INSTALLED`` and ``UNKNOWN`` never satisfy anything. A required
    version of ``latest`` (or empty) is satisfied by any installed version.
    Otherwise the installed version must be greater than or equal to the
    required one. A leading ``v`` is ignored on both sides.
    """
    if not installed or installed in (NOT_INSTALLED, UNKNOWN):
        return False
    if not required or required == LATEST:
        return True
    return _version_key(installed.lstrip("vV")) >= _version_key(
        required.lstrip("vV")
    )
