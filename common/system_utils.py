# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System information helpers used by the installation report.
"""

import logging
import platform
from pathlib import Path
from typing import Dict, Optional

from setup.config_models import AppSettings

from .command_utils import log_message

module_logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")


def read_os_release(
    os_release_path: Path = OS_RELEASE_PATH,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, str]:
    """Parse /etc/os-release into a dict. Returns an empty dict if unreadable."""
    logger_to_use = current_logger if current_logger else module_logger
    values: Dict[str, str] = {}
    try:
        content = os_release_path.read_text(encoding="utf-8")
    except OSError as e:
        log_message(
            f"Could not read {os_release_path}: {e}",
            "debug",
            logger_to_use,
            app_settings,
        )
        return values
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key] = value.strip().strip('"')
    return values


def is_wsl() -> bool:
    """True when running inside a WSL distribution."""
    return "microsoft" in platform.release().lower()


def get_system_info(
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, str]:
    """
    Collect the system facts printed at the end of the installation report.
    """
    os_release = read_os_release(
        app_settings=app_settings, current_logger=current_logger
    )
    return {
        "OS": os_release.get("PRETTY_NAME", platform.system()),
        "Kernel": platform.release(),
        "Architecture": platform.machine(),
        "Hostname": platform.node(),
        "Python": platform.python_version(),
        "WSL": "yes" if is_wsl() else "no",
    }


# uname -m -> release artifact architecture
ARCHITECTURE_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def get_architecture(machine: Optional[str] = None) -> str:
    """
    Architecture name used by upstream release downloads (``amd64``,
    ``arm64``).

    Raises:
        ValueError: The machine type has no published release artifacts.
    """
    machine = (machine or platform.machine()).lower()
    try:
        return ARCHITECTURE_ALIASES[machine]
    except KeyError:
        raise ValueError(f"Unsupported architecture: {machine}") from None
