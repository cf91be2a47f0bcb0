# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: staging the project into a temp directory
and cleaning it up afterwards.
"""

import fnmatch
import logging
import shutil
import stat
from pathlib import Path
from typing import Iterable, List, Optional, Union

from setup.config_models import AppSettings

from .command_utils import get_symbols, log_message
from .errors import ValidationError
from .security import validate_path

module_logger = logging.getLogger(__name__)

STAGING_EXCLUDES = (
    ".git",
    "docs",
    "examples",
    "logs",
    "*.md",
    ".vscode",
    "node_modules",
    "__pycache__",
    "*.pyc",
    "*.tmp",
    "*.log",
    ".venv",
    ".pytest_cache",
)

# The dispatcher entry point that must be present in any staged tree
REQUIRED_ENTRY_POINT = "install.py"


def _ignore_patterns(patterns: Iterable[str]):
    pattern_list = list(patterns)

    def _ignore(_directory: str, names: List[str]) -> List[str]:
        return [
            name
            for name in names
            if any(fnmatch.fnmatch(name, pattern) for pattern in pattern_list)
        ]

    return _ignore


def copy_tree_to_temp(
    source_dir: Union[str, Path],
    temp_dir: Union[str, Path],
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    excludes: Iterable[str] = STAGING_EXCLUDES,
) -> Path:
    """
    Copy the project tree into a Linux-side temp directory.

    Running from the Windows mount is slow, so the dispatcher runs from this
    copy. A stale directory at `temp_dir` is removed first. Documentation,
    logs, VCS data and caches are not copied. Shell scripts are marked
    executable.

    Args:
        source_dir: The project root. Must contain install.py.
        temp_dir: Target directory, owned exclusively by one run.
        app_settings: Settings providing the logging symbols.
        current_logger: Optional logger instance.
        excludes: Glob patterns matched against each file or directory name.

    Returns:
        The temp directory path.

    Raises:
        ValidationError: temp_dir fails the path allow-list.
        FileNotFoundError: source_dir or its install.py is missing.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    source = Path(source_dir)
    target = Path(temp_dir)

    if not validate_path(str(target), app_settings, logger_to_use):
        raise ValidationError(f"Invalid temp directory: {target}", field="temp_dir")
    if not (source / REQUIRED_ENTRY_POINT).is_file():
        raise FileNotFoundError(
            f"{REQUIRED_ENTRY_POINT} not found in source directory {source}"
        )

    if target.exists():
        log_message(
            f"{symbols.get('info', 'ℹ️')} Removing existing temp directory {target}",
            "info",
            logger_to_use,
            app_settings,
        )
        shutil.rmtree(target)

    log_message(
        f"{symbols.get('gear', '⚙️')} Copying {source} to {target}",
        "info",
        logger_to_use,
        app_settings,
    )
    shutil.copytree(source, target, ignore=_ignore_patterns(excludes))

    script_count = 0
    for script in target.rglob("*.sh"):
        mode = script.stat().st_mode
        script.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        script_count += 1

    log_message(
        f"{symbols.get('success', '✅')} Staged installation files in {target} ({script_count} scripts made executable)",
        "success",
        logger_to_use,
        app_settings,
    )
    return target


def cleanup_directory(
    directory_path: Union[str, Path],
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Remove a directory tree, logging instead of raising when that fails.

    Returns:
        True if the directory is gone afterwards.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    path = Path(directory_path)

    if not path.exists():
        log_message(
            f"{symbols.get('info', 'ℹ️')} Directory {path} does not exist. No cleanup needed.",
            "debug",
            logger_to_use,
            app_settings,
        )
        return True
    if not path.is_dir():
        log_message(
            f"{symbols.get('warning', '!')} Path {path} exists but is not a directory.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False
    try:
        shutil.rmtree(path)
    except OSError as e:
        log_message(
            f"{symbols.get('error', '❌')} Error removing directory {path}: {e}",
            "error",
            logger_to_use,
            app_settings,
            exc_info=True,
        )
        return False
    log_message(
        f"{symbols.get('success', '✅')} Removed temporary directory {path}",
        "info",
        logger_to_use,
        app_settings,
    )
    return True

