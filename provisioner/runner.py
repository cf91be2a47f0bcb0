# provisioner/runner.py
# -*- coding: utf-8 -*-
"""
WSL-side runner for temp-copy mode.

Stages the project tree on the Linux filesystem, runs the dispatcher from
there with its logs streamed back to a host-visible directory, and cleans
up. The dispatcher's exit code is the runner's exit code.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from common.command_utils import get_symbols, log_message, run_command
from common.file_utils import REQUIRED_ENTRY_POINT, cleanup_directory, copy_tree_to_temp
from common.logging_config import get_event_log_path, get_run_log_path
from common.validation import validate_dispatcher_arguments, validate_run_id
from provisioner.log_streamer import LogStreamer
from setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

RUN_LOG_NAME_TEMPLATE = "wsl-installation-{run_id}.log"


def destination_log_paths(log_dir: Union[str, Path], run_id: str) -> Tuple[Path, Path]:
    """Host-visible run log and event file for a run."""
    log_path = Path(log_dir) / RUN_LOG_NAME_TEMPLATE.format(run_id=run_id)
    return log_path, get_event_log_path(log_path)


def build_dispatcher_environment(
    run_id: str, source_dir: Union[str, Path], base_env: Optional[Dict[str, str]] = None
) -> Dict[str, str]:
    env = dict(os.environ if base_env is None else base_env)
    env["WSL_INSTALL_RUN_ID"] = run_id
    env["WSL_INSTALL_TEMP_MODE"] = "1"
    env["WSL_INSTALL_SOURCE_DIR"] = str(source_dir)
    return env


def run_installation(
    temp_dir: Union[str, Path],
    run_id: str,
    log_dir: Union[str, Path],
    dispatcher_args: Sequence[str],
    source_dir: Union[str, Path],
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    command_runner: Callable = run_command,
    streamer_factory: Callable[..., LogStreamer] = LogStreamer,
) -> int:
    """
    Execute one installation from a temp copy of `source_dir`.

    Returns:
        The dispatcher's exit code.

    Raises:
        ValidationError: The run id or a dispatcher argument is invalid.
        FileNotFoundError: The source tree has no install.py.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    validate_run_id(run_id)
    args: List[str] = validate_dispatcher_arguments(dispatcher_args, app_settings, logger_to_use)

    temp_path = Path(temp_dir)
    log_message(
        f"{symbols.get('rocket', '🚀')} Starting WSL installation run {run_id} from {temp_path}",
        "info",
        logger_to_use,
        app_settings,
    )
    copy_tree_to_temp(source_dir, temp_path, app_settings, logger_to_use)

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    temp_log = get_run_log_path(run_id, temp_mode=True)
    temp_events = get_event_log_path(temp_log)
    dest_log, dest_events = destination_log_paths(log_dir, run_id)

    streamers = [
        streamer_factory(temp_log, dest_log, run_id, app_settings.stream, banner=True,
                         current_logger=logger_to_use).start(),
        streamer_factory(temp_events, dest_events, run_id, app_settings.stream, banner=False,
                         current_logger=logger_to_use).start(),
    ]

    try:
        result = command_runner(
            [sys.executable, str(temp_path / REQUIRED_ENTRY_POINT)] + args,
            app_settings,
            check=False,
            current_logger=logger_to_use,
            cwd=str(temp_path),
            env=build_dispatcher_environment(run_id, source_dir),
            stdin_devnull=True,
        )
        exit_code = result.returncode
    finally:
        for streamer in streamers:
            streamer.stop()

    log_message(
        f"Installation script completed with exit code: {exit_code}",
        "info",
        logger_to_use,
        app_settings,
    )

    # Streamers that stopped early (idle or late source) still owe their tail
    for streamer in streamers:
        copied = streamer.copy_new_content()
        if copied:
            log_message(
                f"Performed final copy of {copied} bytes to {streamer.dest}",
                "info",
                logger_to_use,
                app_settings,
            )

    if not temp_log.exists():
        log_message(
            f"{symbols.get('warning', '⚠️')} Log file not found: {temp_log}",
            "warning",
            logger_to_use,
            app_settings,
        )

    cleanup_directory(temp_path, app_settings, logger_to_use)
    return exit_code
