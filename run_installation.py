#!/usr/bin/env python3
# run_installation.py
# -*- coding: utf-8 -*-
"""
WSL-side entry point for temp-copy mode: stage the tree, run install.py from
the copy with logs streamed to a host-visible directory, clean up.

Usage: run_installation.py <temp_dir> <run_id> <log_dir> [dispatcher args...]
"""

# DO NOT MOVE OR REMOVE
if __name__ == "__main__":
    from bootstrap.venv_bootstrap import ensure_venv_and_dependencies

    ensure_venv_and_dependencies()
# END DO NOT MOVE OR REMOVE

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from common.errors import ValidationError
from common.logging_config import setup_run_logging
from installer.dispatcher import EXIT_FAILURES, EXIT_INVALID
from provisioner.runner import run_installation
from setup.config_loader import load_app_settings

PROJECT_ROOT = Path(__file__).resolve().parent


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the WSL installation from a Linux-side temp copy."
    )
    parser.add_argument("temp_dir", help="Temp directory for the staged tree, e.g. /tmp/wsl-install-<run_id>")
    parser.add_argument("run_id", help="Run identifier (YYYYmmdd_HHMMSS)")
    parser.add_argument("log_dir", help="Host-visible directory for the streamed logs")
    parser.add_argument(
        "dispatcher_args",
        nargs=argparse.REMAINDER,
        help="Arguments forwarded to install.py",
    )
    return parser.parse_args(args)


def main(argv: Optional[List[str]] = None) -> int:
    parsed_args = parse_args(argv)
    os.environ["WSL_INSTALL_RUN_ID"] = parsed_args.run_id
    os.environ["WSL_INSTALL_TEMP_MODE"] = "1"

    app_settings = load_app_settings()
    # The runner only talks to the console; the dispatcher owns the run log
    logger = setup_run_logging(
        parsed_args.run_id,
        log_level=app_settings.log_level,
        enable_file=False,
        enable_events=False,
        logger_name="wsl_provisioner.runner",
    )

    dispatcher_args = list(parsed_args.dispatcher_args)
    if dispatcher_args and dispatcher_args[0] == "--":
        dispatcher_args = dispatcher_args[1:]

    try:
        return run_installation(
            parsed_args.temp_dir,
            parsed_args.run_id,
            parsed_args.log_dir,
            dispatcher_args,
            source_dir=PROJECT_ROOT,
            app_settings=app_settings,
            current_logger=logger,
        )
    except ValidationError as e:
        logger.error(f"{app_settings.symbols.get('error', '❌')} {e}")
        return EXIT_INVALID
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {str(e)}")
        return EXIT_FAILURES


if __name__ == "__main__":
    sys.exit(main())
