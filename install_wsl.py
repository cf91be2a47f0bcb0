#!/usr/bin/env python3
# install_wsl.py
# -*- coding: utf-8 -*-
"""
Windows host entry point: prepare a WSL distribution, run the installation
inside it and follow the progress from the host.

Everything after --config is forwarded to install.py inside the distribution,
so --config must come last:

    python install_wsl.py --distribution Ubuntu-24.04 --config --sections apt_packages --dry-run
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from common.errors import ValidationError
from common.logging_config import VALID_LOG_LEVELS, setup_run_logging
from installer import __version__
from installer.dispatcher import EXIT_FAILURES, EXIT_INVALID
from installer.run_context import generate_run_id
from provisioner.wsl_provisioner import ProvisionOptions, WslProvisioner
from setup.config_loader import load_app_settings

PROJECT_ROOT = Path(__file__).resolve().parent


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Provision a WSL distribution with the software in a manifest.",
        epilog=(
            "Examples:\n"
            "  install_wsl.py\n"
            "  install_wsl.py --reset-wsl --auto-install --username dev\n"
            "  install_wsl.py --run-direct --config --config minimal.yaml --dry-run"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--auto-install", action="store_true",
        help="Create the default WSL user after a successful installation",
    )
    parser.add_argument(
        "--force", action="store_true", help="Reinstall packages that are already installed"
    )
    parser.add_argument(
        "--reset-wsl", action="store_true",
        help="Unregister and reinstall the distribution first (destroys its data)",
    )
    parser.add_argument(
        "--run-direct", action="store_true",
        help="Run install.py from the Windows mount instead of a Linux-side temp copy",
    )
    parser.add_argument(
        "--distribution", default=None,
        help="WSL distribution name (default: Ubuntu-24.04)",
    )
    parser.add_argument(
        "--install-path", type=Path, default=PROJECT_ROOT,
        help="Project directory as seen from Windows (default: this directory)",
    )
    parser.add_argument(
        "--username", default=None,
        help="Default user for --auto-install (default: the current Windows user)",
    )
    parser.add_argument(
        "--log-level", choices=VALID_LOG_LEVELS, default=None, help="Log level"
    )
    parser.add_argument(
        "--config", dest="dispatcher_args", nargs=argparse.REMAINDER, default=[],
        help="Arguments forwarded to install.py (must be last)",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser.parse_args(args)


def main(argv: Optional[List[str]] = None) -> int:
    parsed_args = parse_args(argv)
    run_id = generate_run_id()
    app_settings = load_app_settings(parsed_args)

    # The installation owns the run log; the host only writes to the console
    logger = setup_run_logging(
        run_id,
        log_level=app_settings.log_level,
        enable_file=False,
        enable_events=False,
        logger_name="wsl_provisioner.host",
    )

    try:
        options = ProvisionOptions(
            distribution=parsed_args.distribution or app_settings.wsl.default_distribution,
            install_path=parsed_args.install_path.resolve(),
            dispatcher_args=parsed_args.dispatcher_args,
            run_direct=parsed_args.run_direct,
            reset_wsl=parsed_args.reset_wsl,
            auto_install=parsed_args.auto_install,
            force=parsed_args.force,
            username=parsed_args.username,
            log_level=parsed_args.log_level,
        )
        provisioner = WslProvisioner(options, app_settings, run_id=run_id, current_logger=logger)
        return provisioner.provision()
    except ValidationError as e:
        logger.error(f"{app_settings.symbols.get('error', '❌')} {e}")
        return EXIT_INVALID
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {str(e)}")
        return EXIT_FAILURES


if __name__ == "__main__":
    sys.exit(main())
