#!/usr/bin/env python3
# install.py
# -*- coding: utf-8 -*-
"""
Entry point for the YAML dispatcher: reads an installation manifest and
installs everything it lists inside the current WSL distribution.
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

from common.errors import ManifestError, ValidationError
from common.logging_config import VALID_LOG_LEVELS, apply_log_level, setup_run_logging
from common.validation import VALID_SECTIONS, validate_dispatcher_arguments, validate_sections
from installer import __version__
from installer.dispatcher import EXIT_FAILURES, EXIT_INVALID, Dispatcher
from installer.manifest import load_manifest, resolve_config_source
from installer.run_context import RunContext, generate_run_id
from setup.config_loader import load_app_settings

PROJECT_ROOT = Path(__file__).resolve().parent


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Install the software listed in a WSL provisioning manifest.",
        epilog=(
            "Examples:\n"
            "  install.py --dry-run\n"
            "  install.py --config minimal.yaml --sections apt_packages,custom_software\n"
            "  install.py --config https://example.com/team.yaml --force"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-f", "--force", action="store_true", help="Reinstall packages that are already installed"
    )
    parser.add_argument(
        "-d", "--dry-run", action="store_true", help="Show what would be installed without installing"
    )
    parser.add_argument(
        "--run-apt-upgrade", action="store_true", help="Upgrade installed system packages first"
    )
    parser.add_argument(
        "-l",
        "--log-level",
        choices=VALID_LOG_LEVELS,
        default=None,
        help="Log level (default: LOG_LEVEL, then the manifest setting, then INFO)",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Manifest path, profile name in config-profiles/, or https URL",
    )
    parser.add_argument(
        "-s",
        "--sections",
        default=None,
        help=f"Comma separated sections to run: {','.join(VALID_SECTIONS)}",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser.parse_args(args)


def _logs_root(app_settings) -> Path:
    # From a temp copy, reports go back to the original tree
    base = (
        Path(app_settings.source_dir)
        if app_settings.temp_mode and app_settings.source_dir
        else PROJECT_ROOT
    )
    return base / app_settings.logs_dir


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parsed_args = parse_args(argv)

    run_id = os.environ.get("WSL_INSTALL_RUN_ID") or generate_run_id()
    parsed_args.run_id = run_id
    app_settings = load_app_settings(parsed_args)
    logs_root = _logs_root(app_settings)

    logger = setup_run_logging(
        run_id,
        log_level=app_settings.log_level,
        logs_dir=logs_root,
        temp_mode=app_settings.temp_mode,
    )

    try:
        try:
            validate_dispatcher_arguments(argv, app_settings, logger)
            sections = validate_sections(parsed_args.sections) if parsed_args.sections else None
            config_path = resolve_config_source(
                parsed_args.config, PROJECT_ROOT, run_id, app_settings, logger
            )
            manifest = load_manifest(config_path, PROJECT_ROOT, app_settings, logger)
        except (ValidationError, ManifestError) as e:
            logger.error(f"{app_settings.symbols.get('error', '❌')} {e}")
            return EXIT_INVALID

        level_is_explicit = parsed_args.log_level or os.environ.get(
            "WSL_INSTALL_LOG_LEVEL"
        ) or os.environ.get("LOG_LEVEL")
        if not level_is_explicit and manifest.settings.log_level:
            apply_log_level(manifest.settings.log_level)

        context = RunContext(
            run_id,
            app_settings,
            logger=logger,
            force=parsed_args.force,
            dry_run=parsed_args.dry_run,
        )
        dispatcher = Dispatcher(
            context,
            manifest,
            PROJECT_ROOT,
            sections=sections,
            run_apt_upgrade=parsed_args.run_apt_upgrade,
            config_path=config_path,
            report_dir=logs_root,
        )
        return dispatcher.run()
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {str(e)}")
        return EXIT_FAILURES


if __name__ == "__main__":
    sys.exit(main())
