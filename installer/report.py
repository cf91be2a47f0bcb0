# installer/report.py
# -*- coding: utf-8 -*-
"""
Plain-text version report written at the end of a run.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Union

from common.command_utils import log_message
from common.system_utils import get_system_info
from installer.manifest import APT_SECTIONS, Manifest
from installer.run_context import RunContext

if TYPE_CHECKING:
    from common.debian.apt_manager import AptManager

module_logger = logging.getLogger(__name__)

REPORT_TITLE = "WSL Installation Version Report"
REPORT_FILENAME_TEMPLATE = "installation-report-{run_id}.txt"


def _heading(title: str, underline: str = "-") -> List[str]:
    return ["", title, underline * len(title)]


def build_report_lines(
    context: RunContext,
    manifest: Manifest,
    apt_versions: Optional[Dict[str, Optional[str]]] = None,
    system_info: Optional[Dict[str, str]] = None,
    config_path: Optional[Union[str, Path]] = None,
) -> List[str]:
    """The report as a list of lines; counts come straight from the context."""
    lines = [REPORT_TITLE, "=" * len(REPORT_TITLE)]
    lines.append(f"Run ID: {context.run_id}")
    lines.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append(
        f"Environment: {manifest.metadata.name} (version {manifest.metadata.version})"
    )
    if config_path:
        lines.append(f"Configuration: {config_path}")

    lines += _heading("Summary")
    lines.append(f"Total items processed: {context.total_processed}")
    lines.append(f"Successful installations: {len(context.successful)}")
    lines.append(f"Failed installations: {context.failure_count}")
    lines.append(f"Skipped: {len(context.skipped)}")

    lines += _heading("Results")
    if not context.results:
        lines.append("(no packages processed)")
    for result in context.results:
        lines.append(f"[{result.outcome.value.upper()}] {result.describe()}")

    if apt_versions:
        lines += _heading("APT package versions")
        for name, version in apt_versions.items():
            lines.append(f"{name}: {version or 'not installed'}")

    if system_info:
        lines += _heading("System information")
        for key, value in system_info.items():
            lines.append(f"{key}: {value}")
    return lines


def collect_apt_versions(
    manifest: Manifest,
    apt_manager: "AptManager",
    app_settings,
) -> Dict[str, Optional[str]]:
    versions: Dict[str, Optional[str]] = {}
    for section in APT_SECTIONS:
        for spec in manifest.entries(section):
            if spec.enabled and spec.name not in versions:
                versions[spec.name] = apt_manager.get_installed_version(
                    spec.name, app_settings
                )
    return versions


def write_installation_report(
    context: RunContext,
    manifest: Manifest,
    logs_dir: Union[str, Path],
    apt_manager: Optional["AptManager"] = None,
    config_path: Optional[Union[str, Path]] = None,
    system_info_provider: Callable[..., Dict[str, str]] = get_system_info,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[Path]:
    """
    Write ``installation-report-<run_id>.txt`` into `logs_dir`.

    Returns the report path, or None when it could not be written; a
    missing report never fails a run.
    """
    logger_to_use = current_logger if current_logger else module_logger
    app_settings = context.app_settings

    apt_versions = (
        collect_apt_versions(manifest, apt_manager, app_settings)
        if apt_manager is not None
        else None
    )
    lines = build_report_lines(
        context,
        manifest,
        apt_versions=apt_versions,
        system_info=system_info_provider(
            app_settings=app_settings, current_logger=logger_to_use
        ),
        config_path=config_path,
    )

    report_path = Path(logs_dir) / REPORT_FILENAME_TEMPLATE.format(run_id=context.run_id)
    try:
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    except OSError as e:
        log_message(
            f"{app_settings.symbols.get('warning', '⚠️')} Could not write installation report {report_path}: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )
        return None

    log_message(
        f"{app_settings.symbols.get('info', 'ℹ️')} Installation report: {report_path}",
        "info",
        logger_to_use,
        app_settings,
    )
    return report_path
