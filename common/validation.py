# common/validation.py
# -*- coding: utf-8 -*-
"""
Allow-list validation for arguments that cross the host -> WSL -> dispatcher
boundary.

Each function raises ValidationError on the first invalid value; nothing is
sanitized and retried. Both the host orchestrator and the dispatcher CLI call
these before spawning any process.
"""

import logging
import re
from typing import List, Optional, Sequence

from common.errors import ValidationError
from common.logging_config import VALID_LOG_LEVELS
from common.security import validate_path, validate_url
from setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

VALID_SECTIONS = (
    "prerequisites",
    "apt_packages",
    "shell_setup",
    "custom_software",
    "python_packages",
    "powershell_modules",
    "nix_packages",
    "configurations",
)

SECTIONS_PATTERN = re.compile(r"^[a-zA-Z_,]+$")
DISTRIBUTION_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")
RUN_ID_PATTERN = re.compile(r"^[0-9]{8}_[0-9]{6}$")

# Dispatcher flags that take a value, and the validator applied to the value
_VALUE_FLAGS = {
    "-s": "sections",
    "--sections": "sections",
    "-c": "config",
    "--config": "config",
    "-l": "log_level",
    "--log-level": "log_level",
}
_SWITCH_FLAGS = frozenset(
    [
        "-f",
        "--force",
        "-d",
        "--dry-run",
        "--run-apt-upgrade",
        "-h",
        "--help",
        "-v",
        "--version",
    ]
)


def validate_sections(value: str) -> List[str]:
    """
    Validate a comma separated section list and return it as a list.

    Raises:
        ValidationError: The value has characters outside ``[a-zA-Z_,]`` or
            names an unknown section.
    """
    if not value or not SECTIONS_PATTERN.match(value):
        raise ValidationError(
            f"Invalid sections argument: {value!r}", field="sections"
        )
    sections = [token for token in value.split(",") if token]
    if not sections:
        raise ValidationError(
            f"Invalid sections argument: {value!r}", field="sections"
        )
    for token in sections:
        if token not in VALID_SECTIONS:
            raise ValidationError(
                f"Unknown section '{token}'. Valid sections: {', '.join(VALID_SECTIONS)}",
                field="sections",
            )
    return sections


def validate_config_argument(
    value: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    resolve_host: bool = False,
) -> str:
    """
    Validate a --config value: an http(s) URL on the download allow-list, or
    a local path / profile name on the path allow-list.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if not value:
        raise ValidationError("Config argument cannot be empty", field="config")
    if value.lower().startswith(("http://", "https://")):
        if not validate_url(
            value, app_settings, logger_to_use, resolve_host=resolve_host
        ):
            raise ValidationError(
                f"Config URL rejected: {value}", field="config"
            )
        return value
    if "://" in value or value.lower().startswith(("file:", "javascript:", "data:")):
        raise ValidationError(
            f"Unsupported config scheme: {value}", field="config"
        )
    if not validate_path(value, app_settings, logger_to_use):
        raise ValidationError(f"Config path rejected: {value}", field="config")
    return value


def validate_log_level(value: str) -> str:
    if value not in VALID_LOG_LEVELS:
        raise ValidationError(
            f"Invalid log level '{value}'. Valid levels: {', '.join(VALID_LOG_LEVELS)}",
            field="log_level",
        )
    return value


def validate_distribution_name(value: str) -> str:
    if not value or not DISTRIBUTION_PATTERN.match(value):
        raise ValidationError(
            f"Invalid distribution name: {value!r}", field="distribution"
        )
    return value


def validate_run_id(value: str) -> str:
    if not value or not RUN_ID_PATTERN.match(value):
        raise ValidationError(f"Invalid run id: {value!r}", field="run_id")
    return value


def validate_dispatcher_arguments(
    arguments: Sequence[str],
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> List[str]:
    """
    Validate a raw dispatcher argument vector before it is forwarded.

    Only known flags are accepted and every flag value goes through its
    allow-list. Returns the arguments unchanged as a list.

    Raises:
        ValidationError: On the first unknown flag, missing value or
            rejected value.
    """
    args = list(arguments)
    index = 0
    while index < len(args):
        token = args[index]
        flag, _, inline_value = token.partition("=")
        if flag in _VALUE_FLAGS:
            if inline_value:
                value = inline_value
            else:
                index += 1
                if index >= len(args):
                    raise ValidationError(
                        f"Flag {flag} requires a value", field=_VALUE_FLAGS[flag]
                    )
                value = args[index]
            kind = _VALUE_FLAGS[flag]
            if kind == "sections":
                validate_sections(value)
            elif kind == "config":
                validate_config_argument(value, app_settings, current_logger)
            else:
                validate_log_level(value)
        elif token not in _SWITCH_FLAGS:
            raise ValidationError(
                f"Unsupported installer argument: {token!r}", field="arguments"
            )
        index += 1
    return args

