# setup/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the provisioner.

Handles loading settings from Pydantic model defaults, environment variables,
an optional YAML settings file and command-line arguments, applying a specific
order of precedence:
1. Pydantic Model Defaults
2. Environment Variables (WSL_INSTALL_*, LOG_LEVEL, WSL_DEFAULT_PASSWORD)
3. YAML Settings File
4. Command-Line Arguments

The YAML settings file tunes the tool itself (timeouts, directories, wsl.exe
location). It is not the installation manifest; manifests are handled by
installer.manifest.
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .config_models import AppSettings

module_logger = logging.getLogger(__name__)

SETTINGS_FILE_DEFAULT = "wsl-provisioner.yaml"

# CLI argument name -> dotted settings path
CLI_SETTING_MAP: Dict[str, str] = {
    "log_level": "log_level",
    "run_id": "run_id",
    "distribution": "wsl.default_distribution",
    "wsl_command": "wsl.command",
}


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates a dictionary `source` with values from another dictionary
    `overrides`. Nested dictionaries are merged key by key; any other value
    replaces the value in `source`. `None` values in `overrides` never replace
    an existing value.

    Parameters:
        source: Dict[str, Any]
            The dictionary to be updated. This dictionary gets modified in place.
        overrides: Dict[str, Any]
            The dictionary containing values to update or add to the `source`.

    Returns:
        Dict[str, Any]:
            The updated dictionary after applying all `overrides` to the input `source`.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def _set_dotted(target: Dict[str, Any], dotted_key: str, value: Any) -> None:
    parts = dotted_key.split(".")
    node = target
    for part in parts[:-1]:
        if not isinstance(node.get(part), dict):
            node[part] = {}
        node = node[part]
    node[parts[-1]] = value


def _find_project_root(start: Optional[Path] = None) -> Path:
    """Walk up from `start` until a directory holding install.py is found."""
    current = (start or Path.cwd()).resolve()
    for candidate in [current, *current.parents]:
        if (candidate / "install.py").is_file():
            return candidate
    return current


def load_app_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Union[str, Path] = SETTINGS_FILE_DEFAULT,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Loads application settings with the following precedence:
    1. Pydantic Model Defaults.
    2. Environment Variables (Pydantic BaseSettings loads these on construction).
    3. Values from the YAML settings file (overrides defaults and environment).
    4. Command-Line Arguments (highest precedence, overrides all else).

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: Path to the YAML settings file. Relative paths are
            resolved against the project root.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of AppSettings with the fully resolved configuration.
    """
    logger_to_use = current_logger if current_logger else module_logger

    settings_after_env_and_defaults = AppSettings()
    current_values_dict = settings_after_env_and_defaults.model_dump(
        exclude_defaults=False
    )

    yaml_config_path = Path(config_file_path)
    if not yaml_config_path.is_absolute():
        yaml_config_path = _find_project_root() / yaml_config_path

    if yaml_config_path.is_file():
        try:
            with open(yaml_config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f)
            if yaml_data and isinstance(yaml_data, dict):
                current_values_dict = _deep_update(
                    current_values_dict, yaml_data
                )
                logger_to_use.debug(
                    f"Loaded settings from {yaml_config_path}"
                )
            elif yaml_data is not None:
                logger_to_use.warning(
                    f"Settings file '{yaml_config_path}' does not contain a valid YAML dictionary. Ignoring."
                )
        except yaml.YAMLError as e:
            logger_to_use.error(
                f"Could not parse YAML settings file '{yaml_config_path}': {e}. Using defaults and environment variables."
            )
        except IOError as e:
            logger_to_use.warning(
                f"Could not read settings file '{yaml_config_path}': {e}. Using defaults and environment variables."
            )
    else:
        logger_to_use.debug(
            f"Settings file '{yaml_config_path}' not found. Using defaults, environment variables, and CLI args."
        )

    if cli_args:
        for cli_key, cli_value in vars(cli_args).items():
            if cli_value is None or cli_key not in CLI_SETTING_MAP:
                continue
            _set_dotted(current_values_dict, CLI_SETTING_MAP[cli_key], cli_value)

    # The password is excluded from model_dump; carry it over explicitly.
    if settings_after_env_and_defaults.default_password is not None:
        current_values_dict.setdefault(
            "default_password", settings_after_env_and_defaults.default_password
        )

    try:
        final_settings = AppSettings(**current_values_dict)
    except Exception as e:  # Catch Pydantic validation errors etc.
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise SystemExit(f"Configuration error: {e}") from e

    logger_to_use.debug("Successfully loaded and validated application settings")
    return final_settings
