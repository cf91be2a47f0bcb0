# setup/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for application configuration.

This module defines the structured settings for the provisioner,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

from pathlib import Path
from typing import Dict, Optional

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
LOGS_DIR_DEFAULT: str = "logs"
PROFILES_DIR_DEFAULT: str = "config-profiles"
DEFAULT_CONFIG_DEFAULT: str = "config-profiles/full-install.yaml"
LOG_LEVEL_DEFAULT: str = "INFO"

DOWNLOAD_MAX_RETRIES_DEFAULT: int = 3
DOWNLOAD_RETRY_DELAY_DEFAULT: float = 2.0
DOWNLOAD_TIMEOUT_DEFAULT: int = 300

VERIFY_TIMEOUT_DEFAULT: int = 30
SCRIPT_TIMEOUT_DEFAULT: int = 600
VERSION_TIMEOUT_DEFAULT: int = 10

WSL_COMMAND_DEFAULT: str = "wsl.exe"
WSL_DISTRIBUTION_DEFAULT: str = "Ubuntu-24.04"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅", "error": "❌", "warning": "⚠️", "info": "ℹ️",
    "step": "➡️", "gear": "⚙️", "package": "📦", "rocket": "🚀",
    "sparkles": "✨", "critical": "🔥", "debug": "🐛", "skip": "⏭️",
}


class DownloadSettings(BaseModel):
    """Retry and timeout policy for HTTP downloads."""

    max_retries: int = Field(default=DOWNLOAD_MAX_RETRIES_DEFAULT, ge=1,
                             description="Attempts before a download is given up.")
    retry_delay: float = Field(default=DOWNLOAD_RETRY_DELAY_DEFAULT, ge=0,
                               description="Seconds to wait between attempts.")
    timeout: int = Field(default=DOWNLOAD_TIMEOUT_DEFAULT, gt=0,
                         description="Per-request timeout in seconds.")


class StreamSettings(BaseModel):
    """Timing for the WSL-side log streamer."""

    wait_timeout: int = Field(default=30, description="Seconds to wait for the source log to appear.")
    check_interval: float = Field(default=5.0, description="Seconds between idle checks.")
    max_idle_checks: int = Field(default=60, description="Idle checks before the streamer gives up.")
    tail_interval: float = Field(default=1.0, description="Seconds between tail reads while active.")


class WslSettings(BaseModel):
    """Host-side settings for talking to wsl.exe."""

    command: str = Field(default=WSL_COMMAND_DEFAULT, description="The WSL executable on the Windows host.")
    default_distribution: str = Field(default=WSL_DISTRIBUTION_DEFAULT,
                                      description="Distribution used when none is given.")
    poll_interval: float = Field(default=2.0, description="Seconds between host log polls.")
    default_shell: str = Field(default="/bin/bash", description="Login shell for the bootstrapped user.")
    python_command: str = Field(default="python3", description="Interpreter used inside the distribution.")


class AppSettings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(
        env_prefix='WSL_INSTALL_',
        env_nested_delimiter='__',
        populate_by_name=True,
        extra='ignore'
    )

    run_id: Optional[str] = Field(default=None, description="Run identifier shared by host and guest.")
    temp_mode: bool = Field(default=False,
                            description="True when the dispatcher runs from a Linux-side temp copy.")
    source_dir: Optional[Path] = Field(default=None,
                                       description="Original source tree when running from a temp copy.")
    log_level: str = Field(
        default=LOG_LEVEL_DEFAULT,
        validation_alias=AliasChoices("WSL_INSTALL_LOG_LEVEL", "LOG_LEVEL", "log_level"),
        description="DEBUG, INFO, WARN or ERROR.",
    )
    default_password: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("WSL_DEFAULT_PASSWORD", "default_password"),
        exclude=True,
        description="Password for the bootstrapped WSL user. Never written to logs or reports.",
    )

    logs_dir: Path = Field(default=Path(LOGS_DIR_DEFAULT), description="Directory for run logs and reports.")
    profiles_dir: Path = Field(default=Path(PROFILES_DIR_DEFAULT),
                               description="Directory holding named manifest profiles.")
    default_config: Path = Field(default=Path(DEFAULT_CONFIG_DEFAULT),
                                 description="Manifest used when --config is not given.")

    verify_timeout: int = Field(default=VERIFY_TIMEOUT_DEFAULT,
                                description="Timeout in seconds for post-install smoke tests.")
    script_timeout: int = Field(default=SCRIPT_TIMEOUT_DEFAULT,
                                description="Timeout in seconds for custom installer scripts.")
    version_timeout: int = Field(default=VERSION_TIMEOUT_DEFAULT,
                                 description="Timeout in seconds for version checks.")

    download: DownloadSettings = Field(default_factory=DownloadSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    wsl: WslSettings = Field(default_factory=WslSettings)

    # Static symbols, could also be loaded from a separate static config if preferred
    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))
