# installer/manifest.py
# -*- coding: utf-8 -*-
"""
The installation manifest: pydantic models for the YAML file, the loader
that validates a whole manifest before anything is installed, and the
resolution of a --config argument to a local file.

Every problem found here is a ManifestError, raised before the first apt
call of a run.
"""

import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from common.command_utils import log_message
from common.errors import DownloadError, ManifestError, ValidationError
from common.network_utils import fetch_text
from common.security import (
    validate_command_name,
    validate_package_name,
    validate_path,
    validate_url,
    validate_version_string,
)
from common.validation import VALID_SECTIONS
from common.version_utils import LATEST
from installer.registry import InstallerRegistry, load_builtin_installers
from setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

APT_SECTIONS = ("prerequisites", "apt_packages")
PACKAGE_MANAGER_SECTIONS = APT_SECTIONS + ("python_packages", "powershell_modules")
SCRIPT_SECTIONS = ("shell_setup", "configurations")
SPEC_SECTIONS = tuple(s for s in VALID_SECTIONS if s != "nix_packages")

PROFILE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+\.ya?ml$")
REMOTE_CONFIG_DIR = Path("/tmp")
REMOTE_CONFIG_TEMPLATE = "wsl-remote-config-{run_id}.yaml"


class ManifestMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = "WSL Development Environment"
    description: str = ""
    version: str = "1.0.0"
    author: str = ""
    support_url: str = ""

    @field_validator("version", mode="before")
    @classmethod
    def _stringify_version(cls, value: Any) -> Any:
        return str(value) if value is not None else "1.0.0"


class ManifestSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    continue_on_error: bool = True
    log_level: Optional[str] = None
    cleanup_after_install: bool = True


class PackageSpec(BaseModel):
    """One entry of a package section."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    description: str = ""
    version: str = LATEST
    script: Optional[str] = None
    installer: Optional[str] = None
    command: Optional[str] = None
    version_flag: Optional[str] = None
    depends_on: List[str] = Field(default_factory=list)
    enabled: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def _stringify_name(cls, value: Any) -> Any:
        return str(value).strip() if value is not None else value

    @field_validator("version", mode="before")
    @classmethod
    def _stringify_version(cls, value: Any) -> Any:
        # YAML reads "1.20" as a float
        return str(value) if value is not None else LATEST

    @field_validator("depends_on", mode="before")
    @classmethod
    def _listify_depends_on(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @property
    def script_is_file(self) -> bool:
        """A single line containing a slash names a file; anything else is inline shell."""
        return bool(self.script) and "/" in self.script and "\n" not in self.script.strip()


class NixFlake(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = False
    description: str = "Nix flake"
    type: Literal["local", "remote"] = "local"
    path: Optional[str] = None
    url: Optional[str] = None

    @property
    def source(self) -> Optional[str]:
        return self.path if self.type == "local" else self.url


class NixPackageItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    package: str
    description: str = ""


class NixPackageList(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    enabled: bool = False
    items: List[NixPackageItem] = Field(default_factory=list, alias="list")


class NixEntry(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    flake: Optional[NixFlake] = None
    packages: Optional[NixPackageList] = None


class Manifest(BaseModel):
    """A parsed manifest. Immutable once loaded."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    metadata: ManifestMetadata = Field(default_factory=ManifestMetadata)
    settings: ManifestSettings = Field(default_factory=ManifestSettings)
    prerequisites: List[PackageSpec] = Field(default_factory=list)
    apt_packages: List[PackageSpec] = Field(default_factory=list)
    shell_setup: List[PackageSpec] = Field(default_factory=list)
    custom_software: List[PackageSpec] = Field(default_factory=list)
    python_packages: List[PackageSpec] = Field(default_factory=list)
    powershell_modules: List[PackageSpec] = Field(default_factory=list)
    nix_packages: List[NixEntry] = Field(default_factory=list)
    configurations: List[PackageSpec] = Field(default_factory=list)

    @field_validator(
        "prerequisites",
        "apt_packages",
        "shell_setup",
        "custom_software",
        "python_packages",
        "powershell_modules",
        "nix_packages",
        "configurations",
        mode="before",
    )
    @classmethod
    def _normalize_section(cls, value: Any) -> Any:
        # An empty YAML key parses as None; bare strings are shorthand for {name: ...}
        if value is None:
            return []
        if isinstance(value, list):
            return [{"name": item} if isinstance(item, str) else item for item in value]
        return value

    @field_validator("metadata", "settings", mode="before")
    @classmethod
    def _default_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    def entries(self, section: str) -> List[PackageSpec]:
        """The PackageSpecs of a non-nix section."""
        if section not in SPEC_SECTIONS:
            raise KeyError(f"Section '{section}' does not hold package entries")
        return list(getattr(self, section))

    def count_enabled(self, sections: Iterable[str]) -> int:
        """Number of installable items an unfiltered run of `sections` would touch."""
        total = 0
        for section in sections:
            if section == "nix_packages":
                for entry in self.nix_packages:
                    if entry.flake and entry.flake.enabled:
                        total += 1
                    if entry.packages and entry.packages.enabled:
                        total += len(entry.packages.items)
            else:
                total += sum(1 for spec in self.entries(section) if spec.enabled)
        return total


def order_by_dependencies(
    specs: List[PackageSpec],
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> List[PackageSpec]:
    """
    Order entries so each comes after the entries it depends on, keeping the
    manifest order otherwise. Dependencies outside the list only warn.

    Raises:
        ManifestError: The dependencies form a cycle.
    """
    logger_to_use = current_logger if current_logger else module_logger
    by_name: Dict[str, PackageSpec] = {spec.name: spec for spec in specs}
    ordered: List[PackageSpec] = []
    visited = set()
    in_progress = set()

    def visit(spec: PackageSpec) -> None:
        if spec.name in visited:
            return
        if spec.name in in_progress:
            raise ManifestError(
                f"Circular dependency detected involving '{spec.name}'"
            )
        in_progress.add(spec.name)
        for dependency in spec.depends_on:
            if dependency in by_name:
                visit(by_name[dependency])
            else:
                log_message(
                    f"{spec.name} depends on '{dependency}', which is not part of this section",
                    "warning",
                    logger_to_use,
                    app_settings,
                )
        in_progress.discard(spec.name)
        visited.add(spec.name)
        ordered.append(spec)

    for spec in specs:
        visit(spec)
    return ordered


def _check_unique_names(section: str, specs: List[PackageSpec]) -> None:
    seen = set()
    for spec in specs:
        if not spec.name:
            raise ManifestError(f"{section}: entry without a name")
        if spec.name in seen:
            raise ManifestError(f"{section}: duplicate entry '{spec.name}'")
        seen.add(spec.name)


def _check_script_file(
    section: str,
    spec: PackageSpec,
    project_root: Path,
    app_settings: Optional[AppSettings],
    logger: logging.Logger,
) -> None:
    if not validate_path(spec.script, app_settings, logger):
        raise ManifestError(f"{section}: {spec.name}: invalid script path '{spec.script}'")
    script_path = project_root / spec.script
    if not script_path.is_file():
        raise ManifestError(
            f"{section}: {spec.name}: script not found: {script_path}"
        )


def validate_manifest(
    manifest: Manifest,
    project_root: Path,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Check every section of a parsed manifest.

    Names must be unique within a section, package names and pinned
    versions must pass the allow-lists, and every enabled entry's installer
    reference must resolve: a registered plugin, an existing script under
    `project_root`, or inline shell content where that is allowed.

    Raises:
        ManifestError: On the first problem found.
    """
    logger_to_use = current_logger if current_logger else module_logger
    load_builtin_installers(current_logger=logger_to_use)

    for section in SPEC_SECTIONS:
        specs = manifest.entries(section)
        _check_unique_names(section, specs)

        for spec in specs:
            if section in PACKAGE_MANAGER_SECTIONS and not validate_package_name(
                spec.name, app_settings, logger_to_use
            ):
                raise ManifestError(f"{section}: invalid package name '{spec.name}'")
            if spec.version != LATEST and not validate_version_string(
                spec.version, app_settings, logger_to_use
            ):
                raise ManifestError(
                    f"{section}: {spec.name}: invalid version '{spec.version}'"
                )
            if spec.command and not validate_command_name(
                spec.command, app_settings, logger_to_use
            ):
                raise ManifestError(
                    f"{section}: {spec.name}: invalid command '{spec.command}'"
                )
            if not spec.enabled:
                continue

            if section == "custom_software":
                if spec.installer:
                    if not InstallerRegistry.is_registered(spec.installer):
                        available = ", ".join(sorted(InstallerRegistry.get_all_installers()))
                        raise ManifestError(
                            f"custom_software: {spec.name}: unknown installer '{spec.installer}' "
                            f"(available: {available or 'none'})"
                        )
                elif spec.script:
                    _check_script_file(section, spec, project_root, app_settings, logger_to_use)
                else:
                    raise ManifestError(
                        f"custom_software: {spec.name}: needs an 'installer' or a 'script'"
                    )
            elif section in SCRIPT_SECTIONS:
                if not spec.script:
                    raise ManifestError(f"{section}: {spec.name}: no script given")
                if spec.script_is_file:
                    _check_script_file(section, spec, project_root, app_settings, logger_to_use)

        if section == "custom_software":
            order_by_dependencies(
                [spec for spec in specs if spec.enabled], app_settings, logger_to_use
            )

    for position, entry in enumerate(manifest.nix_packages):
        flake = entry.flake
        if flake and flake.enabled:
            if not flake.source:
                raise ManifestError(
                    f"nix_packages[{position}]: a {flake.type} flake needs a {'path' if flake.type == 'local' else 'url'}"
                )
            if flake.type == "remote" and flake.source.startswith(("http://", "https://")):
                if not validate_url(flake.source, app_settings, logger_to_use):
                    raise ManifestError(
                        f"nix_packages[{position}]: flake URL rejected: {flake.source}"
                    )
            if flake.type == "local" and not (project_root / flake.source).exists():
                raise ManifestError(
                    f"nix_packages[{position}]: flake path not found: {project_root / flake.source}"
                )
        if entry.packages and entry.packages.enabled:
            for item in entry.packages.items:
                if not validate_package_name(item.package, app_settings, logger_to_use):
                    raise ManifestError(
                        f"nix_packages[{position}]: invalid package '{item.package}'"
                    )


def load_manifest(
    config_path: Path,
    project_root: Path,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Manifest:
    """
    Read, parse and fully validate a manifest file.

    Raises:
        ManifestError: The file is unreadable, not valid YAML, not a mapping,
            does not match the manifest schema, or fails validate_manifest().
    """
    logger_to_use = current_logger if current_logger else module_logger
    try:
        raw_text = Path(config_path).read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Cannot read configuration file {config_path}: {e}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(
            f"Configuration file {config_path} must contain a YAML mapping"
        )

    try:
        manifest = Manifest.model_validate(data)
    except PydanticValidationError as e:
        raise ManifestError(f"Configuration file {config_path} is invalid: {e}") from e

    validate_manifest(manifest, project_root, app_settings, logger_to_use)
    log_message(
        f"Loaded manifest '{manifest.metadata.name}' v{manifest.metadata.version} from {config_path}",
        "debug",
        logger_to_use,
        app_settings,
    )
    return manifest


def resolve_config_source(
    value: Optional[str],
    project_root: Path,
    run_id: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    fetcher: Callable[..., str] = fetch_text,
    remote_dir: Path = REMOTE_CONFIG_DIR,
) -> Path:
    """
    Turn a --config value into the path of a local manifest file.

    * None: the default profile.
    * An http(s) URL: validated with host resolution (private and loopback
      addresses refused), fetched once to /tmp/wsl-remote-config-<run_id>.yaml.
    * An absolute path: used as is.
    * A profile file name: looked up in the profiles directory.
    * Anything else: relative to the project root.

    Raises:
        ValidationError: A URL failed the allow-list.
        ManifestError: The file does not exist or could not be fetched.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if value is None:
        path = project_root / app_settings.default_config
    elif value.lower().startswith(("http://", "https://")):
        if not validate_url(value, app_settings, logger_to_use, resolve_host=True):
            raise ValidationError(f"Config URL rejected: {value}", field="config")
        log_message(
            f"{app_settings.symbols.get('info', 'ℹ️')} Downloading configuration from {value}",
            "info",
            logger_to_use,
            app_settings,
        )
        try:
            content = fetcher(value, app_settings=app_settings, current_logger=logger_to_use)
        except DownloadError as e:
            raise ManifestError(f"Could not download configuration: {e}") from e
        path = Path(remote_dir) / REMOTE_CONFIG_TEMPLATE.format(run_id=run_id)
        path.write_text(content, encoding="utf-8")
    elif Path(value).is_absolute():
        path = Path(value)
    elif PROFILE_NAME_PATTERN.match(value) and (
        project_root / app_settings.profiles_dir / value
    ).is_file():
        path = project_root / app_settings.profiles_dir / value
    else:
        path = project_root / value

    if not path.is_file():
        raise ManifestError(f"Configuration file not found: {path}")
    return path
