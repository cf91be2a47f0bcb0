# common/security.py
# -*- coding: utf-8 -*-
"""
Input validators for values that end up in URLs, file paths or command lines.

Every validator logs why a value was rejected and returns a bool, in the
same way as the other checks in ``common``. Callers that must abort on a bad
value raise from ``common.validation``.
"""

import ipaddress
import logging
import re
import socket
from typing import Optional
from urllib.parse import urlsplit

from setup.config_models import AppSettings

from .command_utils import get_symbols, log_message

module_logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2048
MAX_PATH_LENGTH = 4096
MAX_PACKAGE_NAME_LENGTH = 200
MAX_VERSION_LENGTH = 100
MAX_USERNAME_LENGTH = 32

BLOCKED_SCHEMES = ("file:", "javascript:", "data:", "ftp:")
BLOCKED_HOST_NAMES = ("localhost", "localhost.localdomain")
# Dotted digits that ipaddress will not parse ("127.1", "10.1") still resolve
NUMERIC_HOST_PATTERN = re.compile(r"^[0-9.]+$")

URL_PATTERN = re.compile(r"^https?://[A-Za-z0-9.-]+(:[0-9]{1,5})?(/[A-Za-z0-9._~!$&'()*+,;=:@%/?#-]*)?$")
PATH_PATTERN = re.compile(r"^[a-zA-Z0-9._/~-]+$")
PATH_FORBIDDEN_CHARS = set(";&|`$()\"'<>")
PACKAGE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._+-]+$")
VERSION_STRING_PATTERN = re.compile(r"^[a-zA-Z0-9v._+~:-]+$")
COMMAND_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")


def _reject(
    message: str,
    app_settings: Optional[AppSettings],
    logger_to_use: logging.Logger,
) -> bool:
    symbols = get_symbols(app_settings)
    log_message(
        f"{symbols.get('error', '❌')} {message}",
        "error",
        logger_to_use,
        app_settings,
    )
    return False


def _is_blocked_address(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


def _is_blocked_host(host: str) -> bool:
    """Loopback names, and literal addresses outside the public internet."""
    if host in BLOCKED_HOST_NAMES or host.endswith(".localhost"):
        return True
    if NUMERIC_HOST_PATTERN.match(host):
        try:
            ipaddress.ip_address(host)
        except ValueError:
            return True
    return _is_blocked_address(host)


def validate_url(
    url: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    resolve_host: bool = False,
) -> bool:
    """
    Check a URL against the download allow-list.

    Only http(s) URLs to public hosts pass. Loopback names are matched as
    whole names and literal addresses by address class. With ``resolve_host`` the
    name is also resolved and every returned address must be public; a name
    that does not resolve is rejected.

    Args:
        url: The URL to check.
        app_settings: Settings providing the logging symbols.
        current_logger: Optional logger instance.
        resolve_host: Resolve the host name and check the resulting addresses.

    Returns:
        True if the URL may be fetched.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if not url or not isinstance(url, str):
        return _reject("URL cannot be empty", app_settings, logger_to_use)
    if len(url) > MAX_URL_LENGTH:
        return _reject(
            f"URL too long (max {MAX_URL_LENGTH} characters)",
            app_settings,
            logger_to_use,
        )

    lowered = url.lower()
    if lowered.startswith(BLOCKED_SCHEMES):
        return _reject(
            f"Blocked URL scheme: {url}", app_settings, logger_to_use
        )
    if not lowered.startswith(("http://", "https://")):
        return _reject(
            f"URL must use http or https: {url}", app_settings, logger_to_use
        )
    if not URL_PATTERN.match(url):
        return _reject(
            f"URL contains invalid characters: {url}",
            app_settings,
            logger_to_use,
        )

    host = (urlsplit(url).hostname or "").lower()
    if not host:
        return _reject(
            f"URL has no host: {url}", app_settings, logger_to_use
        )
    if _is_blocked_host(host):
        return _reject(
            f"URL points to a local or private address: {url}",
            app_settings,
            logger_to_use,
        )

    if resolve_host:
        try:
            addresses = {
                info[4][0] for info in socket.getaddrinfo(host, None)
            }
        except socket.gaierror as e:
            return _reject(
                f"Could not resolve host '{host}': {e}",
                app_settings,
                logger_to_use,
            )
        blocked = sorted(a for a in addresses if _is_blocked_address(a))
        if blocked:
            return _reject(
                f"Host '{host}' resolves to a private address ({', '.join(blocked)})",
                app_settings,
                logger_to_use,
            )

    return True


def validate_path(
    path: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Allow-list check for file paths handed to downloads, scripts and the CLI."""
    logger_to_use = current_logger if current_logger else module_logger

    if not path or not isinstance(path, str):
        return _reject("Path cannot be empty", app_settings, logger_to_use)
    if len(path) > MAX_PATH_LENGTH:
        return _reject(
            f"Path too long (max {MAX_PATH_LENGTH} characters)",
            app_settings,
            logger_to_use,
        )
    if any(ch in PATH_FORBIDDEN_CHARS for ch in path):
        return _reject(
            f"Path contains dangerous characters: {path}",
            app_settings,
            logger_to_use,
        )
    if "../" in path or path == ".." or path.endswith("/.."):
        return _reject(
            f"Path traversal detected: {path}", app_settings, logger_to_use
        )
    if not PATH_PATTERN.match(path):
        return _reject(
            f"Path contains invalid characters: {path}",
            app_settings,
            logger_to_use,
        )
    return True


def validate_package_name(
    name: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    logger_to_use = current_logger if current_logger else module_logger

    if not name or not isinstance(name, str):
        return _reject(
            "Package name cannot be empty", app_settings, logger_to_use
        )
    if len(name) > MAX_PACKAGE_NAME_LENGTH:
        return _reject(
            f"Package name too long (max {MAX_PACKAGE_NAME_LENGTH} characters): {name[:40]}...",
            app_settings,
            logger_to_use,
        )
    if not PACKAGE_NAME_PATTERN.match(name):
        return _reject(
            f"Invalid package name: {name}", app_settings, logger_to_use
        )
    return True


def validate_version_string(
    version: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    logger_to_use = current_logger if current_logger else module_logger

    if not version or not isinstance(version, str):
        return _reject(
            "Version cannot be empty", app_settings, logger_to_use
        )
    if len(version) > MAX_VERSION_LENGTH:
        return _reject(
            f"Version string too long (max {MAX_VERSION_LENGTH} characters)",
            app_settings,
            logger_to_use,
        )
    if not VERSION_STRING_PATTERN.match(version):
        return _reject(
            f"Invalid version string: {version}", app_settings, logger_to_use
        )
    return True


def validate_command_name(
    command_name: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    logger_to_use = current_logger if current_logger else module_logger

    if not command_name or not COMMAND_NAME_PATTERN.match(command_name):
        return _reject(
            f"Invalid command name: {command_name}",
            app_settings,
            logger_to_use,
        )
    return True


def validate_username(
    username: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Linux user names: letters, digits, underscore and hyphen, not starting
    with a digit or hyphen, at most 32 characters.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if not username or not isinstance(username, str):
        return _reject(
            "Username cannot be empty", app_settings, logger_to_use
        )
    if len(username) > MAX_USERNAME_LENGTH:
        return _reject(
            f"Username too long (max {MAX_USERNAME_LENGTH} characters): {username}",
            app_settings,
            logger_to_use,
        )
    if not USERNAME_PATTERN.match(username):
        return _reject(
            f"Invalid username: {username}", app_settings, logger_to_use
        )
    return True
