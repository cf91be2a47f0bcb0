# common/network_utils.py
# -*- coding: utf-8 -*-
"""
HTTP downloads with allow-list validation, retries and checksum checks.
"""

import hashlib
import logging
import time
from pathlib import Path
from typing import Optional, Union

import requests

from setup.config_models import AppSettings, DownloadSettings

from .command_utils import get_symbols, log_message
from .errors import DownloadError
from .security import validate_path, validate_url

module_logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


def sha256_of_file(file_path: Union[str, Path]) -> str:
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE * 8), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def _fetch_once(url: str, dest: Path, timeout: int) -> None:
    response = requests.get(url, stream=True, timeout=timeout)
    try:
        response.raise_for_status()
        with open(dest, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
    finally:
        response.close()


def download_file(
    url: str,
    dest_path: Union[str, Path],
    expected_checksum: Optional[str] = None,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    resolve_host: bool = False,
) -> Path:
    """
    Download `url` to `dest_path`.

    The URL and destination are validated before any network activity. The
    download is attempted ``download.max_retries`` times with
    ``download.retry_delay`` seconds between attempts. With
    `expected_checksum` the file's SHA-256 must match, otherwise it is
    deleted.

    Args:
        url: http(s) URL on the download allow-list.
        dest_path: Where to write the file. Parent directories are created.
        expected_checksum: Optional hex SHA-256 digest.
        app_settings: Settings providing retry policy and symbols.
        current_logger: Optional logger instance.
        resolve_host: Also resolve the host and refuse private addresses.

    Returns:
        The destination path.

    Raises:
        DownloadError: Blocked URL, invalid destination, exhausted retries or
            checksum mismatch.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    policy = app_settings.download if app_settings else DownloadSettings()

    if not validate_url(url, app_settings, logger_to_use, resolve_host=resolve_host):
        raise DownloadError(f"URL failed validation: {url}", url=url)

    dest = Path(dest_path)
    if not validate_path(str(dest), app_settings, logger_to_use):
        raise DownloadError(
            f"Destination path failed validation: {dest}", url=url
        )

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DownloadError(
            f"Cannot create directory {dest.parent}: {e}", url=url
        ) from e

    last_error: Optional[Exception] = None
    for attempt in range(1, policy.max_retries + 1):
        log_message(
            f"{symbols.get('gear', '⚙️')} Downloading {url} (attempt {attempt}/{policy.max_retries})",
            "info",
            logger_to_use,
            app_settings,
        )
        try:
            _fetch_once(url, dest, policy.timeout)
            break
        except requests.exceptions.HTTPError as http_err:
            last_error = http_err
            log_message(
                f"{symbols.get('warning', '!')} HTTP error downloading {url}: {http_err}",
                "warning",
                logger_to_use,
                app_settings,
            )
        except requests.exceptions.Timeout as timeout_err:
            last_error = timeout_err
            log_message(
                f"{symbols.get('warning', '!')} Timeout downloading {url}: {timeout_err}",
                "warning",
                logger_to_use,
                app_settings,
            )
        except requests.exceptions.RequestException as req_err:
            last_error = req_err
            log_message(
                f"{symbols.get('warning', '!')} Error downloading {url}: {req_err}",
                "warning",
                logger_to_use,
                app_settings,
            )
        except OSError as io_err:
            last_error = io_err
            log_message(
                f"{symbols.get('warning', '!')} Could not write {dest}: {io_err}",
                "warning",
                logger_to_use,
                app_settings,
            )
        if attempt < policy.max_retries:
            time.sleep(policy.retry_delay)
    else:
        dest.unlink(missing_ok=True)
        raise DownloadError(
            f"Failed to download {url} after {policy.max_retries} attempts: {last_error}",
            url=url,
        )

    if expected_checksum:
        actual = sha256_of_file(dest)
        if actual.lower() != expected_checksum.strip().lower():
            dest.unlink(missing_ok=True)
            raise DownloadError(
                f"Checksum mismatch for {url}: expected {expected_checksum}, got {actual}",
                url=url,
            )
        log_message(
            f"{symbols.get('success', '✅')} Checksum verified for {dest.name}",
            "debug",
            logger_to_use,
            app_settings,
        )

    log_message(
        f"{symbols.get('success', '✅')} Downloaded {url} to {dest}",
        "info",
        logger_to_use,
        app_settings,
    )
    return dest


def fetch_text(
    url: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    GET a small text resource (a release version marker, a checksum file)
    with the same allow-list and retry policy as download_file.
    """
    logger_to_use = current_logger if current_logger else module_logger
    policy = app_settings.download if app_settings else DownloadSettings()

    if not validate_url(url, app_settings, logger_to_use):
        raise DownloadError(f"URL failed validation: {url}", url=url)

    last_error: Optional[Exception] = None
    for attempt in range(1, policy.max_retries + 1):
        try:
            response = requests.get(url, timeout=policy.timeout)
            response.raise_for_status()
            return response.text
        except requests.exceptions.RequestException as req_err:
            last_error = req_err
            log_message(
                f"Attempt {attempt}/{policy.max_retries} to fetch {url} failed: {req_err}",
                "warning",
                logger_to_use,
                app_settings,
            )
            if attempt < policy.max_retries:
                time.sleep(policy.retry_delay)
    raise DownloadError(
        f"Failed to fetch {url} after {policy.max_retries} attempts: {last_error}",
        url=url,
    )
