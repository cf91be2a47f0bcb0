# tests/common/test_logging_config.py
import json
import logging

import pytest

from common.logging_config import (
    SUCCESS_LEVEL,
    RunLogFormatter,
    apply_log_level,
    get_event_log_path,
    get_run_log_path,
    log_event,
    parse_log_level,
    setup_run_logging,
)

RUN_ID = "20250101_120000"


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _flush():
    for handler in logging.getLogger().handlers:
        handler.flush()


@pytest.mark.parametrize(
    "name, expected",
    [
        ("DEBUG", logging.DEBUG),
        ("info", logging.INFO),
        ("WARN", logging.WARNING),
        ("SUCCESS", SUCCESS_LEVEL),
        ("ERROR", logging.ERROR),
        (None, logging.INFO),
        ("nonsense", logging.INFO),
    ],
)
def test_parse_log_level(name, expected):
    assert parse_log_level(name) == expected


def test_success_sits_between_info_and_warning():
    assert logging.INFO < SUCCESS_LEVEL < logging.WARNING
    assert logging.getLevelName(SUCCESS_LEVEL) == "SUCCESS"


def test_run_log_paths(tmp_path):
    assert get_run_log_path(RUN_ID, tmp_path) == tmp_path / f"wsl-installation-{RUN_ID}.log"
    assert str(get_run_log_path(RUN_ID, temp_mode=True)) == f"/tmp/wsl-install-log-{RUN_ID}.log"
    assert get_event_log_path(tmp_path / "x.log") == tmp_path / "x.ndjson"


def test_formatter_line_format():
    record = logging.LogRecord("t", logging.WARNING, __file__, 1, "careful", None, None)

    line = RunLogFormatter().format(record)

    assert line.endswith("] [WARN] careful")
    assert line.startswith("[")


def test_formatter_color():
    record = logging.LogRecord("t", SUCCESS_LEVEL, __file__, 1, "done", None, None)

    line = RunLogFormatter(use_color=True).format(record)

    assert line.startswith("\033[0;32m")
    assert line.endswith("\033[0m")


def test_setup_writes_text_log_and_events(tmp_path):
    logger = setup_run_logging(RUN_ID, log_level="INFO", logs_dir=tmp_path, enable_console=False)

    logger.info("plain message")
    logger.debug("hidden detail")
    logger.log(SUCCESS_LEVEL, "it worked")
    log_event(logger, "section_started", "Section apt", level=logging.DEBUG, section="apt_packages", progress=25)
    _flush()

    text = (tmp_path / f"wsl-installation-{RUN_ID}.log").read_text(encoding="utf-8")
    assert "[INFO] plain message" in text
    assert "[SUCCESS] it worked" in text
    assert "hidden detail" not in text
    # Debug-level events stay out of the text log at INFO
    assert "Section apt" not in text

    events = [
        json.loads(line)
        for line in (tmp_path / f"wsl-installation-{RUN_ID}.ndjson").read_text(encoding="utf-8").splitlines()
    ]
    assert len(events) == 1
    assert events[0]["event"] == "section_started"
    assert events[0]["run_id"] == RUN_ID
    assert events[0]["section"] == "apt_packages"
    assert events[0]["progress"] == 25


def test_log_level_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    logger = setup_run_logging(RUN_ID, logs_dir=tmp_path, enable_console=False, enable_events=False)

    logger.warning("not shown")
    logger.error("shown")
    _flush()

    text = (tmp_path / f"wsl-installation-{RUN_ID}.log").read_text(encoding="utf-8")
    assert "not shown" not in text
    assert "[ERROR] shown" in text


def test_apply_log_level_lowers_text_threshold_only(tmp_path):
    logger = setup_run_logging(RUN_ID, log_level="ERROR", logs_dir=tmp_path, enable_console=False)

    apply_log_level("DEBUG")
    logger.debug("now visible")
    _flush()

    text = (tmp_path / f"wsl-installation-{RUN_ID}.log").read_text(encoding="utf-8")
    assert "[DEBUG] now visible" in text
    assert (tmp_path / f"wsl-installation-{RUN_ID}.ndjson").read_text(encoding="utf-8") == ""
