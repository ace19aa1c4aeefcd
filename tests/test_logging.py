"""Tests for levelled structured logging."""
from __future__ import annotations

import json
import logging

import pytest

from voxkit.core import logging as vlog
from voxkit.core.logging import (
    ColoredConsoleFormatter,
    JsonlFormatter,
    LogLevel,
    coerce_level,
    configure_logging,
    get_level,
    get_logger,
    info,
    set_level,
    set_request_id,
    verbose,
)
from voxkit.core.logging import formatters


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=1)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    logger = get_logger("voxkit.test")
    handler = _ListHandler()
    logger.addHandler(handler)
    previous = get_level()
    yield logger, handler
    logger.removeHandler(handler)
    set_level(previous)


def _record(**extra):
    record = logging.LogRecord("voxkit.cache", logging.INFO, __file__, 1, "clone_prompt_hit", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLevels:

    @pytest.mark.parametrize("value, expected", [
        (1, LogLevel.MINIMAL),
        ("3", LogLevel.VERBOSE),
        ("debug", LogLevel.DEBUG),
        ("WARNING", LogLevel.MINIMAL),
        (logging.INFO, LogLevel.NORMAL),
        ("nonsense", LogLevel.NORMAL),
        (None, LogLevel.NORMAL),
    ])
    def test_coerce(self, value, expected):
        assert coerce_level(value) == expected

    def test_info_filtered_at_minimal(self, captured):
        logger, handler = captured
        set_level(LogLevel.MINIMAL)
        info(logger, "hidden")
        assert handler.records == []

    def test_verbose_needs_verbose_level(self, captured):
        logger, handler = captured
        set_level(LogLevel.NORMAL)
        verbose(logger, "hidden")
        info(logger, "shown", voice="alice")
        assert [r.getMessage() for r in handler.records] == ["shown"]
        assert handler.records[0].extra_data == {"voice": "alice"}

    def test_request_id_attached(self, captured):
        logger, handler = captured
        set_level(LogLevel.NORMAL)
        set_request_id("req-123")
        try:
            info(logger, "tagged")
        finally:
            set_request_id("-")
        assert handler.records[0].request_id == "req-123"


class TestFormatters:

    def test_jsonl(self):
        line = JsonlFormatter().format(_record(
            tag="INFO", request_id="abc", numeric_level=2, event=None, seconds=0.25,
            extra_data={"tier": "disk", "voice": "alice"},
        ))
        payload = json.loads(line)
        assert payload["message"] == "clone_prompt_hit"
        assert payload["request_id"] == "abc"
        assert payload["logger"] == "voxkit.cache"
        assert payload["seconds"] == 0.25
        assert payload["extra"] == {"tier": "disk", "voice": "alice"}

    def test_console_without_colors(self, monkeypatch):
        monkeypatch.setattr(formatters, "USE_COLORS", False)
        line = ColoredConsoleFormatter().format(_record(
            tag="WARN", request_id="abc", extra_data={"tier": "derived"}, seconds=1.5,
        ))
        assert "[ WARN  ]" in line
        assert "(abc)" in line
        assert "tier=derived" in line
        assert "1.500s" in line
        assert "\033[" not in line

    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert formatters.supports_color() is False


class TestJsonlPersistence:

    def test_records_written_to_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VOXKIT_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("VOXKIT_JSONL_FILE", "test.jsonl")
        monkeypatch.setenv("VOXKIT_LOG_LEVEL", "2")
        try:
            configure_logging(force=True)
            info(get_logger("voxkit.persist"), "persisted", voice="alice")
            for handler in logging.getLogger().handlers:
                handler.flush()

            lines = (tmp_path / "test.jsonl").read_text(encoding="utf-8").splitlines()
            payloads = [json.loads(line) for line in lines]
            assert any(p["message"] == "persisted" and p["extra"] == {"voice": "alice"} for p in payloads)
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            monkeypatch.undo()
            configure_logging(force=True)
            assert vlog.get_log_config().get("log_dir") is None
