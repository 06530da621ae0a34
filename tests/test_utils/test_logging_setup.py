"""Tests for logging setup and the request timer."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from construction_forecaster.config import LoggingConfig
from construction_forecaster.utils.logging import (
    JsonLineFormatter,
    Timer,
    build_handlers,
    configure_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    saved = list(logging.root.handlers)
    level = logging.root.level
    yield
    for handler in logging.root.handlers:
        if handler not in saved:
            handler.close()
    logging.root.handlers[:] = saved
    logging.root.setLevel(level)


def _record(msg: str = "hello %s", args: tuple = ("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord("cf.test", logging.WARNING, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonLineFormatter:
    def test_core_fields(self):
        entry = json.loads(JsonLineFormatter().format(_record()))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "cf.test"
        assert entry["msg"] == "hello world"
        assert entry["ts"].endswith("Z")

    def test_extra_keys_promoted(self):
        entry = json.loads(JsonLineFormatter().format(_record(project_id="proj-1", steps=5)))
        assert entry["project_id"] == "proj-1"
        assert entry["steps"] == 5
        assert "args" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "cf.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        entry = json.loads(JsonLineFormatter().format(record))
        assert "RuntimeError: boom" in entry["exc"]


class TestConfigureLogging:
    def test_handlers_without_file(self):
        handlers = build_handlers(LoggingConfig(log_file=""))
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)

    def test_file_handler_creates_directory(self, tmp_path):
        log_file = tmp_path / "nested" / "cf.log"
        handlers = build_handlers(LoggingConfig(log_file=str(log_file), json_format=True))
        try:
            assert len(handlers) == 2
            assert log_file.parent.is_dir()
            assert all(isinstance(h.formatter, JsonLineFormatter) for h in handlers)
        finally:
            for handler in handlers:
                handler.close()

    def test_configure_sets_level_and_writes_file(self, tmp_path):
        log_file = tmp_path / "cf.log"
        configure_logging(LoggingConfig(level="debug", log_file=str(log_file)))
        assert logging.root.level == logging.DEBUG
        assert logging.getLogger("lightgbm").level == logging.WARNING

        logging.getLogger("construction_forecaster.test").debug("written %d", 1)
        for handler in logging.root.handlers:
            handler.flush()
        assert "written 1" in log_file.read_text(encoding="utf-8")


class TestTimer:
    def test_unstarted_timer_reads_zero(self):
        assert Timer().elapsed_ms == 0.0

    def test_elapsed_frozen_after_exit(self):
        with Timer() as timer:
            sum(range(1000))
        first = timer.elapsed_ms
        assert first >= 0.0
        assert timer.elapsed_ms == first

    def test_timer_stops_when_block_raises(self):
        timer = Timer()
        with pytest.raises(ValueError):
            with timer:
                raise ValueError("bad")
        stopped = timer.elapsed_ms
        assert stopped >= 0.0
        assert timer.elapsed_ms == stopped
