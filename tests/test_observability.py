"""
Tests for observability — logging setup and maintenance events.
"""

import logging

import pytest

from hostkeeper.core.observability.events import (
    Event,
    EventLevel,
    LoggingEventSink,
    RecordingEventSink,
)
from hostkeeper.core.observability.logging_config import SUCCESS, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_console_level(self):
        setup_logging(level="INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back(self):
        setup_logging(level="CHATTY")
        assert logging.getLogger().level == logging.WARNING

    def test_file_keeps_detail(self, tmp_path):
        log_file = tmp_path / "logs" / "hostkeeper.log"
        setup_logging(level="WARNING", log_file=str(log_file))
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 2

        logging.getLogger("hostkeeper.test").info("stage homebrew started")
        for handler in root.handlers:
            handler.flush()
        assert "stage homebrew started" in log_file.read_text()

    def test_success_level_registered(self):
        assert logging.getLevelName(SUCCESS) == "SUCCESS"

    def test_third_party_quieted(self):
        setup_logging(level="INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING


class TestResolveLevel:
    def test_flags_win(self, monkeypatch):
        monkeypatch.setenv("HK_LOG_LEVEL", "ERROR")
        assert resolve_level(debug=True, quiet=True) == "DEBUG"
        assert resolve_level(verbose=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("HK_LOG_LEVEL", "INFO")
        assert resolve_level() == "INFO"
        monkeypatch.delenv("HK_LOG_LEVEL")
        assert resolve_level() == "WARNING"


class TestEvents:
    def test_recording(self):
        sink = RecordingEventSink()
        sink.info("Checking", "connectivity")
        sink.warning("Skipped", "app-store")
        assert sink.messages() == ["Checking", "Skipped"]
        assert sink.messages(EventLevel.WARNING) == ["Skipped"]
        assert sink.events[0].to_dict() == {
            "level": "info", "message": "Checking", "stage": "connectivity",
        }

    def test_forwarding(self):
        inner = RecordingEventSink()
        RecordingEventSink(forward=inner).error("boom")
        assert inner.events == [Event(EventLevel.ERROR, "boom")]

    def test_logging_sink(self, caplog):
        with caplog.at_level(logging.INFO, logger="hostkeeper.events"):
            sink = LoggingEventSink()
            sink.success("Repaired disk0", "disk-health")
            sink.warning("disk1 failed verification")
        assert caplog.records[0].levelno == SUCCESS
        assert caplog.records[0].getMessage() == "[disk-health] Repaired disk0"
        assert caplog.records[1].getMessage() == "disk1 failed verification"
