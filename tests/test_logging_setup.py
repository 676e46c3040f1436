"""Tests for root logging configuration."""

import io
import json
import logging

import pytest

from tiercache.config import LoggingSettings
from tiercache.logging_setup import configure_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_json_output_includes_extra(self) -> None:
        stream = io.StringIO()
        configure_logging(LoggingSettings(level="DEBUG", format="json"), stream=stream)

        logging.getLogger("tiercache.test").info(
            "Entry demoted", extra={"cache_key": "a", "victim_key": "b"}
        )

        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["event"] == "Entry demoted"
        assert record["level"] == "info"
        assert record["logger"] == "tiercache.test"
        assert record["cache_key"] == "a"
        assert record["victim_key"] == "b"
        assert "timestamp" in record

    def test_text_output(self) -> None:
        stream = io.StringIO()
        configure_logging(LoggingSettings(level="INFO", format="text"), stream=stream)
        logging.getLogger("tiercache.test").warning("plain message")
        output = stream.getvalue()
        assert "WARNING" in output
        assert "plain message" in output

    def test_level_is_applied(self) -> None:
        stream = io.StringIO()
        configure_logging(LoggingSettings(level="warning", format="text"), stream=stream)
        logging.getLogger("tiercache.test").info("hidden")
        assert stream.getvalue() == ""
        assert logging.getLogger().level == logging.WARNING

    def test_reconfigure_replaces_handler(self) -> None:
        first = configure_logging(LoggingSettings(format="text"), stream=io.StringIO())
        second = configure_logging(LoggingSettings(format="json"), stream=io.StringIO())
        root = logging.getLogger()
        assert first not in root.handlers
        assert second in root.handlers
