"""Tests for logging configuration."""

import json
import logging

from gke_prometheus_discovery.config import LoggingConfig
from gke_prometheus_discovery.logging_config import JSONFormatter, TextFormatter, configure_logging


def _record(msg="test", args=()):
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=args, exc_info=None,
    )


class TestJSONFormatter:
    def test_formats_as_json(self):
        parsed = json.loads(JSONFormatter().format(_record("hello %s", ("world",))))
        assert parsed["message"] == "hello world"
        assert parsed["level"] == "INFO"
        assert "timestamp" in parsed

    def test_includes_extra_fields(self):
        record = _record()
        record.cluster = "prod"  # type: ignore
        record.added = ["a", "b"]  # type: ignore
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["cluster"] == "prod"
        assert parsed["added"] == ["a", "b"]

    def test_omits_unset_extra_fields(self):
        parsed = json.loads(JSONFormatter().format(_record()))
        assert "cluster" not in parsed


class TestTextFormatter:
    def test_appends_tick_fields(self):
        record = _record("Cycle complete")
        record.state = "done"  # type: ignore
        record.elapsed_seconds = 0.42  # type: ignore
        line = TextFormatter().format(record)
        assert line.endswith("Cycle complete state=done elapsed_seconds=0.42")

    def test_joins_cluster_lists(self):
        record = _record("Detected cluster changes")
        record.added = ["a", "b"]  # type: ignore
        record.removed = []  # type: ignore
        line = TextFormatter().format(record)
        assert line.endswith("added=a,b removed=-")

    def test_plain_message_without_extras(self):
        assert TextFormatter().format(_record("hello")).endswith("[test] hello")


class TestConfigureLogging:
    def test_json_format(self):
        configure_logging(LoggingConfig(level="DEBUG", format="json"))
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert any(isinstance(h.formatter, JSONFormatter) for h in root.handlers)

    def test_text_format(self):
        configure_logging(LoggingConfig(level="WARNING", format="text"))
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert any(isinstance(h.formatter, TextFormatter) for h in root.handlers)

    def test_suppresses_noisy_loggers(self):
        configure_logging(LoggingConfig())
        assert logging.getLogger("google").level >= logging.WARNING
        assert logging.getLogger("urllib3").level >= logging.WARNING
