"""Tests for log formatting."""

import json
import logging
import sys

from piiguard.core.logging_setup import JSONFormatter, setup_logging


def _record(msg="Pass 'x' failed", exc_info=None, **extra):
    record = logging.LogRecord("piiguard.test", logging.ERROR, __file__, 1, msg, None, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert data["severity"] == "ERROR"
        assert data["logger"] == "piiguard.test"
        assert data["message"] == "Pass 'x' failed"
        assert "timestamp" in data
        assert "exception" not in data

    def test_extra_fields_copied(self):
        data = json.loads(JSONFormatter().format(_record(pass_name="high_recall", document_id="doc-1")))
        assert data["pass_name"] == "high_recall"
        assert data["document_id"] == "doc-1"

    def test_exception(self):
        try:
            raise ValueError("bad span")
        except ValueError:
            record = _record(exc_info=sys.exc_info())
        data = json.loads(JSONFormatter().format(record))
        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad span"
        assert "Traceback" in data["exception"]["stacktrace"]


class TestSetupLogging:
    def test_single_handler_and_level(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging("json", "debug")
            setup_logging("json", "debug")
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.DEBUG

            setup_logging("text", "nonsense")
            assert root.level == logging.INFO
            assert not isinstance(root.handlers[0].formatter, JSONFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
