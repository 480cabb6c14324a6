"""Unit tests for structured logging"""

import json
import logging
import sys

from backend.app.core import logging as app_logging
from backend.app.core.logging import JSONFormatter, get_logger, setup_logging


class TestJSONFormatter:
    """Test JSON log output"""

    def test_basic_fields(self):
        record = logging.LogRecord("dispatch.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "dispatch.test"

    def test_correlation_fields(self):
        record = logging.LogRecord("dispatch.test", logging.INFO, __file__, 10, "ranked", (), None)
        record.job_id = 42
        record.contractor_id = 7

        data = json.loads(JSONFormatter().format(record))

        assert data["job_id"] == 42
        assert data["contractor_id"] == 7
        assert "dispatcher_id" not in data

    def test_exception_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("dispatch.test", logging.ERROR, __file__, 10, "failed", (), sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestSetupLogging:
    """Test logging configuration"""

    def test_json_handler_installed(self, monkeypatch):
        monkeypatch.setattr(app_logging.settings, "LOG_FORMAT", "json")
        root = logging.getLogger()
        saved, level = root.handlers[:], root.level
        try:
            setup_logging()

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved
            root.setLevel(level)

    def test_text_format(self, monkeypatch):
        monkeypatch.setattr(app_logging.settings, "LOG_FORMAT", "text")
        root = logging.getLogger()
        saved, level = root.handlers[:], root.level
        try:
            setup_logging()

            assert not isinstance(root.handlers[0].formatter, JSONFormatter)
        finally:
            root.handlers[:] = saved
            root.setLevel(level)

    def test_get_logger(self):
        assert get_logger("dispatch.x") is logging.getLogger("dispatch.x")
