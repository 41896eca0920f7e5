"""Tests for logging_config.py."""

from __future__ import annotations

import json
import logging
import sys

from logging_config import JSONFormatter, RequestContextFilter


def _record(**extra):
    record = logging.LogRecord("progress", logging.INFO, __file__, 1, "Marked %s:%s", (2, 5), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_single_line_json(self):
        line = JSONFormatter().format(_record())
        entry = json.loads(line)
        assert entry["message"] == "Marked 2:5"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "progress"
        assert "\n" not in line

    def test_extra_fields(self):
        entry = json.loads(JSONFormatter().format(_record(request_id="abc123", device_id="dev-1")))
        assert entry["request_id"] == "abc123"
        assert entry["device_id"] == "dev-1"
        assert "user_id" not in entry

    def test_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


class TestInitLogging:
    def test_json_handler_installed(self, tmp_path):
        from app import create_app
        create_app({"DATABASE": str(tmp_path / "log.db"), "LOG_FORMAT": "json"})
        handlers = logging.getLogger().handlers
        assert any(isinstance(h.formatter, JSONFormatter) for h in handlers)
        assert logging.getLogger("werkzeug").level == logging.WARNING


class TestRequestContext:
    def test_outside_request(self):
        record = _record()
        assert RequestContextFilter().filter(record) is True
        assert record.request_id == "-"
        assert "request_id" not in json.loads(JSONFormatter().format(record))

    def test_request_id_header_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "trace-42"})
        assert resp.headers["X-Request-ID"] == "trace-42"

    def test_request_id_generated(self, client):
        assert len(client.get("/health").headers["X-Request-ID"]) == 12
