"""
Structured logging configuration.

- JSON lines in production, readable text in development
- Every record emitted during a request carries its request, device and user ids
- One access line per request with method, path, status and duration
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request, session

NOISY_LOGGERS = ("werkzeug", "urllib3", "rq.worker")
CONTEXT_FIELDS = ("request_id", "device_id", "user_id")
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


class RequestContextFilter(logging.Filter):
    """Copy the current request's ids onto the record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            values = (
                g.get("request_id", "-"),
                session.get("device_id", "-"),
                session.get("_user_id", "-"),
            )
        else:
            values = ("-", "-", "-")
        for name, value in zip(CONTEXT_FIELDS, values):
            if not hasattr(record, name):
                setattr(record, name, value)
        return True


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, "-")
            if value != "-":
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def init_logging(app: Flask) -> None:
    """Install one stream handler on the root logger and the request hooks."""
    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())
    if app.config.get("LOG_FORMAT", "text") == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.started = time.perf_counter()

    @app.after_request
    def _access_log(response):
        elapsed = (time.perf_counter() - g.get("started", time.perf_counter())) * 1000
        app.logger.info("%s %s -> %s (%.0fms)", request.method, request.path, response.status_code, elapsed)
        response.headers["X-Request-ID"] = g.get("request_id", "")
        return response
