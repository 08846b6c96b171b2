"""
Logging setup for LexiQuest.

Every record emitted while a request is in flight carries the request id and
the acting profile id, so point awards, duel transitions and badge unlocks
can be traced back to the call that caused them. Production logs are
single-line JSON; development logs are plain text.
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request

access_logger = logging.getLogger("lexiquest.access")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s req=%(request_id)s profile=%(profile_id)s: %(message)s"


class RequestContextFilter(logging.Filter):
    """Stamp request_id and profile_id onto records ("-" outside a request)."""

    def __init__(self, auth_header: str):
        super().__init__()
        self.auth_header = auth_header

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(g, "request_id", "-")
            record.profile_id = request.headers.get(self.auth_header, "-")
        else:
            record.request_id = "-"
            record.profile_id = "-"
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "profile_id": getattr(record, "profile_id", "-"),
        }
        for key in ("status", "duration_ms"):
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def init_logging(app: Flask) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter(app.config.get("AUTH_HEADER", "X-Student-Id")))
    if app.config.get("LOG_FORMAT", "text") == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    for noisy in ("werkzeug", "urllib3", "rq.worker"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
        g.request_start = time.perf_counter()

    @app.after_request
    def _log_access(response):
        response.headers["X-Request-Id"] = getattr(g, "request_id", "-")
        if request.path == "/healthz":
            return response
        duration_ms = round((time.perf_counter() - g.get("request_start", time.perf_counter())) * 1000)
        access_logger.info(
            "%s %s -> %s (%dms)",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            extra={"status": response.status_code, "duration_ms": duration_ms},
        )
        return response
