"""
Structured logging configuration.

- Development / testing: one readable line per record, tagged with the
  request id and, for completion calls, the prompt purpose
- Production: one JSON object per record
- Log level: LOG_LEVEL env variable

Every record emitted while a request is being served is stamped with
``request_id``, ``user_id`` and ``project_id`` by ``RequestContextFilter``,
so service-layer messages (change transitions, baselines, completion
calls) can be joined back to the request that caused them.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Attributes copied into JSON log lines when set on the record
_EXTRA_FIELDS = (
    "request_id",
    "user_id",
    "project_id",
    "change_request_id",
    "purpose",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

# Library loggers that are too chatty at DEBUG
_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "openai", "httpx", "httpcore")


class RequestContextFilter(logging.Filter):
    """Stamp request-scoped identifiers onto records that do not carry them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = getattr(g, "request_id", None)
        if getattr(record, "user_id", None) is None:
            record.user_id = getattr(g, "jwt_user_id", None)
        if getattr(record, "project_id", None) is None:
            record.project_id = (request.view_args or {}).get("project_id")
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",      # cyan
        "INFO": "\033[32m",       # green
        "WARNING": "\033[33m",    # yellow
        "ERROR": "\033[31m",      # red
        "CRITICAL": "\033[35m",   # magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now().strftime("%H:%M:%S")
        tags = ""
        request_id = getattr(record, "request_id", None)
        if request_id:
            tags += f" [{request_id}]"
        purpose = getattr(record, "purpose", None)
        if purpose:
            tags += f" <{purpose}>"
        duration = getattr(record, "duration_ms", None)
        dur_str = f" [{duration:.0f}ms]" if duration is not None else ""
        base = (f"{color}{ts} {record.levelname:<8}{self.RESET}{tags} "
                f"{record.name}: {record.getMessage()}{dur_str}")
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def configure_logging(app):
    """
    Install a single root handler with the environment's formatter.

    LOG_LEVEL defaults to INFO in production and DEBUG elsewhere.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()  # tests build several apps
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in _QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
