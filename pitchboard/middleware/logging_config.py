"""
Structured logging configuration.

- Development: human-readable colored lines, tagged with the collection
  and a DEGRADED marker when the cache mirror served the call
- Production: one JSON object per line (log aggregator compatible)
- LOG_LEVEL sets the level; LOG_FORMAT ("json" / "readable") overrides the
  formatter choice

Sync-layer code passes context through ``extra=``:

    logger.warning("...", extra={"collection": "winners", "degraded": True})
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Attributes copied from LogRecord extras into the JSON payload
SYNC_FIELDS = ("collection", "store", "degraded", "duration_ms", "record_id")

_NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "redis")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def __init__(self, service="pitchboard"):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        for key in SYNC_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color=True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color, reset = (self.COLORS.get(record.levelname, ""), self.RESET) if self.use_color else ("", "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        tags = ""
        collection = getattr(record, "collection", None)
        if collection:
            tags += f" <{collection}>"
        if getattr(record, "degraded", False):
            tags += " DEGRADED"
        duration = getattr(record, "duration_ms", None)
        suffix = f" [{duration:.0f}ms]" if duration is not None else ""

        line = f"{color}{ts} {record.levelname:<8}{reset} {record.name}{tags}: {record.getMessage()}{suffix}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def build_formatter(fmt, service="pitchboard"):
    """Return the formatter for *fmt* ("json" or "readable")."""
    if fmt == "json":
        return JSONFormatter(service)
    return ReadableFormatter(use_color=sys.stderr.isatty())


def configure_logging(app):
    """
    Install a single stderr handler on the root logger.

    Defaults: DEBUG + readable in development/testing, INFO + JSON otherwise.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = os.getenv("LOG_FORMAT", "json" if is_prod else "readable").lower()

    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(build_formatter(fmt))
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
