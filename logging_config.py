"""
Logging configuration for the quote builder.
Call setup_logging() once when the app is created.

Records logged while a request is being served carry the HTTP method and
path, added by RequestContextFilter. Managers pass ids such as user_id
and quote_id through `extra=`.
"""
import json
import logging
from datetime import datetime

from flask import has_request_context, request

# Extra attributes the app passes through `extra=` or the request filter
CONTEXT_FIELDS = ("method", "path", "user_id", "table", "quote_id", "item_id", "route")


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request when there is one."""

    def filter(self, record):
        if not has_request_context():
            return True
        record.method = request.method
        record.path = request.path
        return True


def _context(record):
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, then request context."""

    def format(self, record):
        entry = {
            "ts": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """`HH:MM:SS LEVEL logger: message  (GET /api/quotes user=...)`, colored by level."""
    COLORS = {
        "DEBUG": "\033[36m", "INFO": "\033[32m",
        "WARNING": "\033[33m", "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.utcnow().strftime("%H:%M:%S")
        line = f"{color}{ts} {record.levelname:<7} {record.name}: {record.getMessage()}{self.RESET}"
        ctx = _context(record)
        if ctx:
            where = " ".join(filter(None, (ctx.pop("method", None), ctx.pop("path", None))))
            rest = " ".join(f"{k}={v}" for k, v in ctx.items())
            line += "  (" + " ".join(filter(None, (where, rest))) + ")"
        if record.exc_info and record.exc_info[0]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level="INFO", json_logs=False):
    """
    Configure the root logger.

    Args:
        level: log level name (DEBUG, INFO, ...)
        json_logs: emit JSON lines instead of the colored console format
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    console.addFilter(RequestContextFilter())
    root.addHandler(console)

    for name in ("urllib3", "werkzeug"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging configured: level=%s json=%s", level, json_logs)
