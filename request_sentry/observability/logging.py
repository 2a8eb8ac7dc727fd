"""
Structured JSON logging with per-request context enrichment.

Every log line is a single JSON object with guaranteed keys: ``timestamp``,
``level``, ``logger``, ``message``, ``service``, and optional contextual
fields (``method``, ``path``, ``error_type``, ``thread``, ``func``,
``line``).  On a terminal the console handler switches to a coloured,
human-readable format unless ``LOG_FORMAT=json`` is set.
"""

import json
import logging
import os
import sys
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import APP_VERSION, LOG_BACKUP_COUNT, LOG_MAX_BYTES
from .pii import PiiScrubber

# Thread-local storage for per-request context (method, path, etc.)
_context = threading.local()

# Default service name, overridable via LOG_SERVICE_NAME env var
SERVICE_NAME: str = os.environ.get("LOG_SERVICE_NAME", "request-sentry")


def set_log_context(**kwargs: Any) -> None:
    """Attach key-value pairs to the current thread's log context.

    Typical usage inside Flask ``before_request``::

        set_log_context(method=request.method, path=request.path)
    """
    if not hasattr(_context, "data"):
        _context.data = {}
    _context.data.update(kwargs)


def clear_log_context() -> None:
    """Remove all per-request context from the current thread."""
    _context.data = {}


def get_log_context() -> Dict[str, Any]:
    """Return a *copy* of the current thread's context dict."""
    return dict(getattr(_context, "data", {}))


# ── JSON Formatter ───────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit each record as a single-line JSON object."""

    # Keys that are promoted from ``extra`` to the top-level JSON.
    _PROMOTE_KEYS = frozenset(
        {
            "method",
            "path",
            "status_code",
            "error_type",
            "event_id",
            "client",
        }
    )

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": SERVICE_NAME,
            "version": APP_VERSION,
            "thread": record.threadName,
        }

        # Add source location for DEBUG / ERROR+
        if record.levelno <= logging.DEBUG or record.levelno >= logging.ERROR:
            entry["func"] = record.funcName
            entry["line"] = record.lineno
            entry["file"] = record.pathname

        ctx = get_log_context()
        if ctx:
            entry.update(ctx)

        for key in self._PROMOTE_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
            entry["error_type"] = record.exc_info[0].__name__

        return json.dumps(entry, default=str, ensure_ascii=False)


# ── Plain Formatter (dev / console) ─────────────────────────────


class _DevFormatter(logging.Formatter):
    """Human-readable coloured output for local development."""

    _COLORS = {
        "DEBUG": "\033[36m",     # cyan
        "INFO": "\033[32m",      # green
        "WARNING": "\033[33m",   # yellow
        "ERROR": "\033[31m",     # red
        "CRITICAL": "\033[35m",  # magenta
    }
    _RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self._COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        ctx = get_log_context()
        prefix = f"[{ctx['method']} {ctx.get('path', '')}] " if ctx.get("method") else ""
        base = (
            f"{color}{ts} {record.levelname:<8}{self._RESET} "
            f"{record.name} {prefix}{record.getMessage()}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


# ── Logger Factory ───────────────────────────────────────────────


def setup_structured_logger(
    name: str,
    log_file: Optional[str] = None,
    *,
    level: Optional[int] = None,
    debug: bool = False,
) -> logging.Logger:
    """Create (or retrieve) a structured logger.

    Args:
        name: Logger name.
        log_file: Optional filename under ``REQUEST_SENTRY_LOG_DIR``
            (default ``logs/``).  No file handler is attached without it.
        level: Explicit level (overrides *debug*).
        debug: If ``True``, sets level to ``DEBUG``.

    Returns:
        A configured ``logging.Logger``.
    """
    if level is None:
        level = logging.DEBUG if debug else logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        for h in logger.handlers:
            h.setLevel(level)
        return logger

    scrubber = PiiScrubber()

    if log_file:
        log_path = Path(os.environ.get("REQUEST_SENTRY_LOG_DIR", "logs")) / log_file
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(_JsonFormatter())
        file_handler.addFilter(scrubber)
        logger.addHandler(file_handler)

    # ── Console handler: JSON in prod, coloured in dev ───────────
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if os.environ.get("LOG_FORMAT", "").lower() == "json":
        console_handler.setFormatter(_JsonFormatter())
    else:
        console_handler.setFormatter(_DevFormatter())
    console_handler.addFilter(scrubber)
    logger.addHandler(console_handler)

    return logger
