"""
Observability helpers for request-sentry's own diagnostics.

Provides:
- ``setup_structured_logger``: JSON / coloured console logging
- ``set_log_context`` / ``clear_log_context``: per-request log fields
- ``PiiScrubber``: filters secrets from log records
"""

from .logging import clear_log_context, get_log_context, set_log_context, setup_structured_logger
from .pii import PiiScrubber

__all__ = [
    "setup_structured_logger",
    "set_log_context",
    "clear_log_context",
    "get_log_context",
    "PiiScrubber",
]
