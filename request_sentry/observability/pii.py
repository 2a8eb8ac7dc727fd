"""
PII scrubbing filter for log records.

Capture failures are logged together with the error message and request
path, which may carry credentials.  This filter redacts passwords, tokens,
API keys and email addresses before a line is emitted.  It is installed on
every handler created by ``setup_structured_logger``.
"""

import logging
import re
from typing import FrozenSet, Pattern

# Patterns that match sensitive values in log messages.
_SENSITIVE_PATTERNS: list[tuple[Pattern, str]] = [
    # Bearer / Basic credentials in Authorization headers
    (re.compile(r"((?:Bearer|Basic)\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE), r"\1[REDACTED]"),
    # Generic secrets in key=value or key:value
    (
        re.compile(
            r"(?i)(api[_-]?key|token|secret|password|passwd|pw|authorization|"
            r"cookie|access_token|refresh_token|private_key)"
            r"(\s*[:=]\s*)"
            r"(['\"]?)([^\s'\"]{2,})\3"
        ),
        r"\1\2\3[REDACTED]\3",
    ),
    # DSN keys: https://<public_key>@host/project
    (re.compile(r"(https?://)[^:@/\s]+(?::[^@/\s]+)?@"), r"\1[REDACTED]@"),
    # Email addresses
    (re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+"), "[EMAIL_REDACTED]"),
]

# Record attribute names that are always fully redacted when present.
_REDACT_ATTRS: FrozenSet[str] = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "dsn",
        "credentials",
    }
)


class PiiScrubber(logging.Filter):
    """Logging filter that scrubs secrets from log records.

    Attach to a handler or logger::

        handler.addFilter(PiiScrubber())
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        msg = record.getMessage()
        record.msg = _scrub_text(msg)
        record.args = None  # prevent double-formatting

        for attr in _REDACT_ATTRS:
            if hasattr(record, attr):
                setattr(record, attr, "[REDACTED]")

        return True


def _scrub_text(text: str) -> str:
    """Apply all sensitive-data patterns to *text* and return the result."""
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text
