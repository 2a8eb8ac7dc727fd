"""
Exception types raised by request-sentry.

Only ``ConfigurationError`` ever escapes to the host application; the
runtime failures are raised and caught inside the capture pipeline so they
can be logged with a precise type.
"""

from typing import Iterable, List, Optional


class RequestSentryError(Exception):
    """Base class for every request-sentry error."""


class ConfigurationError(RequestSentryError):
    """Raised at registration time when the options are invalid.

    ``details`` holds one human-readable message per violated rule, e.g.
    ``['"dsn" is required', '"Scope" is required']``.
    """

    def __init__(self, message: str, details: Optional[Iterable[str]] = None):
        self.details: List[str] = list(details or [])
        if self.details:
            message = f"{message}: {'; '.join(self.details)}"
        super().__init__(message)


class EnrichmentFailure(RequestSentryError):
    """Request metadata or identity could not be merged into an event."""


class CaptureDeliveryFailure(RequestSentryError):
    """The client's capture call raised."""
