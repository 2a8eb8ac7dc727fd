"""
request-sentry - per-request error capture for Flask applications
"""

__version__ = "0.1.0"

from .client import DiagnosticClient, SentryClient, build_client
from .config import load_options_from_env, normalize_options, validate_options
from .enrich import enrich_event
from .errors import CaptureDeliveryFailure, ConfigurationError, EnrichmentFailure, RequestSentryError
from .extension import RequestSentry
from .request_data import extract_request_metadata
from .sanitize import sanitize_credentials
from .scope import RequestContext, RequestState, ScopeManager, current_scope

__all__ = [
    "RequestSentry",
    "SentryClient",
    "DiagnosticClient",
    "build_client",
    "ScopeManager",
    "RequestContext",
    "RequestState",
    "current_scope",
    "extract_request_metadata",
    "sanitize_credentials",
    "enrich_event",
    "validate_options",
    "normalize_options",
    "load_options_from_env",
    "RequestSentryError",
    "ConfigurationError",
    "EnrichmentFailure",
    "CaptureDeliveryFailure",
]
