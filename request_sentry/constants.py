"""
Centralised constants for request-sentry.

Default option values, allow-lists and capability names live here so they
can be imported by any module without circular dependencies.
"""

# ── Version ──────────────────────────────────────────────────────
APP_VERSION = "0.1.0"

# Name under which the extension registers itself in ``app.extensions``
EXTENSION_NAME = "request-sentry"

# ``flask.g`` attribute names
G_CONTEXT_ATTR = "request_sentry_context"
G_SCOPE_ATTR = "sentry_scope"

# ── Client capability set ────────────────────────────────────────
# Attributes an injected client must expose, in reporting order.
CLIENT_CAPABILITIES = (
    "Scope",
    "parse_error",
    "parse_request",
    "with_scope",
    "capture_event",
    "capture_exception",
)

# ── Identity ─────────────────────────────────────────────────────
# Credential keys allowed to reach an emitted event. Everything else is dropped.
IDENTITY_FIELDS = frozenset({"username"})

# ── Events ───────────────────────────────────────────────────────
DEFAULT_LEVEL = "error"
VALID_LEVELS = frozenset({"fatal", "error", "warning", "info", "debug"})

# Responses at or above this status count as explicit error responses
DEFAULT_CAPTURE_STATUS = 500

# ── Dispatch ─────────────────────────────────────────────────────
DEFAULT_MAX_WORKERS = 2
DEFAULT_FLUSH_TIMEOUT = 2.0  # seconds

# ── Logging ──────────────────────────────────────────────────────
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB per log file
LOG_BACKUP_COUNT = 5
