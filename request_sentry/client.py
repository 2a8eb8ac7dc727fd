"""
Client adapters.

request-sentry programs against a small capability set rather than a
concrete SDK class.  Any object exposing the attributes listed in
``constants.CLIENT_CAPABILITIES`` can be injected; when the options carry a
DSN instead, ``SentryClient`` is built over a dedicated ``sentry_sdk.Client``.

The built-in adapter never calls ``sentry_sdk.init``: the host application's
own global Sentry setup (if any) is left alone.
"""

import sys
from collections.abc import Mapping
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar

import sentry_sdk
from sentry_sdk.utils import event_from_exception

from .enrich import error_message

T = TypeVar("T")

# Scope made active by ``SentryClient.with_scope`` for the current thread/task
_active_scope: ContextVar[Optional[sentry_sdk.Scope]] = ContextVar(
    "request_sentry_active_scope", default=None
)


class DiagnosticClient(Protocol):
    """Capability set an injected client must satisfy."""

    Scope: Callable[[], Any]

    def parse_error(self, exc: BaseException) -> Any: ...

    def parse_request(self, event: Any, request: Any) -> Any: ...

    def with_scope(self, callback: Callable[[Any], T]) -> T: ...

    def capture_event(self, event: Dict[str, Any]) -> Any: ...

    def capture_exception(self, exc: Optional[BaseException] = None) -> Any: ...


# ── Sentry adapter ───────────────────────────────────────────────


class SentryClient:
    """Default adapter over ``sentry_sdk``.

    Usage::

        client = SentryClient("https://key@o0.ingest.sentry.io/1", environment="prod")
        client.capture_message("deploy finished")
    """

    Scope = sentry_sdk.Scope

    def __init__(self, dsn: str, **options: Any):
        """
        Args:
            dsn: Sentry DSN.
            **options: Passed through to ``sentry_sdk.Client``
                (``before_send``, ``environment``, ``release``, ``transport``...).
                Integrations are off unless explicitly requested so that
                building the adapter does not patch the host framework.
        """
        options.setdefault("default_integrations", False)
        options.setdefault("auto_enabling_integrations", False)
        self.dsn = dsn
        self._client = sentry_sdk.Client(dsn, **options)

    @property
    def options(self) -> Dict[str, Any]:
        return self._client.options

    # ── Event shaping ────────────────────────────────────────────

    def parse_error(self, exc: BaseException) -> Dict[str, Any]:
        """Turn *exc* into a Sentry event dict with a readable ``message``."""
        event, _hint = event_from_exception(
            exc,
            client_options=self._client.options,
            mechanism={"type": "request_sentry", "handled": False},
        )
        event["message"] = error_message(exc)
        return event

    def parse_request(self, event: Dict[str, Any], request: Any) -> Dict[str, Any]:
        """Name the event's transaction after the matched route."""
        rule = getattr(request, "url_rule", None)
        event["transaction"] = rule.rule if rule is not None else request.path
        event["transaction_info"] = {"source": "route" if rule is not None else "url"}
        return event

    # ── Scopes ───────────────────────────────────────────────────

    def with_scope(self, callback: Callable[[sentry_sdk.Scope], T]) -> T:
        """Run *callback* with a fresh scope that captures made inside it use."""
        scope = sentry_sdk.Scope()
        token = _active_scope.set(scope)
        try:
            return callback(scope)
        finally:
            _active_scope.reset(token)

    # ── Capture ──────────────────────────────────────────────────

    def capture_event(self, event: Dict[str, Any], hint: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """Hand *event* to the transport; returns the event id or ``None`` if dropped."""
        return self._client.capture_event(event, hint=hint, scope=_active_scope.get())

    def capture_exception(self, exc: Optional[BaseException] = None) -> Optional[str]:
        """Capture *exc*, or the exception currently being handled."""
        if exc is None:
            exc = sys.exc_info()[1]
            if exc is None:
                return None
        return self.capture_event(self.parse_error(exc))

    def capture_message(self, message: str, level: str = "info") -> Optional[str]:
        return self.capture_event({"message": message, "level": level})

    def flush(self, timeout: Optional[float] = None) -> None:
        self._client.flush(timeout=timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        self._client.close(timeout=timeout)


# ── Factory ──────────────────────────────────────────────────────


def build_client(client_option: Any) -> Any:
    """Return the adapter for a validated ``client`` option.

    A mapping with a ``dsn`` builds a ``SentryClient``; anything else is an
    injected client and is returned unchanged.
    """
    if isinstance(client_option, Mapping) and client_option.get("dsn"):
        config = dict(client_option)
        dsn = config.pop("dsn")
        return SentryClient(dsn, **config)
    return client_option
