"""
Per-request diagnostic scopes.

Each request gets its own ``RequestContext`` holding a fresh client scope.
The context lives in ``flask.g``, which Flask keeps per request (per thread
or greenlet), so a scope created for one request is never visible from
another and no process-wide "current scope" exists.

Route handlers enrich the scope directly::

    from flask import g

    @app.route("/orders/<oid>")
    def order(oid):
        g.sentry_scope.set_tag("order_id", oid)
"""

import enum
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TypeVar

from flask import g, has_app_context

from .constants import G_CONTEXT_ATTR, G_SCOPE_ATTR

T = TypeVar("T")


class RequestState(enum.Enum):
    RUNNING = "running"
    COMPLETED_OK = "completed_ok"
    COMPLETED_ERROR = "completed_error"
    CLOSED = "closed"


@dataclass
class RequestContext:
    """Diagnostic state owned by exactly one request."""

    scope: Any
    error: Optional[BaseException] = None
    state: RequestState = RequestState.RUNNING
    captured: bool = False
    # Exception turned into a response by an app error handler; only
    # recorded if that response is an error response.
    handled_error: Optional[BaseException] = None

    def record_error(self, exc: BaseException) -> bool:
        """Remember *exc* unless an error was already recorded.  Returns ``True`` if kept."""
        if self.error is not None or self.state is not RequestState.RUNNING:
            return False
        self.error = exc
        return True

    def complete(self) -> RequestState:
        """Move out of ``RUNNING`` according to whether an error was recorded."""
        if self.state is RequestState.RUNNING:
            self.state = (
                RequestState.COMPLETED_ERROR if self.error is not None else RequestState.COMPLETED_OK
            )
        return self.state


class ScopeManager:
    """Creates, exposes and discards request scopes for one client."""

    def __init__(self, client: Any, baseline: Optional[Dict[str, Any]] = None):
        """
        Args:
            client: The client adapter; its ``Scope`` type is instantiated per request.
            baseline: ``{"tags", "level", "extra"}`` applied to every new scope.
        """
        self.client = client
        self.baseline = baseline or {}

    def begin_scope(self) -> RequestContext:
        """Create a scope for the current request and bind it to ``flask.g``."""
        scope = self.client.Scope()
        self._apply_baseline(scope)
        ctx = RequestContext(scope=scope)
        setattr(g, G_CONTEXT_ATTR, ctx)
        setattr(g, G_SCOPE_ATTR, scope)
        return ctx

    def with_scope(self, scope: Any, fn: Callable[[], T]) -> T:
        """Run *fn* with *scope* active on the client.

        The client opens a fresh active scope; when the scope type supports
        it, the request scope's tags, user and extras are copied into it
        first so captures made by *fn* pick them up.
        """

        def _run(active: Any) -> T:
            if scope is not None and active is not scope and hasattr(active, "update_from_scope"):
                active.update_from_scope(scope)
            return fn()

        return self.client.with_scope(_run)

    def close(self, ctx: RequestContext) -> None:
        """Discard the scope; nothing may read or write it afterwards."""
        ctx.state = RequestState.CLOSED
        ctx.scope = None
        if has_app_context() and getattr(g, G_CONTEXT_ATTR, None) is ctx:
            g.pop(G_CONTEXT_ATTR, None)
            g.pop(G_SCOPE_ATTR, None)

    def _apply_baseline(self, scope: Any) -> None:
        for name, value in self.baseline.get("tags", {}).items():
            if hasattr(scope, "set_tag"):
                scope.set_tag(name, value)
        level = self.baseline.get("level")
        if level and hasattr(scope, "set_level"):
            scope.set_level(level)
        for key, value in self.baseline.get("extra", {}).items():
            if hasattr(scope, "set_extra"):
                scope.set_extra(key, value)


def current_context() -> Optional[RequestContext]:
    """Return the active request's ``RequestContext``, or ``None`` outside a request."""
    if not has_app_context():
        return None
    return getattr(g, G_CONTEXT_ATTR, None)


def current_scope() -> Optional[Any]:
    """Return the active request's scope, or ``None`` outside a request."""
    ctx = current_context()
    return ctx.scope if ctx is not None else None
