"""
Flask extension that captures unhandled request errors.

Lifecycle per request::

    before_request          -> scope created, bound to flask.g       (RUNNING)
    got_request_exception   -> unhandled exception recorded
    handle_user_exception   -> exception rendered by an error handler kept
    after_request           -> 5xx response recorded (kept exception or stand-in)
    teardown_request        -> COMPLETED_ERROR: enrich + capture once
                               COMPLETED_OK: nothing
                            -> scope discarded                       (CLOSED)

The extension is strictly observational: it never changes the response the
client receives, and failures inside the capture path are logged and
swallowed.
"""

import sys
from typing import Any, Dict, Optional

from flask import Flask, g, got_request_exception, request
from werkzeug.exceptions import HTTPException, InternalServerError, default_exceptions

from .client import build_client
from .config import normalize_options
from .constants import EXTENSION_NAME, G_CONTEXT_ATTR
from .enrich import enrich_event, error_message, minimal_event
from .dispatch import CaptureDispatcher
from .observability.logging import clear_log_context, set_log_context, setup_structured_logger
from .request_data import extract_request_metadata
from .sanitize import sanitize_credentials
from .scope import RequestContext, RequestState, ScopeManager, current_context, current_scope


class RequestSentry:
    """Error capture for a Flask application.

    Usage::

        sentry = RequestSentry(app, dsn="https://key@o0.ingest.sentry.io/1")

        # or, with an injected client and the app-factory pattern
        sentry = RequestSentry(client=my_client)
        sentry.init_app(app)

    Raises:
        ConfigurationError: At construction, before any hook is installed,
            when the options are invalid.
    """

    def __init__(self, app: Optional[Flask] = None, **options: Any):
        self.options: Dict[str, Any] = normalize_options(options)
        self.client = build_client(self.options["client"])
        self.logger = setup_structured_logger("request_sentry")
        self.scopes = ScopeManager(self.client, self.options["scope"])
        self.dispatcher = CaptureDispatcher(
            self.logger,
            background=self.options["background"],
            max_workers=self.options["max_workers"],
        )
        if app is not None:
            self.init_app(app)

    # ── installation ─────────────────────────────────────────────

    def init_app(self, app: Flask) -> None:
        """Install the request hooks on *app*.

        Raises:
            RuntimeError: request-sentry is already installed on *app*.
        """
        if EXTENSION_NAME in app.extensions:
            raise RuntimeError(f"request-sentry is already installed on {app.name}")

        app.extensions[EXTENSION_NAME] = self
        app.before_request(self._before)
        app.after_request(self._after)
        app.teardown_request(self._teardown)
        got_request_exception.connect(self._on_exception, app)
        self._wrap_user_exception_handler(app)
        client_name = type(self.client).__name__
        self.logger.info(
            "request-sentry installed on %s using %s", app.name, client_name,
            extra={"client": client_name},
        )

    def _wrap_user_exception_handler(self, app: Flask) -> None:
        # Errors rendered by an app error handler never reach
        # got_request_exception; keep them until the response status is known.
        handle_user_exception = app.handle_user_exception

        def _handle_user_exception(e):
            if not isinstance(e, HTTPException):
                ctx = current_context() or self._begin()
                if ctx.handled_error is None:
                    ctx.handled_error = e
            return handle_user_exception(e)

        app.handle_user_exception = _handle_user_exception

    # ── hooks ────────────────────────────────────────────────────

    def _before(self) -> None:
        self._begin()
        set_log_context(method=request.method, path=request.path)

    def _on_exception(self, sender: Flask, exception: BaseException, **extra: Any) -> None:
        ctx = current_context() or self._begin()
        ctx.record_error(exception)

    def _after(self, response):
        status_code = response.status_code
        if status_code >= self.options["capture_status_codes"]:
            ctx = current_context()
            if ctx is not None and ctx.error is None:
                self.logger.debug(
                    "Recording error response %d", status_code, extra={"status_code": status_code}
                )
                ctx.record_error(ctx.handled_error or _http_error(status_code))
        return response

    def _teardown(self, exc: Optional[BaseException] = None) -> None:
        ctx = current_context()
        if ctx is None:
            if exc is None or not self._is_capturable(exc):
                clear_log_context()
                return
            # An earlier before_request hook failed before ours ran.
            ctx = self._begin()

        try:
            if exc is not None and self._is_capturable(exc):
                ctx.record_error(exc)
            if ctx.complete() is RequestState.COMPLETED_ERROR and not ctx.captured:
                ctx.captured = True
                self._capture_request_error(ctx)
        finally:
            self.scopes.close(ctx)
            clear_log_context()

    # ── capture pipeline ─────────────────────────────────────────

    def _capture_request_error(self, ctx: RequestContext) -> None:
        error = ctx.error
        scope = ctx.scope

        try:
            raw = self.client.parse_error(error)
        except Exception:
            self.logger.warning("Client could not parse %s", type(error).__name__, exc_info=True)
            raw = {"message": error_message(error), "level": "error"}

        try:
            parsed = self.client.parse_request(raw, request)
            if parsed is not None:
                raw = parsed
        except Exception:
            self.logger.debug("Client could not parse the request", exc_info=True)

        try:
            metadata = extract_request_metadata(request, base_uri=self.options["base_uri"])
            identity = sanitize_credentials(self._credentials()) if self.options["track_user"] else {}
            event = enrich_event(raw, metadata, identity)
        except Exception as exc:
            self.logger.warning(
                "Enrichment failed, sending minimal event: %s",
                exc,
                extra={"error_type": type(exc).__name__},
            )
            event = minimal_event(raw)

        self.logger.debug("Capturing %s", event.get("message"))

        def send():
            event_id = self.scopes.with_scope(scope, lambda: self.client.capture_event(event))
            self.logger.debug("Captured event %s", event_id, extra={"event_id": event_id})
            return event_id

        self.dispatcher.submit(send)

    def _credentials(self) -> Any:
        getter = self.options["credentials_getter"]
        if getter is not None:
            return getter()
        credentials = getattr(request, "current_user", None)
        if credentials is None:
            credentials = g.get("current_user")
        return credentials

    def _is_capturable(self, exc: BaseException) -> bool:
        if isinstance(exc, HTTPException):
            return (exc.code or 500) >= self.options["capture_status_codes"]
        return True

    def _begin(self) -> RequestContext:
        try:
            return self.scopes.begin_scope()
        except Exception:
            self.logger.warning("Could not create a request scope", exc_info=True)
            ctx = RequestContext(scope=None)
            setattr(g, G_CONTEXT_ATTR, ctx)
            return ctx

    # ── manual capture ───────────────────────────────────────────

    def capture_exception(self, exc: Optional[BaseException] = None) -> Any:
        """Capture *exc* (or the exception being handled) with the request's scope."""
        if exc is None:
            exc = sys.exc_info()[1]
            if exc is None:
                return None
        scope = current_scope()
        if scope is None:
            return self.client.capture_exception(exc)
        return self.scopes.with_scope(scope, lambda: self.client.capture_exception(exc))

    def capture_message(self, message: str, level: str = "info") -> Any:
        """Capture a plain message with the request's scope."""

        def send():
            capture = getattr(self.client, "capture_message", None)
            if capture is not None:
                return capture(message, level)
            return self.client.capture_event({"message": message, "level": level})

        scope = current_scope()
        if scope is None:
            return send()
        return self.scopes.with_scope(scope, send)

    # ── shutdown ─────────────────────────────────────────────────

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued captures, then ask the client to flush its transport."""
        if timeout is None:
            timeout = self.options["flush_timeout"]
        done = self.dispatcher.flush(timeout)
        client_flush = getattr(self.client, "flush", None)
        if callable(client_flush):
            try:
                client_flush(timeout)
            except Exception:
                self.logger.warning("Client flush failed", exc_info=True)
        return done

    def close(self, timeout: Optional[float] = None) -> None:
        """Flush and stop the capture workers."""
        if timeout is None:
            timeout = self.options["flush_timeout"]
        self.dispatcher.shutdown(timeout)
        client_close = getattr(self.client, "close", None)
        if callable(client_close):
            try:
                client_close(timeout)
            except Exception:
                self.logger.warning("Client close failed", exc_info=True)


def _http_error(status_code: int) -> HTTPException:
    """Exception standing in for an explicit error response."""
    exc_class = default_exceptions.get(status_code)
    if exc_class is not None:
        return exc_class()
    exc = InternalServerError(description=f"Error response with status {status_code}")
    exc.code = status_code
    return exc
