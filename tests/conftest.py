"""
Test fixtures and configuration for pytest
"""

import threading

import pytest
from flask import Flask, abort, g

TEST_DSN = "https://public@sentry.example.com/1"


class RecordingScope:
    """Minimal scope type for the recording client."""

    def __init__(self):
        self.tags = {}
        self.extra = {}
        self.level = None
        self.user = None

    def set_tag(self, key, value):
        self.tags[key] = value

    def set_extra(self, key, value):
        self.extra[key] = value

    def set_level(self, level):
        self.level = level

    def set_user(self, user):
        self.user = user

    def update_from_scope(self, other):
        self.tags.update(other.tags)
        self.extra.update(other.extra)
        if other.level:
            self.level = other.level
        if other.user:
            self.user = other.user


class RecordingClient:
    """Injected client satisfying the capability set; records captured events."""

    Scope = RecordingScope

    def __init__(self):
        self.events = []
        self.active_tags = []
        self.exceptions = []
        self._lock = threading.Lock()
        self._local = threading.local()

    def parse_error(self, exc):
        return {
            "message": f"{type(exc).__name__}: {exc}",
            "exception": {"values": [{"type": type(exc).__name__}]},
            "request": {"from_parser": True},
        }

    def parse_request(self, event, request):
        event["transaction"] = request.path
        return event

    def with_scope(self, callback):
        scope = RecordingScope()
        previous = getattr(self._local, "scope", None)
        self._local.scope = scope
        try:
            return callback(scope)
        finally:
            self._local.scope = previous

    def capture_event(self, event):
        scope = getattr(self._local, "scope", None)
        with self._lock:
            self.events.append(event)
            self.active_tags.append(dict(scope.tags) if scope else {})
        return f"evt-{len(self.events)}"

    def capture_exception(self, exc=None):
        with self._lock:
            self.exceptions.append(exc)
        return self.capture_event(self.parse_error(exc))


@pytest.fixture
def recording_client():
    return RecordingClient()


@pytest.fixture
def app():
    """Flask app with a handful of ok / failing routes."""
    app = Flask(__name__)

    @app.route("/ok")
    def ok():
        return "fine"

    @app.route("/route")
    def route():
        raise RuntimeError("Oh no!")

    @app.route("/abort/<int:code>")
    def abort_with(code):
        abort(code)

    @app.route("/explicit")
    def explicit():
        return "maintenance", 503

    @app.route("/tagged")
    def tagged():
        g.sentry_scope.set_tag("feature", "checkout")
        raise ValueError("bad cart")

    @app.route("/post", methods=["POST"])
    def post():
        raise KeyError("sku")

    return app


@pytest.fixture
def sentry_events():
    """Collects events reaching a real SentryClient's ``before_send``.

    Returning ``None`` from the hook drops the event, so nothing leaves the
    process.
    """
    events = []

    def before_send(event, hint):
        events.append(event)
        return None

    return events, before_send


@pytest.fixture
def dsn():
    return TEST_DSN
