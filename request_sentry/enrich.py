"""
Event enrichment.

Merges request metadata and the sanitized identity into whatever event the
client's own ``parse_error`` produced.  Keeping this merge outside the
client is what lets any backend be plugged in without changing how request
data ends up on the event.
"""

from collections.abc import Mapping
from typing import Any, Dict

from .constants import DEFAULT_LEVEL
from .errors import EnrichmentFailure


def enrich_event(raw: Any, metadata: Mapping, identity: Mapping) -> Dict[str, Any]:
    """Return a new event built from *raw* with ``request`` and ``user`` set.

    Existing ``request`` / ``user`` keys on *raw* are overwritten.  ``level``
    defaults to ``"error"`` unless *raw* already carries one.

    Raises:
        EnrichmentFailure: *raw* is not a mapping.
    """
    if not isinstance(raw, Mapping):
        raise EnrichmentFailure(f"Client parsed event is a {type(raw).__name__}, not a mapping")

    event = dict(raw)
    event["request"] = dict(metadata)
    event["user"] = dict(identity)
    if not event.get("level"):
        event["level"] = DEFAULT_LEVEL
    return event


def minimal_event(raw: Any) -> Dict[str, Any]:
    """Fallback used when enrichment fails: *raw* with an empty request/user."""
    event: Dict[str, Any] = dict(raw) if isinstance(raw, Mapping) else {"message": str(raw)}
    event["request"] = {}
    event["user"] = {}
    event.setdefault("level", DEFAULT_LEVEL)
    return event


def error_message(exc: BaseException) -> str:
    """String form used as an event ``message``, e.g. ``"ValueError: Oh no!"``."""
    text = str(exc)
    name = type(exc).__name__
    return f"{name}: {text}" if text else name
