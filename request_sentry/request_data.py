"""
Request metadata extraction.

Builds the ``request`` section of an error event from a finished Flask
request.  The absolute URL is rebuilt from the ``Host`` header the client
sent (plus path and query string), not from proxy-trusted origin headers,
so it stays correct behind a plain reverse proxy that only forwards
``Host``.
"""

from typing import Any, Dict, Optional

from .observability.logging import setup_structured_logger

# Same logger as the extension, so records go through its handlers.
logger = setup_structured_logger("request_sentry")


def extract_request_metadata(request: Any, *, base_uri: Optional[str] = None) -> Dict[str, Any]:
    """Describe *request* as a plain dict.

    Never raises: a field that cannot be read is left out and the failure
    is logged at debug level.

    Args:
        request: A Flask / Werkzeug request (anything with ``method``,
            ``path``, ``headers`` and ``environ`` works).
        base_uri: Optional ``scheme://host[:port]`` overriding the
            reconstructed origin.

    Returns:
        ``{"method", "url", "query_string", "headers"}`` plus ``"data"``
        when a body is available.
    """
    metadata: Dict[str, Any] = {"headers": {}}

    try:
        metadata["headers"] = _headers(request)
    except Exception:
        logger.debug("Could not read request headers", exc_info=True)

    try:
        metadata["method"] = str(request.method).upper()
    except Exception:
        logger.debug("Could not read request method", exc_info=True)

    try:
        query = _query_string(request)
        metadata["query_string"] = query
        metadata["url"] = _absolute_url(request, metadata["headers"], query, base_uri)
    except Exception:
        logger.debug("Could not rebuild request URL", exc_info=True)

    try:
        data = _body(request)
        if data:
            metadata["data"] = data
    except Exception:
        logger.debug("Could not read request body", exc_info=True)

    return metadata


# ── Private helpers ──────────────────────────────────────────────


def _headers(request: Any) -> Dict[str, str]:
    headers = getattr(request, "headers", None)
    if not headers:
        return {}
    return {key: value for key, value in headers.items()}


def _query_string(request: Any) -> str:
    environ = getattr(request, "environ", None) or {}
    query = environ.get("QUERY_STRING", "")
    if isinstance(query, bytes):
        query = query.decode("latin-1")
    return query


def _absolute_url(request: Any, headers: Dict[str, str], query: str, base_uri: Optional[str]) -> str:
    if base_uri:
        origin = base_uri.rstrip("/")
    else:
        environ = getattr(request, "environ", None) or {}
        scheme = environ.get("wsgi.url_scheme", "http")
        host = _header(headers, "Host") or environ.get("SERVER_NAME", "localhost")
        origin = f"{scheme}://{host}"

    url = f"{origin}{request.path}"
    if query:
        url = f"{url}?{query}"
    return url


def _header(headers: Dict[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _body(request: Any) -> Any:
    """Return the parsed body if one was sent, else ``None``."""
    if not getattr(request, "content_length", None):
        return None
    if getattr(request, "is_json", False):
        return request.get_json(silent=True)
    if request.mimetype in ("application/x-www-form-urlencoded", "multipart/form-data"):
        return request.form.to_dict() or None
    return request.get_data(cache=True, as_text=True) or None
