"""
Option loading and validation for request-sentry.

Validation happens once, at registration time, and reports every violated
rule at once instead of stopping at the first one::

    ConfigurationError: Invalid request-sentry options: "dsn" is required; "Scope" is required
"""

import os
import re
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv
from sentry_sdk.utils import BadDsn, Dsn

from .constants import (
    CLIENT_CAPABILITIES,
    DEFAULT_CAPTURE_STATUS,
    DEFAULT_FLUSH_TIMEOUT,
    DEFAULT_MAX_WORKERS,
    VALID_LEVELS,
)
from .errors import ConfigurationError

# Defaults for every recognised top-level option.
DEFAULTS: Dict[str, Any] = {
    "client": None,
    "dsn": None,
    "scope": None,
    "base_uri": None,
    "track_user": True,
    "capture_status_codes": DEFAULT_CAPTURE_STATUS,
    "background": True,
    "max_workers": DEFAULT_MAX_WORKERS,
    "flush_timeout": DEFAULT_FLUSH_TIMEOUT,
    "credentials_getter": None,
}

_SCOPE_KEYS = frozenset({"tags", "level", "extra"})


def normalize_options(options: Mapping) -> Dict[str, Any]:
    """Validate *options* and return them merged over ``DEFAULTS``.

    A top-level ``dsn`` is folded into ``client`` so the rest of the code only
    has to look at one key.

    Raises:
        ConfigurationError: With one detail per violated rule.
    """
    errors = validate_options(options)
    if errors:
        raise ConfigurationError("Invalid request-sentry options", errors)

    merged = dict(DEFAULTS)
    merged.update(options)
    if merged["dsn"]:
        client = dict(merged["client"] or {})
        client["dsn"] = merged["dsn"]
        merged["client"] = client
    merged["scope"] = _normalize_scope(merged["scope"])
    return merged


def validate_options(options: Any) -> List[str]:
    """
    Check *options* against every rule.

    Returns:
        A list of human-readable error strings.  Empty means valid.
    """
    if not isinstance(options, Mapping):
        return ['"options" must be a mapping']

    errors: List[str] = []

    for key in options:
        if key not in DEFAULTS:
            errors.append(f'"{key}" is not allowed')

    errors.extend(_check_client(options.get("client"), options.get("dsn")))

    for rule in _RULES:
        errors.extend(rule(options))

    return errors


# ── Client rules ─────────────────────────────────────────────────


def _check_client(client: Any, dsn: Any) -> List[str]:
    """Either a DSN (top-level or inside a client config) or a full capability set."""
    if dsn is not None:
        if _is_capability_set(client):
            return ['"dsn" is not allowed together with a custom client']
        if client is not None and not isinstance(client, Mapping):
            return ['"client" must be a mapping when "dsn" is given']
        return _check_dsn(dsn)

    if isinstance(client, Mapping) and "dsn" in client:
        return _check_dsn(client["dsn"])

    if client is not None and _is_capability_set(client):
        return []

    # Neither alternative matched: report what each one is missing.
    errors = ['"dsn" is required']
    errors.extend(f'"{name}" is required' for name in _missing_capabilities(client))
    return errors


def _check_dsn(dsn: Any) -> List[str]:
    if not isinstance(dsn, str) or not dsn:
        return ['"dsn" must be a non-empty string']
    try:
        Dsn(dsn)
    except BadDsn as exc:
        return [f'"dsn" is invalid ({exc})']
    return []


def _missing_capabilities(client: Any) -> List[str]:
    return [name for name in CLIENT_CAPABILITIES if getattr(client, name, None) is None]


def _is_capability_set(client: Any) -> bool:
    return client is not None and not _missing_capabilities(client)


# ── Other option rules ───────────────────────────────────────────


def _check_scope(options: Mapping) -> List[str]:
    scope = options.get("scope")
    if scope is None:
        return []
    if not isinstance(scope, Mapping):
        return ['"scope" must be a mapping']

    errors = [f'"scope.{key}" is not allowed' for key in scope if key not in _SCOPE_KEYS]
    tags = scope.get("tags")
    if tags is not None and not isinstance(tags, (Mapping, list, tuple)):
        errors.append('"scope.tags" must be a mapping or a list of {name, value}')
    elif isinstance(tags, (list, tuple)):
        for i, tag in enumerate(tags):
            if not isinstance(tag, Mapping) or "name" not in tag or "value" not in tag:
                errors.append(f'"scope.tags[{i}]" must have "name" and "value"')
    level = scope.get("level")
    if level is not None and level not in VALID_LEVELS:
        errors.append(f'"scope.level" must be one of {", ".join(sorted(VALID_LEVELS))}')
    extra = scope.get("extra")
    if extra is not None and not isinstance(extra, Mapping):
        errors.append('"scope.extra" must be a mapping')
    return errors


def _check_base_uri(options: Mapping) -> List[str]:
    base_uri = options.get("base_uri")
    if base_uri is None:
        return []
    if not isinstance(base_uri, str) or not re.match(r"^https?://[^/\s]+", base_uri):
        return ['"base_uri" must be an absolute http(s) URL']
    return []


def _check_numbers(options: Mapping) -> List[str]:
    errors = []
    status = options.get("capture_status_codes", DEFAULT_CAPTURE_STATUS)
    if not isinstance(status, int) or isinstance(status, bool) or not 400 <= status <= 599:
        errors.append('"capture_status_codes" must be an integer between 400 and 599')
    workers = options.get("max_workers", DEFAULT_MAX_WORKERS)
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        errors.append('"max_workers" must be a positive integer')
    timeout = options.get("flush_timeout", DEFAULT_FLUSH_TIMEOUT)
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout < 0:
        errors.append('"flush_timeout" must be a non-negative number')
    return errors


def _check_flags(options: Mapping) -> List[str]:
    errors = []
    for key in ("track_user", "background"):
        if key in options and not isinstance(options[key], bool):
            errors.append(f'"{key}" must be a boolean')
    getter = options.get("credentials_getter")
    if getter is not None and not callable(getter):
        errors.append('"credentials_getter" must be callable')
    return errors


_RULES: List[Callable[[Mapping], List[str]]] = [
    _check_scope,
    _check_base_uri,
    _check_numbers,
    _check_flags,
]


def _normalize_scope(scope: Optional[Mapping]) -> Dict[str, Any]:
    """Return ``{"tags": {...}, "level": ..., "extra": {...}}``."""
    scope = scope or {}
    tags = scope.get("tags") or {}
    if not isinstance(tags, Mapping):
        tags = {tag["name"]: tag["value"] for tag in tags}
    return {
        "tags": dict(tags),
        "level": scope.get("level"),
        "extra": dict(scope.get("extra") or {}),
    }


# ── Environment ──────────────────────────────────────────────────

_ENV_OPTIONS = {
    "SENTRY_DSN": "dsn",
    "REQUEST_SENTRY_BASE_URI": "base_uri",
}
_ENV_CLIENT_OPTIONS = {
    "SENTRY_ENVIRONMENT": "environment",
    "SENTRY_RELEASE": "release",
}


def load_options_from_env(dotenv_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Build an options dict from environment variables (after loading ``.env``).

    Values may contain ``${ENV_VAR:-default}`` placeholders.  The result still
    has to go through ``normalize_options``.
    """
    load_dotenv(dotenv_path)

    options: Dict[str, Any] = {}
    for env_key, option in _ENV_OPTIONS.items():
        value = _resolve(os.environ.get(env_key, ""))
        if value:
            options[option] = value

    client: Dict[str, Any] = {}
    for env_key, option in _ENV_CLIENT_OPTIONS.items():
        value = _resolve(os.environ.get(env_key, ""))
        if value:
            client[option] = value
    if client:
        options["client"] = client

    return options


_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def _resolve(value: str) -> str:
    """Resolve ``${ENV_VAR:-default}`` in *value*."""
    return _PLACEHOLDER_RE.sub(_replace_match, value)


def _replace_match(m: re.Match) -> str:
    var = m.group(1)
    default = m.group(2) if m.group(2) is not None else ""
    return os.environ.get(var, default)
