"""
Credential sanitizer.

Reduces whatever the authentication layer resolved for a request to the
allow-listed identity fields.  Passwords, hashes, API keys and any other
key never reach an emitted event.
"""

from collections.abc import Mapping
from typing import Any, Dict, Optional

from .constants import IDENTITY_FIELDS


def sanitize_credentials(credentials: Optional[Any]) -> Dict[str, Any]:
    """Return only the allow-listed identity fields of *credentials*.

    Args:
        credentials: The resolved auth credentials, usually a dict such as
            ``{"username": "me", "password": "open sesame"}``.  ``None`` or
            a non-mapping value yields an empty identity.

    Returns:
        A new dict, e.g. ``{"username": "me"}``.
    """
    if not isinstance(credentials, Mapping):
        return {}
    return {key: credentials[key] for key in IDENTITY_FIELDS if key in credentials}
