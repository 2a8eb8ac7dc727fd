"""Tests for the credential sanitizer."""

from types import MappingProxyType


class TestSanitizeCredentials:
    def test_keeps_only_username(self):
        from request_sentry.sanitize import sanitize_credentials

        credentials = {
            "username": "me",
            "password": "open sesame",
            "pw": "os",
            "secret": "abc123",
        }
        assert sanitize_credentials(credentials) == {"username": "me"}

    def test_missing_credentials_yield_empty_identity(self):
        from request_sentry.sanitize import sanitize_credentials

        assert sanitize_credentials(None) == {}

    def test_credentials_without_username(self):
        from request_sentry.sanitize import sanitize_credentials

        assert sanitize_credentials({"api_key": "k-123", "scope": "admin"}) == {}

    def test_non_mapping_credentials_are_ignored(self):
        from request_sentry.sanitize import sanitize_credentials

        assert sanitize_credentials("me:open sesame") == {}
        assert sanitize_credentials(["username", "me"]) == {}

    def test_accepts_any_mapping_and_does_not_mutate_it(self):
        from request_sentry.sanitize import sanitize_credentials

        source = {"username": "me", "password_hash": "pbkdf2:..."}
        result = sanitize_credentials(MappingProxyType(source))
        assert result == {"username": "me"}
        assert source == {"username": "me", "password_hash": "pbkdf2:..."}
        result["username"] = "changed"
        assert source["username"] == "me"
