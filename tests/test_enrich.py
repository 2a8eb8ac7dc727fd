"""Tests for event enrichment."""

import pytest


class TestEnrichEvent:
    def test_merges_request_and_user(self):
        from request_sentry.enrich import enrich_event

        raw = {"message": "RuntimeError: Oh no!", "exception": {"values": []}}
        metadata = {"method": "GET", "url": "http://example.test/route", "headers": {}}
        event = enrich_event(raw, metadata, {"username": "me"})

        assert event["request"] == metadata
        assert event["user"] == {"username": "me"}
        assert event["level"] == "error"
        assert event["exception"] == {"values": []}

    def test_overwrites_parser_request_and_user(self):
        from request_sentry.enrich import enrich_event

        raw = {"request": {"env": {"REMOTE_ADDR": "10.0.0.1"}}, "user": {"id": 7, "password": "x"}}
        event = enrich_event(raw, {"method": "GET"}, {})

        assert event["request"] == {"method": "GET"}
        assert event["user"] == {}

    def test_keeps_level_from_parser(self):
        from request_sentry.enrich import enrich_event

        event = enrich_event({"level": "fatal"}, {}, {})
        assert event["level"] == "fatal"

    def test_builds_a_new_event(self):
        from request_sentry.enrich import enrich_event

        raw = {"message": "boom", "request": {}}
        metadata = {"method": "GET"}
        event = enrich_event(raw, metadata, {})

        assert event is not raw
        assert raw == {"message": "boom", "request": {}}
        event["request"]["method"] = "POST"
        assert metadata["method"] == "GET"

    def test_non_mapping_raises_enrichment_failure(self):
        from request_sentry.enrich import enrich_event
        from request_sentry.errors import EnrichmentFailure

        with pytest.raises(EnrichmentFailure, match="str"):
            enrich_event("not an event", {}, {})


class TestMinimalEvent:
    def test_mapping_gets_empty_request_and_user(self):
        from request_sentry.enrich import minimal_event

        event = minimal_event({"message": "boom", "request": {"url": "x"}, "level": "warning"})
        assert event == {"message": "boom", "request": {}, "user": {}, "level": "warning"}

    def test_opaque_value_becomes_message(self):
        from request_sentry.enrich import minimal_event

        event = minimal_event("opaque")
        assert event == {"message": "opaque", "request": {}, "user": {}, "level": "error"}


class TestErrorMessage:
    def test_includes_type_and_text(self):
        from request_sentry.enrich import error_message

        assert error_message(RuntimeError("Oh no!")) == "RuntimeError: Oh no!"

    def test_type_only_when_text_is_empty(self):
        from request_sentry.enrich import error_message

        assert error_message(ValueError()) == "ValueError"
