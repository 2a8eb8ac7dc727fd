"""Tests for the background capture dispatcher."""

import logging
import threading

import pytest


@pytest.fixture
def logger():
    return logging.getLogger("test_dispatch")


class TestCaptureDispatcher:
    def test_inline_mode_runs_immediately(self, logger):
        from request_sentry.dispatch import CaptureDispatcher

        calls = []
        dispatcher = CaptureDispatcher(logger, background=False)

        assert dispatcher.submit(lambda: calls.append("sent")) is None
        assert calls == ["sent"]

    def test_failures_are_logged_not_raised(self, logger, caplog):
        from request_sentry.dispatch import CaptureDispatcher

        def explode():
            raise ConnectionError("backend down")

        dispatcher = CaptureDispatcher(logger, background=False)
        with caplog.at_level(logging.ERROR, logger="test_dispatch"):
            dispatcher.submit(explode)

        assert "Capture failed" in caplog.text
        assert "ConnectionError: backend down" in caplog.text

    def test_background_capture_runs_off_thread(self, logger):
        from request_sentry.dispatch import CaptureDispatcher

        threads = []
        dispatcher = CaptureDispatcher(logger, max_workers=1)
        dispatcher.submit(lambda: threads.append(threading.current_thread().name))

        assert dispatcher.flush(timeout=5) is True
        assert threads[0].startswith("request-sentry")
        assert threads[0] != threading.current_thread().name
        dispatcher.shutdown()

    def test_flush_waits_for_pending_captures(self, logger):
        from request_sentry.dispatch import CaptureDispatcher

        release = threading.Event()
        done = []
        dispatcher = CaptureDispatcher(logger, max_workers=1)

        def slow():
            release.wait(5)
            done.append(True)

        dispatcher.submit(slow)
        assert dispatcher.pending == 1
        assert dispatcher.flush(timeout=0.05) is False

        release.set()
        assert dispatcher.flush(timeout=5) is True
        assert done == [True]
        assert dispatcher.pending == 0
        dispatcher.shutdown()

    def test_flush_with_nothing_pending(self, logger):
        from request_sentry.dispatch import CaptureDispatcher

        assert CaptureDispatcher(logger).flush(timeout=0) is True

    def test_background_failure_does_not_break_flush(self, logger):
        from request_sentry.dispatch import CaptureDispatcher

        def explode():
            raise RuntimeError("nope")

        dispatcher = CaptureDispatcher(logger)
        future = dispatcher.submit(explode)

        assert dispatcher.flush(timeout=5) is True
        assert future.result() is None
        dispatcher.shutdown()
