"""
Background capture dispatch.

Captures are handed to a small thread pool so a slow client never holds up
a response.  In-flight futures are tracked so ``flush`` can wait for them
during graceful shutdown or in tests.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Optional, Set

from .errors import CaptureDeliveryFailure


class CaptureDispatcher:
    """Runs capture callables either inline or on a worker pool.

    Usage::

        dispatcher = CaptureDispatcher(logger, max_workers=2)
        dispatcher.submit(lambda: client.capture_event(event))
        dispatcher.flush(timeout=2.0)
    """

    def __init__(self, logger: logging.Logger, *, background: bool = True, max_workers: int = 2):
        self.logger = logger
        self.background = background
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, fn: Callable[[], Any]) -> Optional[Future]:
        """Run *fn*; failures are logged and never raised to the caller."""
        if not self.background:
            self._run(fn)
            return None

        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="request-sentry"
                )
            future = self._executor.submit(self._run, fn)
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight captures.  Returns ``False`` if *timeout* expired first."""
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        done, not_done = wait(pending, timeout=timeout)
        with self._lock:
            self._pending.difference_update(done)
        if not_done:
            self.logger.warning("Flush timed out with %d capture(s) still pending", len(not_done))
        return not not_done

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self.flush(timeout)
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    # ── internals ────────────────────────────────────────────────

    def _run(self, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except Exception as exc:
            failure = CaptureDeliveryFailure(f"{type(exc).__name__}: {exc}")
            self.logger.error(
                "Capture failed: %s",
                failure,
                exc_info=True,
                extra={"error_type": type(exc).__name__},
            )
            return None

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
