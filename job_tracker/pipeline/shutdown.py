"""Bounded graceful shutdown of a pipeline run."""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, Optional, Set

from ..rate_limiter import RateLimiter
from .base import PipelineContext

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Owns the teardown of one run's executors and rate limiter.

    ``shutdown`` stops new dispatch, waits up to the grace period for in-flight
    item pipelines, then force-cancels what is left and releases the executors
    without joining their threads. Items already inside a remote call are
    abandoned rather than interrupted; they see the cancel signal at their
    next stage boundary or rate limiter wait.
    """

    def __init__(
        self,
        context: PipelineContext,
        fetch_executor: ThreadPoolExecutor,
        worker_pool: ThreadPoolExecutor,
        rate_limiter: Optional[RateLimiter],
        grace_period: float,
    ):
        self.context = context
        self.fetch_executor = fetch_executor
        self.worker_pool = worker_pool
        self.rate_limiter = rate_limiter
        self.grace_period = grace_period
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._abandoned = 0

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def abandoned(self) -> int:
        return self._abandoned

    def request_stop(self):
        """Stop the fetch loop from fetching or dispatching anything new."""
        if not self._stop_event.is_set():
            logger.info("Stop requested, no new emails will be dispatched")
        self._stop_event.set()

    def wait_finished(self, timeout: Optional[float] = None) -> bool:
        return self._finished.wait(timeout)

    def drain(self, in_flight: Callable[[], Set[Future]], timeout: Optional[float]) -> Set[Future]:
        """Wait for in-flight items until they finish or the timeout passes.

        ``in_flight`` is polled so futures that finish early drop out of the wait.

        Returns:
            The futures still pending when the wait ended.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        pending = in_flight()
        while pending:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                break
            _, not_done = wait(pending, timeout=remaining)
            pending = {f for f in not_done if not f.done()} | (in_flight() - pending)
        return {f for f in pending if not f.done()}

    def force_cancel(self, futures: Iterable[Future]) -> int:
        """Cancel queued items and abandon running ones.

        Returns:
            Number of running items abandoned.
        """
        self.context.cancel_event.set()
        if self.rate_limiter is not None:
            self.rate_limiter.close()

        abandoned = 0
        for future in futures:
            if not future.cancel() and not future.done():
                abandoned += 1
        if abandoned:
            logger.warning(f"Abandoning {abandoned} email(s) still running after the grace period")
        return abandoned

    def release(self):
        """Shut the executors down without waiting for their threads."""
        self.fetch_executor.shutdown(wait=False, cancel_futures=True)
        self.worker_pool.shutdown(wait=False, cancel_futures=True)
        if self.rate_limiter is not None:
            self.rate_limiter.close()

    def shutdown(
        self, in_flight: Callable[[], Set[Future]], grace_period: Optional[float] = None
    ) -> int:
        """Stop, drain within the grace period, force-cancel and release. Idempotent.

        Args:
            in_flight: Returns the futures of items still being processed.
            grace_period: Seconds to wait for in-flight items; defaults to the
                configured grace period.

        Returns:
            Number of items abandoned while still running.
        """
        with self._lock:
            if self._finished.is_set():
                return self._abandoned

            grace = self.grace_period if grace_period is None else grace_period
            self.request_stop()

            pending = self.drain(in_flight, grace)
            if pending:
                self._abandoned = self.force_cancel(pending)
            self.release()
            self._finished.set()

        logger.info("Pipeline resources released")
        return self._abandoned
