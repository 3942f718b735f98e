"""Main orchestrator for the job status ingestion pipeline."""

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Optional, Set

from ..database import JobDatabase
from ..email_processor import EmailProcessor
from ..exceptions import FetchError
from ..llm_service import LLMService
from ..metrics import MetricsTracker
from ..models import MessageSummary, PipelineOutcome
from ..rate_limiter import RateLimiter
from .base import PipelineContext, PipelineRun, PipelineStage, PipelineState, StopReason
from .classify_stage import ClassifyStage
from .config import PipelineConfig
from .fetcher import CursorFetcher
from .item_pipeline import ItemPipeline
from .persist_stage import PersistStage
from .read_stage import ReadContentStage
from .shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)

# How often blocked waits re-check for a stop request
POLL_INTERVAL = 0.1

_NEXT_STATES = {
    PipelineState.IDLE: {PipelineState.RUNNING, PipelineState.STOPPED},
    PipelineState.RUNNING: {PipelineState.DRAINING},
    PipelineState.DRAINING: {PipelineState.STOPPED},
    PipelineState.STOPPED: set(),
}


class JobStatusPipeline:
    """Fetches unread emails one by one and hands each to a bounded worker pool.

    A single fetch thread walks the mailbox cursor and dispatches every email
    to the worker pool without waiting for it. Each worker runs the email
    through ReadContent, Classify and Persist. The run stops dispatching when
    the mailbox is exhausted, the per-run safety bound is reached, the mail
    source fails, or ``stop()`` is called.

    Executors and the rate limiter are created by ``start()`` and released by
    the run's ShutdownCoordinator, so a pipeline object runs once.
    """

    def __init__(
        self,
        config: PipelineConfig,
        email_processor: EmailProcessor = None,
        database: JobDatabase = None,
        llm_service: LLMService = None,
        metrics_tracker: MetricsTracker = None,
    ):
        """Initialize the pipeline with configuration.

        Args:
            config: Pipeline configuration.
            email_processor: Optional shared EmailProcessor instance.
            database: Optional shared JobDatabase instance.
            llm_service: Optional shared LLMService instance.
            metrics_tracker: Optional shared MetricsTracker instance.
        """
        self.config = config
        self.email_processor = email_processor
        self.database = database
        self.llm_service = llm_service
        self.metrics_tracker = metrics_tracker
        self._owns_database = database is None

        self.stages: "OrderedDict[str, PipelineStage]" = OrderedDict()
        self._initialize_default_stages()
        self.item_pipeline = ItemPipeline(list(self.stages.values()), self.metrics_tracker)

        self._state = PipelineState.IDLE
        self._state_lock = threading.Lock()
        self._in_flight: Dict[Future, MessageSummary] = {}
        self._in_flight_lock = threading.Lock()
        self._fetch_done = threading.Event()

        self.context: Optional[PipelineContext] = None
        self.fetcher: Optional[CursorFetcher] = None
        self.coordinator: Optional[ShutdownCoordinator] = None
        self._slots: Optional[threading.BoundedSemaphore] = None
        self._worker_pool: Optional[ThreadPoolExecutor] = None
        self._fetch_error: Optional[FetchError] = None
        self._stop_reason: Optional[StopReason] = None
        self._run_result: Optional[PipelineRun] = None

    def _initialize_default_stages(self):
        """Initialize the item stages with dependency injection."""
        if self.email_processor is None:
            self.email_processor = EmailProcessor(
                query=self.config.fetch.gmail_query,
                include_spam_trash=self.config.fetch.include_spam_trash,
                lazy_init=True,
            )
        if self.database is None:
            self.database = JobDatabase(database_file=self.config.persist.database_path)
        if self.llm_service is None:
            self.llm_service = LLMService(
                max_content_length=self.config.classify.max_content_length,
                model=self.config.classify.model,
                lazy_init=True,
                service=self.config.classify.llm_service,
            )
        if self.metrics_tracker is None:
            self.metrics_tracker = MetricsTracker()

        self.stages["read"] = ReadContentStage(self.email_processor)
        self.stages["classify"] = ClassifyStage(self.config.classify, self.llm_service)
        self.stages["persist"] = PersistStage(self.database)

        logger.info(f"Initialized pipeline with stages: {', '.join(self.stages)}")

    @property
    def state(self) -> PipelineState:
        return self._state

    def _transition(self, new_state: PipelineState) -> bool:
        with self._state_lock:
            if new_state not in _NEXT_STATES[self._state]:
                return False
            logger.debug(f"Pipeline state {self._state.value} -> {new_state.value}")
            self._state = new_state
            return True

    def _snapshot_in_flight(self) -> Set[Future]:
        with self._in_flight_lock:
            return set(self._in_flight)

    @property
    def in_flight_count(self) -> int:
        with self._in_flight_lock:
            return len(self._in_flight)

    def start(self) -> PipelineContext:
        """Create the run's resources and launch the fetch loop. Returns immediately.

        Raises:
            RuntimeError: If the pipeline was already started.
            ConfigurationError: If the configuration is invalid.
        """
        with self._state_lock:
            if self._state is not PipelineState.IDLE:
                raise RuntimeError(f"Pipeline cannot start from state '{self._state.value}'")
            self.config.validate()

            classify = self.config.classify
            rate_limiter = RateLimiter(
                permits=classify.rate_limit_permits,
                period=classify.rate_limit_period,
                burst=classify.rate_limit_burst,
            )
            self.context = PipelineContext.create(config=self.config, rate_limiter=rate_limiter)
            self.fetcher = CursorFetcher(self.email_processor)

            max_workers = self.config.concurrency.max_workers
            fetch_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gmail-fetch")
            self._worker_pool = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="email-worker"
            )
            self._slots = threading.BoundedSemaphore(max_workers)
            self.coordinator = ShutdownCoordinator(
                context=self.context,
                fetch_executor=fetch_executor,
                worker_pool=self._worker_pool,
                rate_limiter=rate_limiter,
                grace_period=self.config.concurrency.shutdown_grace_period,
            )
            self._state = PipelineState.RUNNING

        logger.info(
            f"Starting pipeline run {self.context.run_id} "
            f"(max {self.config.fetch.max_emails} emails, {max_workers} workers, "
            f"{classify.rate_limit_permits} classifications per {classify.rate_limit_period:g}s)"
        )
        fetch_executor.submit(self._fetch_loop)
        return self.context

    def _fetch_loop(self) -> Optional[StopReason]:
        """Fetch emails one at a time and dispatch each without waiting for it."""
        reason = None
        bound = self.config.fetch.max_emails
        max_empty_pages = self.config.fetch.max_empty_pages
        empty_pages = 0
        try:
            while True:
                if self.coordinator.stop_requested:
                    reason = StopReason.STOP_REQUESTED
                    break
                if self.context.dispatched >= bound:
                    logger.info(f"Safety bound of {bound} emails reached")
                    reason = StopReason.BOUND_REACHED
                    break

                summary = self.fetcher.advance()
                if summary is None:
                    if self.fetcher.exhausted:
                        logger.info("No more new unread messages found")
                        reason = StopReason.EXHAUSTED
                        break
                    empty_pages += 1
                    if empty_pages >= max_empty_pages:
                        logger.warning(
                            f"{empty_pages} consecutive empty pages, treating the source as exhausted"
                        )
                        reason = StopReason.EXHAUSTED
                        break
                    continue

                empty_pages = 0
                if not self._dispatch(summary):
                    reason = StopReason.STOP_REQUESTED
                    break

                if self.fetcher.exhausted:
                    reason = StopReason.EXHAUSTED
                    break
        except Exception as e:
            error = e if isinstance(e, FetchError) else FetchError(f"Fetch loop failed: {e}")
            if error is not e:
                error.__cause__ = e
            self._fetch_error = error
            reason = StopReason.FETCH_ERROR
            logger.error(f"Error during email fetching, no new emails will be dispatched: {e}")
            self.context.add_error(f"Fetch failed: {e}")
        finally:
            self._stop_reason = reason
            self._transition(PipelineState.DRAINING)
            self._fetch_done.set()
            logger.info(
                f"Finished dispatching a total of {self.context.dispatched} emails"
                + (f" ({reason.value})" if reason else "")
            )
        return reason

    def _dispatch(self, summary: MessageSummary) -> bool:
        """Submit one email to the worker pool, waiting for a free worker slot.

        Returns:
            False if a stop was requested before the email could be dispatched.
        """
        while not self._slots.acquire(timeout=POLL_INTERVAL):
            if self.coordinator.stop_requested:
                return False
        if self.coordinator.stop_requested:
            self._slots.release()
            return False

        try:
            future = self._worker_pool.submit(self.item_pipeline.process, summary, self.context)
        except RuntimeError:
            # Pool already shut down by a concurrent stop
            self._slots.release()
            return False

        count = self.context.record_dispatch()
        logger.info(f"Dispatched email {summary.id} (email {count})")
        with self._in_flight_lock:
            self._in_flight[future] = summary
        future.add_done_callback(self._on_item_done)
        return True

    def _on_item_done(self, future: Future):
        with self._in_flight_lock:
            summary = self._in_flight.pop(future, None)
        self._slots.release()

        if summary is None:
            return
        if future.cancelled():
            outcome = PipelineOutcome.failed("cancelled before start", message_id=summary.id)
        elif future.exception() is not None:
            outcome = PipelineOutcome.failed(str(future.exception()), message_id=summary.id)
        else:
            return

        self.context.record_outcome(outcome)
        if self.metrics_tracker is not None:
            self.metrics_tracker.add_outcome(outcome)

    def wait(self) -> PipelineRun:
        """Block until every dispatched email finishes, then release resources.

        Returns early if ``stop()`` finishes first.

        Raises:
            RuntimeError: If the pipeline was never started.
            FetchError: If the mail source failed before any email was dispatched.
        """
        if self.context is None:
            raise RuntimeError("Pipeline has not been started")

        while not self._fetch_done.wait(POLL_INTERVAL):
            if self.coordinator.finished:
                break

        while self.in_flight_count and not self.coordinator.finished:
            self.coordinator.drain(self._snapshot_in_flight, POLL_INTERVAL)

        if not self.coordinator.finished:
            self._transition(PipelineState.DRAINING)
            self.coordinator.shutdown(self._snapshot_in_flight, grace_period=0)
        else:
            self.coordinator.wait_finished()
        self._transition(PipelineState.STOPPED)

        result = self._finish()
        if self._fetch_error is not None and result.dispatched == 0:
            raise self._fetch_error
        return result

    def run(self) -> PipelineRun:
        """Execute a complete run: start, dispatch everything, drain."""
        self.start()
        return self.wait()

    def stop(self, grace_period: Optional[float] = None) -> Optional[PipelineRun]:
        """Stop the run. Idempotent and bounded by the grace period.

        Stops fetching, waits up to ``grace_period`` seconds (default from the
        configuration) for in-flight emails, then cancels queued ones and
        abandons those still running.

        Returns:
            The run summary, or None if the pipeline was never started.
        """
        if self.context is None:
            self._transition(PipelineState.STOPPED)
            return None

        self._transition(PipelineState.DRAINING)
        abandoned = self.coordinator.shutdown(self._snapshot_in_flight, grace_period)
        if abandoned:
            logger.warning(f"{abandoned} email(s) were still running at shutdown")
        self._transition(PipelineState.STOPPED)
        return self._finish()

    def _finish(self) -> PipelineRun:
        """Build the run summary once; later calls return the same summary."""
        with self._state_lock:
            if self._run_result is not None:
                return self._run_result
            self._run_result = self._create_run_result()
            result = self._run_result

        elapsed = (result.end_time - result.start_time).total_seconds()
        logger.info(f"Pipeline run {result.run_id} completed in {elapsed:.2f}s")
        logger.info(
            f"Dispatched: {result.dispatched}, created: {result.created}, updated: {result.updated}, "
            f"ignored: {result.ignored}, failed: {result.failed}, abandoned: {result.abandoned}"
        )
        if result.errors:
            logger.warning(f"Errors encountered: {len(result.errors)}")
            for error in result.errors[:5]:
                logger.warning(f"  - {error}")

        self._save_metrics()
        return result

    def _create_run_result(self) -> PipelineRun:
        counts = self.context.outcome_counts()
        metrics = dict(self.context.metrics)
        for name, stage in self.stages.items():
            for key, value in stage.get_metrics().items():
                metrics[f"{name}_{key}"] = value
        if self.fetcher is not None:
            metrics["pages_fetched"] = self.fetcher.pages_fetched

        return PipelineRun(
            run_id=self.context.run_id,
            start_time=self.context.start_time,
            end_time=datetime.now(),
            stop_reason=self._stop_reason or StopReason.STOP_REQUESTED,
            dispatched=self.context.dispatched,
            created=counts["created"],
            updated=counts["updated"],
            ignored=counts["ignored"],
            failed=counts["failed"],
            abandoned=self.coordinator.abandoned,
            errors=list(self.context.errors),
            metrics=metrics,
        )

    def _save_metrics(self):
        monitoring = self.config.monitoring
        if not monitoring.save_metrics or not monitoring.metrics_path or not monitoring.results_path:
            return
        try:
            self.metrics_tracker.save_results(
                output_file=monitoring.results_path, summary_file=monitoring.metrics_path
            )
        except OSError as e:
            logger.error(f"Failed to save run metrics: {e}")

    def get_stage_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Get metrics from all stages."""
        return {name: stage.get_metrics() for name, stage in self.stages.items()}

    def reset_metrics(self):
        """Reset stage metrics and recorded outcomes."""
        for stage in self.stages.values():
            stage.reset_metrics()
        self.metrics_tracker.reset()

    def close(self):
        """Release the database if this pipeline created it."""
        if self._owns_database:
            self.database.close()
