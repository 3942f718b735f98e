"""Base classes and run-level models for the ingestion pipeline."""

import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..models import OutcomeKind, PipelineOutcome
from ..rate_limiter import RateLimiter


class PipelineState(str, Enum):
    """Lifecycle of one pipeline run."""

    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class StopReason(str, Enum):
    """Why the fetch loop stopped scheduling new work."""

    EXHAUSTED = "exhausted"
    BOUND_REACHED = "bound_reached"
    FETCH_ERROR = "fetch_error"
    STOP_REQUESTED = "stop_requested"


@dataclass
class PipelineContext:
    """Run-scoped state shared by the fetch loop and every item pipeline.

    Counters and errors are guarded by a lock because item pipelines finish
    on worker threads in any order.
    """

    run_id: str
    start_time: datetime
    config: Any  # PipelineConfig
    rate_limiter: Optional[RateLimiter] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    metrics: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    dispatched: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def create(cls, config: Any, rate_limiter: Optional[RateLimiter] = None) -> "PipelineContext":
        """Create a new pipeline context."""
        return cls(
            run_id=str(uuid.uuid4()),
            start_time=datetime.now(),
            config=config,
            rate_limiter=rate_limiter,
        )

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def add_error(self, error: str):
        """Add an error to the context."""
        with self._lock:
            self.errors.append(error)

    def record_dispatch(self) -> int:
        """Count one dispatched item and return the new total."""
        with self._lock:
            self.dispatched += 1
            return self.dispatched

    def record_outcome(self, outcome: PipelineOutcome):
        """Count an item's terminal outcome."""
        with self._lock:
            key = f"outcome_{outcome.kind.value}"
            self.metrics[key] = self.metrics.get(key, 0) + 1
            if outcome.kind is OutcomeKind.FAILED:
                self.errors.append(f"Email {outcome.message_id} failed: {outcome.reason}")

    def outcome_counts(self) -> Dict[str, int]:
        with self._lock:
            return {kind.value: self.metrics.get(f"outcome_{kind.value}", 0) for kind in OutcomeKind}


@dataclass
class PipelineRun:
    """Summary of a completed pipeline run."""

    run_id: str
    start_time: datetime
    end_time: datetime
    stop_reason: Optional[StopReason]
    dispatched: int
    created: int
    updated: int
    ignored: int
    failed: int
    abandoned: int
    errors: List[str]
    metrics: Dict[str, Any]

    @property
    def completed(self) -> int:
        return self.created + self.updated + self.ignored + self.failed


class PipelineStage(ABC):
    """Base interface for all pipeline stages.

    A stage turns one item's input into its output, or returns None when the
    item has nothing more to do. Stages run concurrently on worker threads.
    """

    def __init__(self):
        self.metrics = {}
        self.name = self.__class__.__name__
        self._metrics_lock = threading.Lock()

    @abstractmethod
    def execute(self, input_data: Any, context: PipelineContext) -> Any:
        """Execute the stage logic."""
        pass

    @abstractmethod
    def validate_input(self, input_data: Any) -> bool:
        """Validate stage input."""
        pass

    def increment_metric(self, key: str, value: float = 1):
        with self._metrics_lock:
            self.metrics[key] = self.metrics.get(key, 0) + value

    def get_metrics(self) -> Dict[str, Any]:
        """Return stage-specific metrics."""
        with self._metrics_lock:
            return dict(self.metrics)

    def reset_metrics(self):
        """Reset stage metrics."""
        with self._metrics_lock:
            self.metrics = {}
