"""Sequential per-item pipeline with an error boundary around every stage."""

import logging
import time
from typing import List, Optional

from ..exceptions import PipelineCancelled
from ..metrics import MetricsTracker
from ..models import MessageSummary, PipelineOutcome
from .base import PipelineContext, PipelineStage

logger = logging.getLogger(__name__)


class ItemPipeline:
    """Runs one message through an ordered list of stages.

    Each stage receives the previous stage's output. A stage returning None
    ends the item as ignored, and a stage raising ends it as failed; neither
    reaches the caller or any other item. The last stage must return a
    PipelineOutcome.
    """

    def __init__(self, stages: List[PipelineStage], metrics_tracker: Optional[MetricsTracker] = None):
        if not stages:
            raise ValueError("ItemPipeline needs at least one stage")
        self.stages = list(stages)
        self.metrics_tracker = metrics_tracker

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def process(self, summary: MessageSummary, context: PipelineContext) -> PipelineOutcome:
        """Process one message and return its terminal outcome. Never raises."""
        start_time = time.time()
        outcome = self._run_stages(summary, context).for_message(summary.id)
        processing_time = time.time() - start_time

        context.record_outcome(outcome)
        if self.metrics_tracker is not None:
            self.metrics_tracker.add_outcome(outcome, processing_time)

        logger.info(
            f"Email {summary.id} finished as {outcome.kind.value} ({processing_time:.2f}s)"
            + (f": {outcome.reason}" if outcome.reason else "")
        )
        return outcome

    def _run_stages(self, summary: MessageSummary, context: PipelineContext) -> PipelineOutcome:
        data = summary
        for stage in self.stages:
            if context.cancelled:
                return PipelineOutcome.failed(f"cancelled before {stage.name}")

            try:
                if not stage.validate_input(data):
                    raise ValueError(f"Invalid input for stage '{stage.name}'")
                data = stage.execute(data, context)
            except PipelineCancelled as e:
                logger.warning(f"Email {summary.id} cancelled in {stage.name}: {e}")
                return PipelineOutcome.failed(f"cancelled in {stage.name}")
            except Exception as e:
                logger.error(f"Stage '{stage.name}' failed for email {summary.id}: {e}")
                return PipelineOutcome.failed(f"{stage.name}: {e}")

            if data is None:
                return PipelineOutcome.ignored(reason=f"no output from {stage.name}")

        if not isinstance(data, PipelineOutcome):
            return PipelineOutcome.failed(
                f"last stage returned {type(data).__name__}, expected PipelineOutcome"
            )
        return data
