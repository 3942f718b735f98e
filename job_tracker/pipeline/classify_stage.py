"""Classify stage: ask the LLM for the company and application status."""

import logging
import time
from typing import Any, Optional

from ..llm_service import LLMService, parse_classification
from ..models import ClassificationResult, MessageContent
from .base import PipelineContext, PipelineStage
from .config import ClassifyConfig

logger = logging.getLogger(__name__)


class ClassifyStage(PipelineStage):
    """Classifies message text, throttled by the run's rate limiter."""

    def __init__(self, config: ClassifyConfig, llm_service: LLMService):
        """Initialize the classify stage.

        Args:
            config: Classify stage configuration.
            llm_service: Classifier used for the remote call.
        """
        super().__init__()
        self.config = config
        self.llm_service = llm_service

    def execute(
        self, input_data: MessageContent, context: PipelineContext
    ) -> Optional[ClassificationResult]:
        """Return the parsed classification, or None for ignored or malformed answers.

        Raises:
            PipelineCancelled: If the run is force-cancelled while waiting for a permit.
            ClassificationError: If the remote call fails.
        """
        if context.rate_limiter is not None:
            waited = context.rate_limiter.acquire()
            self.increment_metric("rate_limit_wait", waited)

        start_time = time.time()
        response = self.llm_service.classify_email(input_data.text)
        self.increment_metric("classification_time", time.time() - start_time)
        self.increment_metric("classifier_calls")

        result = parse_classification(response, self.llm_service.ignore_marker)
        if result is None:
            self.increment_metric("emails_ignored")
            logger.info(f"Email {input_data.message_id} ignored by classifier")
            return None

        self.increment_metric("emails_classified")
        logger.info(
            f"Email {input_data.message_id} classified: {result.company} -> {result.status.value}"
        )
        return result

    def validate_input(self, input_data: Any) -> bool:
        """Validate stage input."""
        return isinstance(input_data, MessageContent) and bool(input_data.text)
