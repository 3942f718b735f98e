"""ReadContent stage: fetch the text body of one message."""

import logging
import time
from typing import Any, Optional

from ..email_processor import EmailProcessor
from ..models import MessageContent, MessageSummary
from .base import PipelineContext, PipelineStage

logger = logging.getLogger(__name__)


class ReadContentStage(PipelineStage):
    """Reads a message body through the mail source."""

    def __init__(self, email_processor: EmailProcessor):
        """Initialize the read stage.

        Args:
            email_processor: Mail source used to read message bodies.
        """
        super().__init__()
        self.email_processor = email_processor

    def execute(self, input_data: MessageSummary, context: PipelineContext) -> Optional[MessageContent]:
        """Return the message text, or None if it has no usable body.

        Raises:
            ContentReadError: If the mail source fails.
        """
        start_time = time.time()
        text = self.email_processor.read_content(input_data.id)
        self.increment_metric("read_time", time.time() - start_time)

        if text is None:
            logger.info(f"No text content found for email {input_data.id}, skipping classification")
            self.increment_metric("emails_without_content")
            return None

        self.increment_metric("emails_read")
        return MessageContent(message_id=input_data.id, text=text)

    def validate_input(self, input_data: Any) -> bool:
        """Validate stage input."""
        return isinstance(input_data, MessageSummary)
