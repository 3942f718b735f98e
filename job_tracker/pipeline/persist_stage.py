"""Persist stage: create or update the job record for a classification."""

import logging
from typing import Any

from ..database import JobDatabase
from ..models import ClassificationResult, PipelineOutcome
from .base import PipelineContext, PipelineStage

logger = logging.getLogger(__name__)


class PersistStage(PipelineStage):
    """Upserts the classified status into the job store, keyed by company name."""

    def __init__(self, database: JobDatabase):
        """Initialize the persist stage.

        Args:
            database: Job store shared by all item pipelines.
        """
        super().__init__()
        self.database = database

    def execute(self, input_data: ClassificationResult, context: PipelineContext) -> PipelineOutcome:
        """Write the status and report whether the record was created or updated.

        Raises:
            PersistenceError: If the store rejects the write.
        """
        record, created = self.database.create_or_update(input_data.company, input_data.status)
        if created:
            self.increment_metric("jobs_created")
            return PipelineOutcome.created(company=record.name)

        self.increment_metric("jobs_updated")
        return PipelineOutcome.updated(company=record.name)

    def validate_input(self, input_data: Any) -> bool:
        """Validate stage input."""
        return isinstance(input_data, ClassificationResult) and bool(input_data.company)
