"""Gmail job application tracker."""

from .database import JobDatabase
from .email_processor import EmailProcessor
from .factory import (
    create_database_connection,
    create_email_processor,
    create_gmail_client,
    create_job_database,
    create_job_status_pipeline,
    create_llm_client,
    create_llm_service,
)
from .llm_service import LLMService
from .metrics import MetricsTracker
from .models import (
    ClassificationResult,
    JobRecord,
    MessageContent,
    MessageSummary,
    OutcomeKind,
    PipelineOutcome,
    Status,
)
from .rate_limiter import RateLimiter

__version__ = "1.0.0"
__all__ = [
    "JobDatabase",
    "EmailProcessor",
    "LLMService",
    "MetricsTracker",
    "RateLimiter",
    # Models
    "Status",
    "MessageSummary",
    "MessageContent",
    "ClassificationResult",
    "JobRecord",
    "OutcomeKind",
    "PipelineOutcome",
    # Factory functions
    "create_job_status_pipeline",
    "create_job_database",
    "create_email_processor",
    "create_llm_service",
    "create_database_connection",
    "create_gmail_client",
    "create_llm_client",
]
