"""Factory functions for creating dependency-injected instances."""

import logging
import sqlite3
from typing import Optional

from googleapiclient.discovery import Resource
from openai import OpenAI

from .config import (
    DATABASE_FILE,
    GMAIL_QUERY,
    LLM_SERVICE,
    MAX_CONTENT_LENGTH,
    OLLAMA_BASE_URL,
    OLLAMA_MODEL,
    OPENAI_API_KEY,
    OPENAI_MODEL,
)
from .database import JobDatabase
from .email_processor import EmailProcessor
from .gmail_utils import get_gmail_client
from .llm_service import LLMService
from .metrics import MetricsTracker
from .pipeline.config import PipelineConfig
from .pipeline.orchestrator import JobStatusPipeline


def create_database_connection(database_file: str = DATABASE_FILE) -> sqlite3.Connection:
    """Create a SQLite database connection usable from pipeline worker threads.

    Args:
        database_file: Path to the database file.

    Returns:
        SQLite connection object.
    """
    return sqlite3.connect(database_file, check_same_thread=False)


def create_gmail_client(port: int = 8080) -> Resource:
    """Create an authenticated Gmail API client.

    Args:
        port: Port for OAuth flow.

    Returns:
        Gmail API client resource.
    """
    return get_gmail_client(port=port)


def create_llm_client(service: str = LLM_SERVICE) -> OpenAI:
    """Create an LLM client based on configuration.

    Args:
        service: LLM service type ("OpenAI" or "Ollama", case-insensitive).

    Returns:
        OpenAI client instance.
    """
    if service.lower() == "ollama":
        logging.info(f"Creating Ollama client at {OLLAMA_BASE_URL}")
        return OpenAI(base_url=OLLAMA_BASE_URL, api_key="ollama")  # Dummy key for Ollama
    else:
        logging.info("Creating OpenAI client")
        return OpenAI(api_key=OPENAI_API_KEY)


def create_job_database(
    conn: Optional[sqlite3.Connection] = None, database_file: str = DATABASE_FILE
) -> JobDatabase:
    """Create a JobDatabase instance with optional connection injection.

    Args:
        conn: Optional SQLite connection to inject.
        database_file: Database file path (used if conn is None).

    Returns:
        JobDatabase instance.
    """
    if conn is None:
        conn = create_database_connection(database_file)
    return JobDatabase(conn=conn, database_file=database_file)


def create_email_processor(
    gmail_client: Optional[Resource] = None,
    port: int = 8080,
    query: str = GMAIL_QUERY,
    include_spam_trash: bool = False,
) -> EmailProcessor:
    """Create an EmailProcessor instance with optional Gmail client injection.

    Args:
        gmail_client: Optional Gmail API client to inject.
        port: Port for OAuth flow (used if gmail_client is None).
        query: Gmail search query for unread messages.
        include_spam_trash: Whether spam and trash are listed too.

    Returns:
        EmailProcessor instance.
    """
    if gmail_client is None:
        gmail_client = create_gmail_client(port)
    return EmailProcessor(
        gmail_client=gmail_client, query=query, include_spam_trash=include_spam_trash
    )


def create_llm_service(
    max_content_length: int = MAX_CONTENT_LENGTH,
    llm_client: Optional[OpenAI] = None,
    model: Optional[str] = None,
    service: str = LLM_SERVICE,
) -> LLMService:
    """Create an LLMService instance with optional client injection.

    Args:
        max_content_length: Maximum length of email content before truncation.
        llm_client: Optional OpenAI client to inject.
        model: Optional model name override.
        service: LLM service type (used if llm_client is None).

    Returns:
        LLMService instance.
    """
    if llm_client is None:
        llm_client = create_llm_client(service)
        if model is None:
            model = OLLAMA_MODEL if service.lower() == "ollama" else OPENAI_MODEL
    return LLMService(
        max_content_length=max_content_length,
        llm_client=llm_client,
        model=model,
        service=service,
    )


def create_job_status_pipeline(
    config: Optional[PipelineConfig] = None,
    database: Optional[JobDatabase] = None,
    llm_service: Optional[LLMService] = None,
    email_processor: Optional[EmailProcessor] = None,
    metrics_tracker: Optional[MetricsTracker] = None,
    gmail_port: int = 8080,
) -> JobStatusPipeline:
    """Create a fully configured JobStatusPipeline.

    Dependencies that are not provided are built from the configuration,
    so tests can pass fakes for just the collaborators they care about.

    Args:
        config: Pipeline configuration; read from the environment if omitted.
        database: Optional JobDatabase instance.
        llm_service: Optional LLMService instance.
        email_processor: Optional EmailProcessor instance.
        metrics_tracker: Optional MetricsTracker instance.
        gmail_port: Gmail OAuth port (for creating email processor).

    Returns:
        JobStatusPipeline ready to run.
    """
    if config is None:
        config = PipelineConfig.from_env()

    if database is None:
        database = create_job_database(database_file=config.persist.database_path)

    if llm_service is None:
        llm_service = create_llm_service(
            max_content_length=config.classify.max_content_length,
            model=config.classify.model,
            service=config.classify.llm_service,
        )

    if email_processor is None:
        email_processor = create_email_processor(
            port=gmail_port,
            query=config.fetch.gmail_query,
            include_spam_trash=config.fetch.include_spam_trash,
        )

    if metrics_tracker is None:
        metrics_tracker = MetricsTracker()

    return JobStatusPipeline(
        config,
        email_processor=email_processor,
        database=database,
        llm_service=llm_service,
        metrics_tracker=metrics_tracker,
    )
