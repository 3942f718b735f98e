"""Shared pytest fixtures for job tracker tests."""

import base64
import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from job_tracker.database import JobDatabase
from job_tracker.email_processor import EmailProcessor
from job_tracker.llm_service import LLMService
from job_tracker.metrics import MetricsTracker
from job_tracker.pipeline.base import PipelineContext
from job_tracker.pipeline.config import (
    ClassifyConfig,
    ConcurrencyConfig,
    FetchConfig,
    MonitoringConfig,
    PersistConfig,
    PipelineConfig,
)


def encode_body(text: str) -> str:
    """Encode text the way Gmail encodes message bodies."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def make_completion(content):
    """Build a chat completion response with the given message content."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def memory_connection():
    """In-memory SQLite connection shareable across worker threads."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    yield conn
    conn.close()


@pytest.fixture
def job_database(memory_connection):
    """JobDatabase backed by an in-memory connection."""
    return JobDatabase(conn=memory_connection, database_file=":memory:")


@pytest.fixture
def mock_sqlite_connection():
    """Create a mock SQLite connection."""
    mock_conn = MagicMock(spec=sqlite3.Connection)
    mock_cursor = MagicMock(spec=sqlite3.Cursor)
    mock_conn.cursor.return_value = mock_cursor
    mock_cursor.fetchone.return_value = None
    mock_cursor.fetchall.return_value = []
    return mock_conn, mock_cursor


@pytest.fixture
def mock_gmail_client():
    """Create a mock Gmail API client."""
    mock_client = MagicMock()

    # Mock the users().messages() chain
    mock_messages = MagicMock()
    mock_client.users.return_value.messages.return_value = mock_messages

    mock_messages.list.return_value.execute.return_value = {
        "messages": [{"id": "msg1", "threadId": "thread1"}],
        "nextPageToken": "token-1",
    }
    mock_messages.get.return_value.execute.return_value = {
        "id": "msg1",
        "payload": {
            "mimeType": "text/plain",
            "body": {"data": encode_body("We would like to schedule an interview")},
        },
    }

    return mock_client


@pytest.fixture
def mock_openai_client():
    """Create a mock OpenAI client."""
    mock_client = MagicMock()
    mock_client.chat.completions.create.return_value = make_completion("Acme Corp: INTERVIEW")
    return mock_client


@pytest.fixture
def email_processor(mock_gmail_client):
    """Create a real EmailProcessor instance with mocked gmail client."""
    return EmailProcessor(gmail_client=mock_gmail_client, query="is:unread")


@pytest.fixture
def mock_email_processor():
    """Create a mock EmailProcessor instance."""
    mock_processor = MagicMock(spec=EmailProcessor)
    mock_processor.fetch_page.return_value = (None, None)
    mock_processor.read_content.return_value = "Thanks for applying"
    return mock_processor


@pytest.fixture
def real_llm_service(mock_openai_client):
    """Create a real LLMService instance with mocked client."""
    return LLMService(llm_client=mock_openai_client, model="gpt-4o-mini")


@pytest.fixture
def llm_service():
    """Create a mock LLMService instance."""
    mock_llm_service = MagicMock(spec=LLMService)
    mock_llm_service.ignore_marker = "null"
    mock_llm_service.classify_email.return_value = "Acme Corp: INTERVIEW"
    return mock_llm_service


@pytest.fixture
def metrics_tracker():
    return MetricsTracker()


@pytest.fixture
def pipeline_config(tmp_path):
    """Create a test pipeline configuration with a fast rate limit."""
    return PipelineConfig(
        fetch=FetchConfig(gmail_query="is:unread", max_emails=100),
        classify=ClassifyConfig(
            llm_service="openai",
            model="gpt-4o-mini",
            rate_limit_permits=1000,
            rate_limit_period=1.0,
            rate_limit_burst=1000,
        ),
        persist=PersistConfig(database_path=":memory:"),
        concurrency=ConcurrencyConfig(max_workers=4, shutdown_grace_period=0.5),
        monitoring=MonitoringConfig(
            metrics_path=str(tmp_path / "metrics.json"), save_metrics=False
        ),
    )


@pytest.fixture
def pipeline_context(pipeline_config):
    """Create a test pipeline context without a rate limiter."""
    return PipelineContext.create(config=pipeline_config)


@pytest.fixture(autouse=True)
def llm_log_files(tmp_path):
    """Keep LLM interaction logs out of the user's data directory."""
    with patch("job_tracker.llm_service.LLM_LOG_FILE", str(tmp_path / "llm.jsonl")), patch(
        "job_tracker.llm_service.ERROR_LOG_FILE", str(tmp_path / "errors.jsonl")
    ):
        yield tmp_path


@pytest.fixture(autouse=True)
def mock_logging():
    """Mock logging to prevent log output during tests."""
    with patch("logging.info"), patch("logging.error"), patch("logging.warning"), patch(
        "logging.debug"
    ):
        yield
