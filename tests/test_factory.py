"""Tests for factory functions."""

import sqlite3
import tempfile
import threading
from unittest.mock import MagicMock, patch

from job_tracker.database import JobDatabase
from job_tracker.email_processor import EmailProcessor
from job_tracker.factory import (
    create_database_connection,
    create_email_processor,
    create_gmail_client,
    create_job_database,
    create_job_status_pipeline,
    create_llm_client,
    create_llm_service,
)
from job_tracker.llm_service import LLMService
from job_tracker.pipeline.orchestrator import JobStatusPipeline


class TestFactoryFunctions:
    """Test cases for factory functions."""

    def test_create_database_connection_custom(self):
        """Test creating database connection with custom file."""
        with tempfile.NamedTemporaryFile(suffix=".db") as tmp:
            conn = create_database_connection(tmp.name)

            assert isinstance(conn, sqlite3.Connection)
            conn.close()

    def test_database_connection_is_usable_from_other_threads(self):
        conn = create_database_connection(":memory:")
        errors = []

        def query():
            try:
                conn.execute("SELECT 1")
            except sqlite3.ProgrammingError as e:
                errors.append(e)

        thread = threading.Thread(target=query)
        thread.start()
        thread.join()
        conn.close()

        assert errors == []

    def test_create_gmail_client_default_port(self):
        """Test Gmail client creation with default port."""
        with patch("job_tracker.factory.get_gmail_client") as mock_get_client:
            mock_client = MagicMock()
            mock_get_client.return_value = mock_client

            client = create_gmail_client()

            assert client == mock_client
            mock_get_client.assert_called_once_with(port=8080)

    def test_create_llm_client_openai(self):
        """Test creating OpenAI LLM client."""
        with patch("job_tracker.factory.OPENAI_API_KEY", "test-key"), patch(
            "job_tracker.factory.OpenAI"
        ) as mock_openai:
            client = create_llm_client("OpenAI")

            assert client == mock_openai.return_value
            mock_openai.assert_called_once_with(api_key="test-key")

    def test_create_llm_client_ollama(self):
        """Test creating Ollama LLM client."""
        with patch("job_tracker.factory.OLLAMA_BASE_URL", "http://localhost:11434/v1"), patch(
            "job_tracker.factory.OpenAI"
        ) as mock_openai:
            create_llm_client("ollama")

            mock_openai.assert_called_once_with(
                base_url="http://localhost:11434/v1", api_key="ollama"
            )

    def test_create_job_database_with_connection(self, memory_connection):
        database = create_job_database(conn=memory_connection)

        assert isinstance(database, JobDatabase)
        assert database.conn is memory_connection
        assert not database.owns_connection

    def test_create_email_processor_with_client(self, mock_gmail_client):
        processor = create_email_processor(gmail_client=mock_gmail_client, query="label:jobs")

        assert isinstance(processor, EmailProcessor)
        assert processor.gmail is mock_gmail_client
        assert processor.query == "label:jobs"

    def test_create_llm_service_with_client(self, mock_openai_client):
        service = create_llm_service(llm_client=mock_openai_client, model="gpt-4o")

        assert isinstance(service, LLMService)
        assert service.llm_client is mock_openai_client
        assert service.model == "gpt-4o"

    def test_create_llm_service_without_client(self):
        with patch("job_tracker.factory.create_llm_client") as mock_create, patch(
            "job_tracker.factory.OLLAMA_MODEL", "llama3.1"
        ):
            service = create_llm_service(service="Ollama")

            mock_create.assert_called_once_with("Ollama")
            assert service.model == "llama3.1"
            assert service.service == "Ollama"

    def test_create_job_status_pipeline(
        self, pipeline_config, job_database, mock_email_processor, llm_service
    ):
        pipeline = create_job_status_pipeline(
            config=pipeline_config,
            database=job_database,
            llm_service=llm_service,
            email_processor=mock_email_processor,
        )

        assert isinstance(pipeline, JobStatusPipeline)
        assert pipeline.database is job_database
        assert pipeline.metrics_tracker is not None
        assert pipeline.stages["persist"].database is job_database

    def test_create_job_status_pipeline_builds_missing_dependencies(self, pipeline_config):
        with patch("job_tracker.factory.create_email_processor") as mock_processor, patch(
            "job_tracker.factory.create_llm_service"
        ) as mock_llm:
            pipeline = create_job_status_pipeline(config=pipeline_config)

            mock_processor.assert_called_once_with(
                port=8080, query="is:unread", include_spam_trash=False
            )
            mock_llm.assert_called_once_with(
                max_content_length=pipeline_config.classify.max_content_length,
                model="gpt-4o-mini",
                service="openai",
            )
            assert pipeline.email_processor is mock_processor.return_value
            pipeline.database.conn.close()

    def test_create_job_status_pipeline_honours_spam_trash_setting(self, pipeline_config):
        pipeline_config.fetch.include_spam_trash = True
        with patch("job_tracker.factory.create_gmail_client") as mock_gmail, patch(
            "job_tracker.factory.create_llm_service"
        ):
            pipeline = create_job_status_pipeline(config=pipeline_config)

            assert pipeline.email_processor.include_spam_trash is True
            assert pipeline.email_processor.gmail is mock_gmail.return_value
            pipeline.database.conn.close()
