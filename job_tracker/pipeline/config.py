"""Configuration classes for the ingestion pipeline."""

import os
from dataclasses import dataclass, field
from typing import Optional

import yaml

from ..config import (
    CLASSIFY_RATE_PERIOD,
    CLASSIFY_RATE_PERMITS,
    DATABASE_FILE,
    GMAIL_QUERY,
    LLM_SERVICE,
    MAX_CONTENT_LENGTH,
    MAX_EMAILS_PER_RUN,
    METRICS_FILE,
    OLLAMA_MODEL,
    OPENAI_MODEL,
    RESULTS_FILE,
    SHUTDOWN_GRACE_PERIOD,
    WORKER_POOL_SIZE,
)
from ..exceptions import ConfigurationError


def default_model(llm_service: str) -> str:
    """Default model name for the given backend."""
    return OLLAMA_MODEL if str(llm_service).lower() == "ollama" else OPENAI_MODEL


@dataclass
class FetchConfig:
    """Configuration for the cursor fetch loop."""

    gmail_query: str = GMAIL_QUERY
    include_spam_trash: bool = False
    max_emails: int = MAX_EMAILS_PER_RUN  # safety bound per run
    max_empty_pages: int = 20  # consecutive pages without a message


@dataclass
class ClassifyConfig:
    """Configuration for the Classify stage."""

    llm_service: str = LLM_SERVICE.lower()  # Options: "openai", "ollama"
    model: Optional[str] = None  # backend default when unset
    max_content_length: int = MAX_CONTENT_LENGTH
    rate_limit_permits: int = CLASSIFY_RATE_PERMITS
    rate_limit_period: float = CLASSIFY_RATE_PERIOD
    rate_limit_burst: int = 1

    def __post_init__(self):
        if not self.model:
            self.model = default_model(self.llm_service)


@dataclass
class PersistConfig:
    """Configuration for the Persist stage."""

    database_path: str = DATABASE_FILE


@dataclass
class ConcurrencyConfig:
    """Configuration for the worker pool and shutdown."""

    max_workers: int = WORKER_POOL_SIZE
    shutdown_grace_period: float = SHUTDOWN_GRACE_PERIOD


@dataclass
class MonitoringConfig:
    """Configuration for monitoring and observability."""

    log_level: str = "INFO"
    metrics_path: Optional[str] = METRICS_FILE
    results_path: Optional[str] = RESULTS_FILE
    save_metrics: bool = True


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    classify: ClassifyConfig = field(default_factory=ClassifyConfig)
    persist: PersistConfig = field(default_factory=PersistConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def validate(self) -> "PipelineConfig":
        """Check value ranges.

        Raises:
            ConfigurationError: If any setting is out of range.
        """
        problems = []
        if self.fetch.max_emails < 0:
            problems.append("fetch.max_emails must not be negative")
        if self.fetch.max_empty_pages < 1:
            problems.append("fetch.max_empty_pages must be at least 1")
        if self.classify.rate_limit_permits <= 0:
            problems.append("classify.rate_limit_permits must be positive")
        if self.classify.rate_limit_period <= 0:
            problems.append("classify.rate_limit_period must be positive")
        if self.classify.rate_limit_burst < 1:
            problems.append("classify.rate_limit_burst must be at least 1")
        if self.classify.max_content_length <= 0:
            problems.append("classify.max_content_length must be positive")
        if self.classify.llm_service not in ("openai", "ollama"):
            problems.append(f"classify.llm_service must be 'openai' or 'ollama', got '{self.classify.llm_service}'")
        if self.concurrency.max_workers < 1:
            problems.append("concurrency.max_workers must be at least 1")
        if self.concurrency.shutdown_grace_period < 0:
            problems.append("concurrency.shutdown_grace_period must not be negative")

        if problems:
            raise ConfigurationError("; ".join(problems))
        return self

    @classmethod
    def from_yaml(cls, path: str) -> "PipelineConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {path}: {e}") from e

        pipeline_data = data.get("pipeline", {}) if isinstance(data, dict) else None
        if not isinstance(pipeline_data, dict):
            raise ConfigurationError(f"{path} has no 'pipeline' mapping")

        try:
            return cls(
                fetch=FetchConfig(**pipeline_data.get("fetch", {})),
                classify=ClassifyConfig(**pipeline_data.get("classify", {})),
                persist=PersistConfig(**pipeline_data.get("persist", {})),
                concurrency=ConcurrencyConfig(**pipeline_data.get("concurrency", {})),
                monitoring=MonitoringConfig(**pipeline_data.get("monitoring", {})),
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create configuration from environment variables and defaults."""
        config = cls()

        if os.getenv("LLM_SERVICE"):
            config.classify.llm_service = os.getenv("LLM_SERVICE").lower()

        if config.classify.llm_service == "ollama":
            config.classify.model = os.getenv("OLLAMA_MODEL") or OLLAMA_MODEL
        else:
            config.classify.model = os.getenv("OPENAI_MODEL") or OPENAI_MODEL

        if os.getenv("DATABASE_PATH"):
            config.persist.database_path = os.getenv("DATABASE_PATH")

        if os.getenv("LOG_LEVEL"):
            config.monitoring.log_level = os.getenv("LOG_LEVEL")

        return config

    def to_yaml(self, path: str):
        """Save configuration to YAML file."""
        data = {
            "pipeline": {
                "fetch": {
                    "gmail_query": self.fetch.gmail_query,
                    "include_spam_trash": self.fetch.include_spam_trash,
                    "max_emails": self.fetch.max_emails,
                    "max_empty_pages": self.fetch.max_empty_pages,
                },
                "classify": {
                    "llm_service": self.classify.llm_service,
                    "model": self.classify.model,
                    "max_content_length": self.classify.max_content_length,
                    "rate_limit_permits": self.classify.rate_limit_permits,
                    "rate_limit_period": self.classify.rate_limit_period,
                    "rate_limit_burst": self.classify.rate_limit_burst,
                },
                "persist": {
                    "database_path": self.persist.database_path,
                },
                "concurrency": {
                    "max_workers": self.concurrency.max_workers,
                    "shutdown_grace_period": self.concurrency.shutdown_grace_period,
                },
                "monitoring": {
                    "log_level": self.monitoring.log_level,
                    "metrics_path": self.monitoring.metrics_path,
                    "results_path": self.monitoring.results_path,
                    "save_metrics": self.monitoring.save_metrics,
                },
            }
        }

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
