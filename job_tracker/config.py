"""Configuration module for the job tracker."""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def get_default_data_dir() -> Path:
    """Get platform-appropriate default data directory.

    Returns:
        Path to default data directory:
        - Linux/Mac: ~/.local/share/gmail-job-tracker/
        - Windows: %LOCALAPPDATA%/gmail-job-tracker/
        - Fallback: ./data/
    """
    if os.name == "posix":
        base = Path.home() / ".local" / "share" / "gmail-job-tracker"
    elif os.name == "nt":
        base = (
            Path(os.getenv("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
            / "gmail-job-tracker"
        )
    else:
        base = Path("./data")

    return base


def get_default_log_dir() -> Path:
    """Get platform-appropriate default log directory."""
    return get_default_data_dir() / "logs"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        logging.warning(f"Ignoring invalid integer for {name}: {value!r}")
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        logging.warning(f"Ignoring invalid number for {name}: {value!r}")
        return default


class PathConfig:
    """Manages configurable file paths for the application.

    Priority order:
    1. Environment variables
    2. YAML configuration file
    3. Default values

    All paths are resolved to absolute paths and parent directories
    are created automatically if they don't exist.
    """

    PATH_ATTRS = (
        "database_file",
        "llm_log_file",
        "error_log_file",
        "metrics_file",
        "results_file",
        "token_file",
        "credentials_file",
    )

    def __init__(self, config_file: Optional[str] = None):
        """Initialize path configuration.

        Args:
            config_file: Optional path to YAML config file to load paths from.
        """
        yaml_paths = {}
        if config_file and Path(config_file).exists():
            with open(config_file) as f:
                data = yaml.safe_load(f) or {}
                yaml_paths = data.get("paths", {})

        default_data_dir = get_default_data_dir()
        default_log_dir = get_default_log_dir()

        self.database_file = self._resolve_path(
            os.getenv("DATABASE_FILE"),
            yaml_paths.get("database_file"),
            default_data_dir / "jobs.db",
        )

        self.llm_log_file = self._resolve_path(
            os.getenv("LLM_LOG_FILE"),
            yaml_paths.get("llm_log_file"),
            default_log_dir / "llm_interactions.jsonl",
        )

        self.error_log_file = self._resolve_path(
            os.getenv("ERROR_LOG_FILE"),
            yaml_paths.get("error_log_file"),
            default_log_dir / "classification_errors.log",
        )

        self.metrics_file = self._resolve_path(
            os.getenv("METRICS_FILE"),
            yaml_paths.get("metrics_file"),
            default_data_dir / "run_metrics.json",
        )

        self.results_file = self._resolve_path(
            os.getenv("RESULTS_FILE"),
            yaml_paths.get("results_file"),
            default_data_dir / "run_results.csv",
        )

        # OAuth files live next to the data by default
        self.token_file = self._resolve_path(
            os.getenv("GMAIL_TOKEN_FILE"),
            yaml_paths.get("token_file"),
            default_data_dir / "token.json",
        )

        self.credentials_file = self._resolve_path(
            os.getenv("GMAIL_CREDENTIALS_FILE"),
            yaml_paths.get("credentials_file"),
            default_data_dir / "credentials.json",
        )

        self._ensure_directories()

    def _resolve_path(
        self, env_value: Optional[str], yaml_value: Optional[str], default_value: Path
    ) -> Path:
        """Resolve a path from environment, YAML, or default."""
        if env_value:
            return Path(env_value).resolve()
        elif yaml_value:
            return Path(yaml_value).resolve()
        else:
            return default_value.resolve()

    def _ensure_directories(self):
        """Create parent directories for all configured paths if they don't exist."""
        for path_attr in self.PATH_ATTRS:
            path = getattr(self, path_attr)
            path.parent.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict:
        """Export configuration as dictionary of strings."""
        return {attr: str(getattr(self, attr)) for attr in self.PATH_ATTRS}


_config_file = os.getenv("CONFIG_FILE")
_path_config = PathConfig(config_file=_config_file)

# File paths
DATABASE_FILE = str(_path_config.database_file)
LLM_LOG_FILE = str(_path_config.llm_log_file)
ERROR_LOG_FILE = str(_path_config.error_log_file)
METRICS_FILE = str(_path_config.metrics_file)
RESULTS_FILE = str(_path_config.results_file)
TOKEN_FILE = str(_path_config.token_file)
CREDENTIALS_FILE = str(_path_config.credentials_file)

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, log_level.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - [%(threadName)s] - %(message)s",
)

# LLM Configuration
LLM_SERVICE = os.getenv("LLM_SERVICE", "OpenAI")  # "OpenAI" or "Ollama"

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/v1")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1")

# Classifier response marker for mail unrelated to a job search
IGNORE_MARKER = "null"

# Gmail listing
GMAIL_QUERY = os.getenv("GMAIL_QUERY", "in:inbox category:primary is:unread newer_than:2d")

# Run limits
MAX_CONTENT_LENGTH = _env_int("MAX_CONTENT_LENGTH", 4000)
MAX_EMAILS_PER_RUN = _env_int("MAX_EMAILS_PER_RUN", 100)
CLASSIFY_RATE_PERMITS = _env_int("CLASSIFY_RATE_PERMITS", 3)
CLASSIFY_RATE_PERIOD = _env_float("CLASSIFY_RATE_PERIOD", 60.0)
WORKER_POOL_SIZE = _env_int("WORKER_POOL_SIZE", 4)
SHUTDOWN_GRACE_PERIOD = _env_float("SHUTDOWN_GRACE_PERIOD", 5.0)
