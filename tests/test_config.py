"""Tests for pipeline configuration."""

from unittest.mock import patch

import pytest
import yaml

from job_tracker.config import PathConfig
from job_tracker.exceptions import ConfigurationError
from job_tracker.pipeline.config import ClassifyConfig, PipelineConfig


class TestPipelineConfig:
    def test_defaults_are_valid(self):
        config = PipelineConfig()

        assert config.validate() is config
        assert config.classify.rate_limit_permits == 3
        assert config.classify.rate_limit_period == 60.0
        assert "is:unread" in config.fetch.gmail_query

    def test_yaml_round_trip(self, tmp_path, pipeline_config):
        path = tmp_path / "pipeline.yaml"
        pipeline_config.fetch.max_emails = 7

        pipeline_config.to_yaml(str(path))
        loaded = PipelineConfig.from_yaml(str(path))

        assert loaded == pipeline_config

    def test_partial_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(yaml.dump({"pipeline": {"concurrency": {"max_workers": 8}}}))

        config = PipelineConfig.from_yaml(str(path))

        assert config.concurrency.max_workers == 8
        assert config.fetch == PipelineConfig().fetch

    def test_unknown_key_is_configuration_error(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(yaml.dump({"pipeline": {"fetch": {"batch_size": 10}}}))

        with pytest.raises(ConfigurationError, match="batch_size"):
            PipelineConfig.from_yaml(str(path))

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("pipeline: [unclosed")

        with pytest.raises(ConfigurationError):
            PipelineConfig.from_yaml(str(path))

    def test_yaml_without_pipeline_mapping(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("pipeline: 3\n")

        with pytest.raises(ConfigurationError):
            PipelineConfig.from_yaml(str(path))

    @pytest.mark.parametrize(
        "section, field, value",
        [
            ("fetch", "max_emails", -1),
            ("fetch", "max_empty_pages", 0),
            ("classify", "rate_limit_permits", 0),
            ("classify", "rate_limit_period", 0),
            ("classify", "rate_limit_burst", 0),
            ("classify", "llm_service", "anthropic"),
            ("concurrency", "max_workers", 0),
            ("concurrency", "shutdown_grace_period", -1),
        ],
    )
    def test_validate_rejects_out_of_range(self, section, field, value):
        config = PipelineConfig()
        setattr(getattr(config, section), field, value)

        with pytest.raises(ConfigurationError, match=field):
            config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("LLM_SERVICE", "Ollama")
        monkeypatch.setenv("OLLAMA_MODEL", "mistral")
        monkeypatch.setenv("DATABASE_PATH", "/tmp/jobs-test.db")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        config = PipelineConfig.from_env()

        assert config.classify.llm_service == "ollama"
        assert config.classify.model == "mistral"
        assert config.persist.database_path == "/tmp/jobs-test.db"
        assert config.monitoring.log_level == "DEBUG"

    def test_from_env_without_overrides(self, monkeypatch):
        for name in ("LLM_SERVICE", "OPENAI_MODEL", "OLLAMA_MODEL", "DATABASE_PATH", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        with patch("job_tracker.pipeline.config.os.getenv", return_value=None):
            config = PipelineConfig.from_env()

        assert config == PipelineConfig()


    def test_from_env_ollama_uses_ollama_default_model(self, monkeypatch):
        monkeypatch.setenv("LLM_SERVICE", "ollama")
        monkeypatch.delenv("OLLAMA_MODEL", raising=False)
        monkeypatch.delenv("OPENAI_MODEL", raising=False)

        with patch("job_tracker.pipeline.config.OLLAMA_MODEL", "llama3.1"):
            config = PipelineConfig.from_env()

        assert config.classify.llm_service == "ollama"
        assert config.classify.model == "llama3.1"

    def test_yaml_ollama_without_model_uses_ollama_default(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(yaml.dump({"pipeline": {"classify": {"llm_service": "ollama"}}}))

        with patch("job_tracker.pipeline.config.OLLAMA_MODEL", "llama3.1"):
            config = PipelineConfig.from_yaml(str(path))

        assert config.classify.model == "llama3.1"

    def test_explicit_model_is_kept(self):
        config = PipelineConfig(classify=ClassifyConfig(llm_service="ollama", model="mistral"))

        assert config.classify.model == "mistral"


class TestPathConfig:
    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        config_file = tmp_path / "paths.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "paths": {
                        "database_file": str(tmp_path / "yaml" / "jobs.db"),
                        "metrics_file": str(tmp_path / "yaml" / "metrics.json"),
                    }
                }
            )
        )
        monkeypatch.setenv("DATABASE_FILE", str(tmp_path / "env" / "jobs.db"))

        paths = PathConfig(config_file=str(config_file))

        assert paths.database_file == (tmp_path / "env" / "jobs.db").resolve()
        assert paths.metrics_file == (tmp_path / "yaml" / "metrics.json").resolve()
        assert (tmp_path / "env").is_dir()
        assert set(paths.to_dict()) == set(PathConfig.PATH_ATTRS)
