"""
Tests for environment-driven settings.
"""

import pytest
from pydantic import ValidationError

from orchestration.config import EngineSettings


def test_defaults_without_environment(monkeypatch):
    for name in ("LLM_API_KEY", "OPENAI_API_KEY", "WORKFLOW_DB_PATH", "STRICT_ACTIONS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = EngineSettings.from_env()

    assert settings.has_llm_credentials is False
    assert settings.execution_retention_seconds == 3600
    assert settings.workflow_db_path is None
    assert settings.strict_actions is False


def test_environment_overrides(monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("EXECUTION_RETENTION_SECONDS", "60")
    monkeypatch.setenv("STRICT_ACTIONS", "yes")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LLM_TIMEOUT", "5")

    settings = EngineSettings.from_env()

    assert settings.llm_api_key == "sk-env"
    assert settings.execution_retention_seconds == 60
    assert settings.strict_actions is True
    assert settings.log_level == "DEBUG"
    assert settings.llm_timeout == 5.0


def test_negative_retention_rejected():
    with pytest.raises(ValidationError):
        EngineSettings(execution_retention_seconds=-1)


def test_default_model_from_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_MODEL", "llama-3-8b")
    assert EngineSettings.from_env().default_model == "llama-3-8b"
