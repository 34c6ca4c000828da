"""
Engine configuration.

Settings are a pydantic model so they can be validated and echoed back by the
API; ``EngineSettings.from_env()`` builds them from environment variables.
"""

import os
from typing import Optional

from pydantic import BaseModel, field_validator


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class EngineSettings(BaseModel):
    llm_api_url: str = "https://api.openai.com/v1"
    llm_api_key: Optional[str] = None
    default_provider: str = "openai"
    default_model: str = "gpt-3.5-turbo"
    llm_timeout: float = 120.0

    execution_retention_seconds: int = 3600
    tool_files_dir: str = "data/tool_files"
    strict_actions: bool = False
    workflow_db_path: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("execution_retention_seconds")
    @classmethod
    def non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Retention must be non-negative")
        return value

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def has_llm_credentials(self) -> bool:
        return bool(self.llm_api_key)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from environment variables, falling back to defaults"""
        defaults = cls()
        return cls(
            llm_api_url=os.environ.get("LLM_API_URL", defaults.llm_api_url),
            llm_api_key=os.environ.get("LLM_API_KEY") or os.environ.get("OPENAI_API_KEY"),
            default_provider=os.environ.get("DEFAULT_LLM_PROVIDER", defaults.default_provider),
            default_model=os.environ.get("DEFAULT_MODEL", defaults.default_model),
            llm_timeout=float(os.environ.get("LLM_TIMEOUT", defaults.llm_timeout)),
            execution_retention_seconds=int(
                os.environ.get("EXECUTION_RETENTION_SECONDS", defaults.execution_retention_seconds)
            ),
            tool_files_dir=os.environ.get("TOOL_FILES_DIR", defaults.tool_files_dir),
            strict_actions=_env_bool("STRICT_ACTIONS", defaults.strict_actions),
            workflow_db_path=os.environ.get("WORKFLOW_DB_PATH") or None,
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level),
        )
