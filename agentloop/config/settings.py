"""
Global settings from environment variables.
"""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentLoopSettings(BaseSettings):
    """
    Global configuration loaded from environment variables.

    Environment variables should be prefixed with AGENTLOOP_
    Example: AGENTLOOP_LOG_LEVEL=DEBUG, AGENTLOOP_OPENAI_API_KEY=sk-...
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTLOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # Core settings
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = False

    # OpenAI transport
    openai_api_key: SecretStr | None = None
    openai_base_url: str | None = None
    default_model: str = "gpt-4o-mini"
    request_timeout: float = Field(default=120.0, gt=0)

    # Retry / backoff for transport calls
    retry_max_retries: int = Field(default=5, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0.0)
    retry_max_delay: float = Field(default=60.0, ge=0.0)
    retry_jitter: float = Field(default=0.1, ge=0.0, le=1.0)


# Global settings instance (singleton)
settings = AgentLoopSettings()


__all__ = ["AgentLoopSettings", "settings"]
