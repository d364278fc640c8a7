"""Configuration management for CodeNova."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROVIDER_TYPES = {"anthropic", "thirdparty"}
TRANSPORT_MODES = {"direct", "buffered"}


class Settings(BaseSettings):
    """Application settings."""

    # Provider credentials
    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("ANTHROPIC_API_KEY", "ANTHROPIC_AUTH_TOKEN"),
    )
    base_url: str = Field(
        default="https://api.anthropic.com",
        alias="ANTHROPIC_BASE_URL",
    )
    model: str = Field(
        default="claude-sonnet-4-20250514",
        alias="ANTHROPIC_MODEL",
    )
    provider_type: str | None = Field(default=None, alias="CODENOVA_PROVIDER_TYPE")

    # Transport
    transport_mode: str = Field(default="direct", alias="CODENOVA_TRANSPORT_MODE")
    max_tokens: int = Field(default=4096, alias="CODENOVA_MAX_TOKENS")
    # None: 1.0, or 0.7 for MiniMax models
    temperature: float | None = Field(default=None, alias="CODENOVA_TEMPERATURE")
    llm_timeout: float = Field(default=300.0, alias="LLM_TIMEOUT")
    llm_connect_timeout: float = Field(default=10.0, alias="LLM_CONNECT_TIMEOUT")

    # Agent loop
    permission_timeout_seconds: float = Field(default=300.0, alias="PERMISSION_TIMEOUT_SECONDS")
    tool_result_max_chars: int = Field(default=3000, alias="TOOL_RESULT_MAX_CHARS")
    agent_max_turns: int = Field(default=20, alias="AGENT_MAX_TURNS")
    agent_working_directory: str = Field(
        default_factory=lambda: str(Path.home()), alias="AGENT_WORKING_DIRECTORY"
    )
    agent_cli_path: str | None = Field(default=None, alias="AGENT_CLI_PATH")

    # Advisory pricing (USD per 1M tokens) for models missing from the rate table
    input_cost_per_1m: float = Field(default=3.0, alias="INPUT_COST_PER_1M")
    output_cost_per_1m: float = Field(default=15.0, alias="OUTPUT_COST_PER_1M")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("provider_type", mode="before")
    @classmethod
    def normalize_provider_type(cls, value: str | None) -> str | None:
        if value is None or str(value).strip() == "":
            return None
        normalized = str(value).strip().lower()
        if normalized in PROVIDER_TYPES:
            return normalized
        raise ValueError("CODENOVA_PROVIDER_TYPE must be one of: anthropic, thirdparty")

    @field_validator("transport_mode", mode="before")
    @classmethod
    def normalize_transport_mode(cls, value: str | None) -> str:
        if value is None:
            return "direct"
        normalized = str(value).strip().lower()
        if normalized in TRANSPORT_MODES:
            return normalized
        raise ValueError("CODENOVA_TRANSPORT_MODE must be one of: direct, buffered")

    @field_validator("base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
