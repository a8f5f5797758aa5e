"""
Configuration management for the Essay Grader service.

Uses Pydantic Settings for type-safe configuration loading from environment variables.
All configuration is validated at startup to fail fast on misconfiguration.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Subject(str, Enum):
    """Subjects with a configured examiner panel."""

    ECONOMICS = "economics"
    GEOGRAPHY = "geography"


class UnitCode(str, Enum):
    """Examination units."""

    WEC11 = "WEC11"
    WEC12 = "WEC12"
    WEC13 = "WEC13"
    WEC14 = "WEC14"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The AI credential is optional here: a missing key is reported per
    request as a configuration error instead of preventing startup.
    """

    model_config = SettingsConfigDict(
        env_prefix="ESSAY_GRADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Chat-completion API
    # ==========================================================================
    ai_api_key: str | None = Field(
        default=None,
        description="API key for the OpenAI-compatible chat-completion endpoint",
    )

    ai_base_url: str = Field(
        default="https://api.moonshot.cn/v1",
        description="Base URL for the chat-completion API",
    )

    ai_model: str = Field(
        default="kimi-latest",
        description="Model used by examiners and the summary call",
    )

    examiner_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    examiner_max_tokens: int = Field(default=1500, ge=1)
    summary_temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    summary_max_tokens: int = Field(default=400, ge=1)

    llm_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Deadline for one examiner or summary call, retries included",
    )

    llm_max_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Retries for rate-limit, connection and server errors",
    )

    # ==========================================================================
    # Grading Configuration
    # ==========================================================================
    max_concurrent_examiners: int = Field(
        default=4,
        ge=1,
        le=16,
        description="Maximum examiner calls in flight for one request",
    )

    fallback_score: float = Field(
        default=5.0,
        ge=0.0,
        description="Neutral score substituted when an examiner cannot be reached or parsed",
    )

    summary_improvement_count: int = Field(default=3, ge=0, le=10)

    # ==========================================================================
    # HTTP surface
    # ==========================================================================
    rate_limit_max_requests: int = Field(default=5, ge=1)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0.0)

    auth_tokens: str = Field(
        default="",
        description="Comma separated token:user_id pairs accepted as bearer tokens",
    )

    cors_allow_origins: str = Field(default="*")

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    @field_validator("ai_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base URL doesn't have trailing slash."""
        return v.rstrip("/")

    @field_validator("ai_api_key")
    @classmethod
    def blank_key_is_missing(cls, v: str | None) -> str | None:
        """Treat an empty or whitespace-only key as not configured."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def ai_configured(self) -> bool:
        return self.ai_api_key is not None

    @property
    def cors_origin_list(self) -> list[str]:
        if self.cors_allow_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]

    @property
    def auth_token_map(self) -> dict[str, str]:
        """Parse ``auth_tokens`` into a token -> user id mapping."""
        tokens: dict[str, str] = {}
        for pair in self.auth_tokens.split(","):
            token, sep, user_id = pair.strip().partition(":")
            if sep and token.strip() and user_id.strip():
                tokens[token.strip()] = user_id.strip()
        return tokens


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    """
    return Settings()
