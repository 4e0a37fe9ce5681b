"""Runtime settings for the generation resilience layer."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, PositiveInt, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONTENT_GENERATION = "content_generation"
API_REQUEST = "api_request"
LOGIN_ATTEMPT = "login_attempt"


class RateLimitRule(BaseModel):
    max: PositiveInt
    window_ms: PositiveInt


class BackoffConfig(BaseModel):
    base_ms: PositiveInt = 1000
    max_ms: PositiveInt = 30000
    jitter_ratio: float = Field(default=0.25, ge=0.0, le=1.0)
    min_ms: int = Field(default=500, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "BackoffConfig":
        if self.base_ms > self.max_ms:
            raise ValueError("backoff base_ms must not exceed max_ms")
        return self


def default_rate_limits() -> dict[str, RateLimitRule]:
    return {
        CONTENT_GENERATION: RateLimitRule(max=20, window_ms=3_600_000),
        API_REQUEST: RateLimitRule(max=100, window_ms=3_600_000),
        LOGIN_ATTEMPT: RateLimitRule(max=5, window_ms=900_000),
    }


class Settings(BaseSettings):
    """Settings read from ``POSTSMITH_*`` environment variables or ``.env``.

    Nested values use ``__`` as delimiter, e.g.
    ``POSTSMITH_BACKOFF__BASE_MS=500`` or
    ``POSTSMITH_RATE_LIMITS='{"content_generation": {"max": 5, "window_ms": 60000}}'``.
    """

    model_config = SettingsConfigDict(
        env_prefix="POSTSMITH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_retries: PositiveInt = 3
    timeout_ms: PositiveInt = 15000
    max_prompt_length: PositiveInt = 2000
    rate_limits: dict[str, RateLimitRule] = Field(default_factory=default_rate_limits)
    default_rate_limit: RateLimitRule = RateLimitRule(max=100, window_ms=3_600_000)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    model_name: str = "gemini-2.5-flash"
    rate_limit_db: Path | None = None


@lru_cache
def get_settings() -> Settings:
    """Create and cache process-wide settings."""
    return Settings()
