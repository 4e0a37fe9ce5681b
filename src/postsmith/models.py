"""Pydantic models shared across validation, rate limiting, and generation layers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class Platform(str, Enum):
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"


class ContentType(str, Enum):
    POST = "post"
    STORY = "story"
    VIDEO = "video"
    THREAD = "thread"
    ARTICLE = "article"
    CAROUSEL = "carousel"
    VIDEO_SCRIPT = "video-script"


class ErrorType(str, Enum):
    """Closed taxonomy of generation failures."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    QUOTA_EXCEEDED = "quota_exceeded"
    SERVICE_UNAVAILABLE = "service_unavailable"
    CONTENT_BLOCKED = "content_blocked"
    GENERATION_ERROR = "generation_error"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN = "unknown"


class GenerationRequest(BaseModel):
    """A user's content request.

    ``topic`` and ``platform`` are required fields, but their contents are
    checked by the request validator rather than at construction time so that
    an empty topic still produces a (fallback) result.
    """

    model_config = ConfigDict(frozen=True)

    topic: str
    platform: str
    content_type: str = ContentType.POST.value
    tone: str = "casual"
    goal: str = "engagement"
    key_points: str | None = None
    emoji_usage: bool = True
    hashtag_density: bool = True
    short_sentences: bool = False
    max_retries: PositiveInt = 3
    timeout_ms: PositiveInt = 15000


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    sanitized_content: str = ""
    violations: tuple[str, ...] = ()


class RateLimitDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: bool
    remaining: int = Field(ge=0)
    reset_time: int | None = None


class ClassifiedError(BaseModel):
    """A raw failure normalized into the error taxonomy."""

    model_config = ConfigDict(frozen=True)

    type: ErrorType
    message: str
    user_friendly_message: str
    retryable: bool
    retry_after_ms: int | None = None
    suggested_action: str | None = None


class GenerationAttempt(BaseModel):
    """One provider call as seen by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    attempt_number: int = Field(ge=1)
    started_at: datetime
    outcome: Literal["success"] | ClassifiedError
    elapsed_ms: int = Field(ge=0)


class ResultMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    duration_ms: int = Field(ge=0)
    prompt_version: Literal["v2.1", "fallback"]
    generated_at: datetime
    platform: str
    content_type: str
    hashtags: tuple[str, ...] = ()
    within_platform_limit: bool = True


class GenerationResult(BaseModel):
    """Final outcome of one ``generate()`` call; content is never empty."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(min_length=1)
    success: bool
    error: ClassifiedError | None = None
    attempts_made: int = Field(ge=0)
    fallback_used: bool
    metadata: ResultMetadata
    attempts: tuple[GenerationAttempt, ...] = ()
    rate_limit: RateLimitDecision | None = None


class ProviderParams(BaseModel):
    """Call parameters handed to an AI provider adapter."""

    model_config = ConfigDict(frozen=True)

    platform: str
    content_type: str
    temperature: float = 0.7
    max_tokens: int = 600
    timeout_ms: int = 15000


class ProviderResponse(BaseModel):
    """Normalized provider payload: either content or a raw error."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    content: str | None = None
    error: Exception | None = None
