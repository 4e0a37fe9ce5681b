"""Wiring helpers that assemble an orchestrator from settings."""

from __future__ import annotations

import logging
import random

from postsmith.audit import AuditLogger, SecurityEventLog
from postsmith.backoff import BackoffPolicy
from postsmith.config import Settings, get_settings
from postsmith.models import GenerationRequest
from postsmith.orchestrator import GenerationOrchestrator
from postsmith.prompting import build_system_prompt
from postsmith.provider import AIProvider, GeminiProvider
from postsmith.ratelimit import RateLimiter
from postsmith.store import InMemoryRateLimitStore, RateLimitStore, SqliteRateLimitStore
from postsmith.validator import RequestValidator

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> RateLimitStore:
    if settings.rate_limit_db is None:
        return InMemoryRateLimitStore()
    store = SqliteRateLimitStore(settings.rate_limit_db)
    store.init_db()
    logger.info("Rate limit store backed by SQLite at %s", settings.rate_limit_db)
    return store


def build_orchestrator(
    settings: Settings | None = None,
    provider: AIProvider | None = None,
    *,
    audit: AuditLogger | None = None,
    rng: random.Random | None = None,
) -> GenerationOrchestrator:
    """Create an orchestrator with the configured limits, backoff, and store.

    Args:
        settings: Settings to use; defaults to the cached process settings.
        provider: AI provider; defaults to Gemini with the configured model.
        audit: Audit logger; defaults to an in-memory ``SecurityEventLog``.
        rng: Jitter source for backoff delays.
    """
    settings = settings or get_settings()
    audit = audit if audit is not None else SecurityEventLog()
    provider = provider or GeminiProvider(model_name=settings.model_name, system_prompt=build_system_prompt())

    rate_limiter = RateLimiter(
        settings.rate_limits,
        default_limit=settings.default_rate_limit,
        store=build_store(settings),
        audit=audit,
    )
    return GenerationOrchestrator(
        provider,
        validator=RequestValidator(max_length=settings.max_prompt_length),
        rate_limiter=rate_limiter,
        backoff=BackoffPolicy(settings.backoff, rng=rng),
        audit=audit,
    )


def request_defaults(settings: Settings | None = None) -> dict[str, int]:
    """Retry and timeout defaults to apply when building a ``GenerationRequest``."""
    settings = settings or get_settings()
    return {"max_retries": settings.max_retries, "timeout_ms": settings.timeout_ms}


def make_request(settings: Settings | None = None, **fields: object) -> GenerationRequest:
    return GenerationRequest(**{**request_defaults(settings), **fields})
