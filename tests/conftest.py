from __future__ import annotations

import asyncio
import random
import sys
from collections.abc import Sequence
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from postsmith.audit import SecurityEventLog
from postsmith.backoff import BackoffPolicy
from postsmith.config import BackoffConfig, RateLimitRule
from postsmith.errors import ProviderError
from postsmith.models import GenerationRequest, ProviderParams, ProviderResponse
from postsmith.orchestrator import GenerationOrchestrator
from postsmith.ratelimit import RateLimiter


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class ScriptedProvider:
    """Provider that plays back a fixed sequence of outcomes.

    Each step is a string (content), an exception (raised), a
    ``ProviderResponse`` (returned as is), or ``"hang"`` (never completes).
    The last step repeats once the script is exhausted.
    """

    def __init__(self, steps: Sequence[object]) -> None:
        self.steps = list(steps)
        self.calls: list[tuple[str, ProviderParams]] = []
        self.cancelled = 0

    async def invoke(self, prompt_payload: str, params: ProviderParams) -> ProviderResponse:
        self.calls.append((prompt_payload, params))
        step = self.steps[min(len(self.calls), len(self.steps)) - 1]
        if step == "hang":
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, ProviderResponse):
            return step
        return ProviderResponse(content=str(step))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fast_backoff() -> BackoffPolicy:
    return BackoffPolicy(BackoffConfig(base_ms=1, max_ms=5, jitter_ratio=0.25, min_ms=0), rng=random.Random(7))


@pytest.fixture
def audit_log() -> SecurityEventLog:
    return SecurityEventLog(max_events=50)


@pytest.fixture
def sample_request() -> GenerationRequest:
    return GenerationRequest(topic="coffee", platform="twitter")


@pytest.fixture
def make_orchestrator(fast_backoff, audit_log, fake_clock):
    def _make(provider, limits: dict[str, RateLimitRule] | None = None) -> GenerationOrchestrator:
        rate_limiter = RateLimiter(limits, clock=fake_clock, audit=audit_log)
        return GenerationOrchestrator(
            provider,
            rate_limiter=rate_limiter,
            backoff=fast_backoff,
            audit=audit_log,
            clock=fake_clock,
        )

    return _make


@pytest.fixture
def server_error() -> ProviderError:
    return ProviderError(message="upstream exploded", status=503)
