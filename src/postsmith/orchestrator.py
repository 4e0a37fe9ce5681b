"""Bounded retry loop that always turns a generation request into content.

The loop is an explicit state machine::

    VALIDATING -> CHECKING_RATE_LIMIT -> ATTEMPTING(n)
    ATTEMPTING(n) -> SUCCESS | CLASSIFYING | CANCELLED
    CLASSIFYING -> RETRY_WAIT | ABORT
    RETRY_WAIT -> ATTEMPTING(n + 1) | CANCELLED
    ABORT | CANCELLED -> FALLBACK

``VALIDATING`` may jump straight to ``FALLBACK`` and ``CHECKING_RATE_LIMIT``
to ``RATE_LIMITED``. ``SUCCESS``, ``RATE_LIMITED`` and ``FALLBACK`` are
terminal. Each transition has at most one suspension point: the provider race
in ``ATTEMPTING`` or the backoff wait in ``RETRY_WAIT``.

When an attempt times out, the provider task is cancelled and anything it
produces afterwards is discarded: the first outcome observed by the
orchestrator wins.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from postsmith.audit import AuditLogger, safe_log
from postsmith.backoff import BackoffPolicy, progress_message
from postsmith.config import CONTENT_GENERATION
from postsmith.errors import EmptyContentError, ProviderTimeoutError, classify, make_error
from postsmith.fallback import FallbackSynthesizer
from postsmith.models import (
    ClassifiedError,
    ErrorType,
    GenerationAttempt,
    GenerationRequest,
    GenerationResult,
    ProviderParams,
    RateLimitDecision,
    ResultMetadata,
)
from postsmith.prompting import PROMPT_VERSION, build_user_prompt
from postsmith.provider import AIProvider
from postsmith.ratelimit import RateLimiter, now_ms
from postsmith.validator import RequestValidator, check_content_length

logger = logging.getLogger(__name__)

HASHTAG_RE = re.compile(r"#\w+")
MAX_HASHTAGS = 10

ProgressCallback = Callable[[str], None]


class GenerationState(str, Enum):
    VALIDATING = "validating"
    CHECKING_RATE_LIMIT = "checking_rate_limit"
    RATE_LIMITED = "rate_limited"
    ATTEMPTING = "attempting"
    CLASSIFYING = "classifying"
    RETRY_WAIT = "retry_wait"
    SUCCESS = "success"
    ABORT = "abort"
    CANCELLED = "cancelled"
    FALLBACK = "fallback"


TERMINAL_STATES = frozenset({GenerationState.SUCCESS, GenerationState.RATE_LIMITED, GenerationState.FALLBACK})


@dataclass
class _Run:
    """Mutable bookkeeping for one ``generate()`` call; never escapes it."""

    request: GenerationRequest
    subject_id: str
    on_progress: ProgressCallback | None
    cancel_event: asyncio.Event | None
    started: float = field(default_factory=time.monotonic)
    state: GenerationState = GenerationState.VALIDATING
    topic: str = ""
    key_points: str | None = None
    tone: str | None = None
    goal: str | None = None
    attempt: int = 0
    attempt_started_at: datetime | None = None
    attempt_elapsed_ms: int = 0
    failure: BaseException | None = None
    content: str | None = None
    last_error: ClassifiedError | None = None
    rate_limit: RateLimitDecision | None = None
    attempts: list[GenerationAttempt] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


def extract_hashtags(content: str) -> list[str]:
    return HASHTAG_RE.findall(content)[:MAX_HASHTAGS]


def _discard_late_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    logger.debug("Discarding late provider outcome (error=%r)", exc)


class GenerationOrchestrator:
    """Compose validation, rate limiting, retries, and fallback around an AI provider.

    ``generate`` never raises for provider failures and never returns empty
    content: every path ends in a :class:`GenerationResult`.
    """

    def __init__(
        self,
        provider: AIProvider,
        *,
        validator: RequestValidator | None = None,
        rate_limiter: RateLimiter | None = None,
        classifier: Callable[[BaseException], ClassifiedError] = classify,
        synthesizer: FallbackSynthesizer | None = None,
        backoff: BackoffPolicy | None = None,
        audit: AuditLogger | None = None,
        log: logging.Logger | None = None,
        clock: Callable[[], int] = now_ms,
        action: str = CONTENT_GENERATION,
    ):
        self.provider = provider
        self.validator = validator or RequestValidator()
        self.rate_limiter = rate_limiter or RateLimiter(audit=audit, clock=clock)
        self.classifier = classifier
        self.synthesizer = synthesizer or FallbackSynthesizer()
        self.backoff = backoff or BackoffPolicy()
        self.audit = audit
        self.log = log or logger
        self.clock = clock
        self.action = action
        self._handlers = {
            GenerationState.VALIDATING: self._validate,
            GenerationState.CHECKING_RATE_LIMIT: self._check_rate_limit,
            GenerationState.ATTEMPTING: self._attempt,
            GenerationState.CLASSIFYING: self._classify,
            GenerationState.RETRY_WAIT: self._retry_wait,
            GenerationState.ABORT: self._abort,
            GenerationState.CANCELLED: self._cancel,
        }

    def check_rate_limit(self, subject_id: str, action: str = CONTENT_GENERATION) -> RateLimitDecision:
        """Pre-flight admission check, independent of a generation attempt."""
        return self.rate_limiter.check(subject_id, action)

    async def generate(
        self,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
        *,
        subject_id: str = "anonymous",
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Produce content for ``request``, falling back to local templates on failure.

        Args:
            request: The content request.
            on_progress: Optional callback receiving human-readable retry messages.
            subject_id: Identity used for rate limiting and audit events.
            cancel_event: Setting this event aborts the current attempt or
                backoff wait and returns a fallback result promptly.

        Returns:
            The final result. ``success`` is ``False`` exactly when fallback
            content was used.
        """
        run = _Run(request=request, subject_id=subject_id, on_progress=on_progress, cancel_event=cancel_event)
        while run.state not in TERMINAL_STATES:
            run.state = await self._handlers[run.state](run)
        return self._finish(run)

    async def _validate(self, run: _Run) -> GenerationState:
        validation = self.validator.validate(run.request)
        run.topic = validation.sanitized_content
        if validation.is_valid:
            run.key_points = self.validator.sanitize_text(run.request.key_points)
            run.tone = self.validator.sanitize_text(run.request.tone)
            run.goal = self.validator.sanitize_text(run.request.goal)
            return GenerationState.CHECKING_RATE_LIMIT

        reasons = list(validation.violations)
        self.log.info(
            "Rejected generation request for %s: %s",
            run.subject_id,
            "; ".join(reasons),
            extra={"subject_id": run.subject_id, "violations": reasons},
        )
        if any(reason.startswith("Detected") for reason in reasons):
            safe_log(
                self.audit,
                "unsafe_content_attempt",
                run.subject_id,
                {"topic": run.request.topic[:100], "violations": reasons},
                "medium",
            )
        run.last_error = make_error(ErrorType.VALIDATION_ERROR, "; ".join(reasons))
        return GenerationState.FALLBACK

    async def _check_rate_limit(self, run: _Run) -> GenerationState:
        decision = self.rate_limiter.check(run.subject_id, self.action)
        run.rate_limit = decision
        if decision.allowed:
            return GenerationState.ATTEMPTING

        wait_ms = max(0, (decision.reset_time or 0) - self.clock())
        run.last_error = make_error(
            ErrorType.RATE_LIMIT,
            f"Rate limit exceeded for action {self.action}",
            retry_after_ms=wait_ms or None,
            retryable=False,
        )
        return GenerationState.RATE_LIMITED

    async def _attempt(self, run: _Run) -> GenerationState:
        if run.cancelled:
            return GenerationState.CANCELLED

        request = run.request
        run.attempt += 1
        run.attempt_started_at = datetime.now(timezone.utc)
        self.log.info(
            "Generation attempt %d/%d for %s",
            run.attempt,
            request.max_retries,
            request.platform,
            extra={"subject_id": run.subject_id, "attempt": run.attempt},
        )

        params = ProviderParams(
            platform=request.platform,
            content_type=request.content_type,
            timeout_ms=request.timeout_ms,
        )
        prompt = build_user_prompt(request, run.topic, run.key_points, tone=run.tone, goal=run.goal)

        t0 = time.monotonic()
        outcome = await self._race_provider(prompt, params, run.cancel_event)
        run.attempt_elapsed_ms = int((time.monotonic() - t0) * 1000)

        if outcome is None:
            return GenerationState.CANCELLED
        if isinstance(outcome, BaseException):
            run.failure = outcome
            return GenerationState.CLASSIFYING

        run.content = outcome
        run.attempts.append(
            GenerationAttempt(
                attempt_number=run.attempt,
                started_at=run.attempt_started_at,
                outcome="success",
                elapsed_ms=run.attempt_elapsed_ms,
            )
        )
        self.log.info("Content generated on attempt %d", run.attempt, extra={"subject_id": run.subject_id})
        return GenerationState.SUCCESS

    async def _race_provider(
        self,
        prompt: str,
        params: ProviderParams,
        cancel_event: asyncio.Event | None,
    ) -> str | BaseException | None:
        """Race one provider call against its timeout and the cancel event.

        Returns:
            The non-empty content, the failure to classify, or ``None`` when
            the caller cancelled.
        """
        task = asyncio.ensure_future(self.provider.invoke(prompt, params))
        waiters: set[asyncio.Future] = {task}
        cancel_waiter: asyncio.Future | None = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=params.timeout_ms / 1000,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if task not in done:
            task.cancel()
            task.add_done_callback(_discard_late_result)
            if cancel_waiter is not None and cancel_waiter in done:
                return None
            return ProviderTimeoutError(params.timeout_ms)

        try:
            response = task.result()
        except Exception as exc:
            return exc

        if response.error is not None:
            return response.error
        content = (response.content or "").strip()
        if not content:
            return EmptyContentError()
        return content

    async def _classify(self, run: _Run) -> GenerationState:
        failure = run.failure
        run.failure = None
        error = self.classifier(failure) if failure is not None else make_error(ErrorType.UNKNOWN, "No failure recorded")
        run.last_error = error
        run.attempts.append(
            GenerationAttempt(
                attempt_number=run.attempt,
                started_at=run.attempt_started_at or datetime.now(timezone.utc),
                outcome=error,
                elapsed_ms=run.attempt_elapsed_ms,
            )
        )
        self.log.warning(
            "Attempt %d failed with %s: %s",
            run.attempt,
            error.type.value,
            error.message,
            extra={"subject_id": run.subject_id, "attempt": run.attempt, "error_type": error.type.value},
        )

        if not error.retryable:
            self.log.info("Not retrying due to error type %s", error.type.value)
            return GenerationState.ABORT
        if run.attempt >= run.request.max_retries:
            return GenerationState.ABORT
        return GenerationState.RETRY_WAIT

    async def _retry_wait(self, run: _Run) -> GenerationState:
        delay_ms = self.backoff.delay_ms(run.attempt, run.last_error)
        self._notify(run, progress_message(run.attempt + 1, run.request.max_retries))
        self.log.info("Waiting %dms before retry", delay_ms, extra={"subject_id": run.subject_id})

        if run.cancel_event is None:
            await asyncio.sleep(delay_ms / 1000)
            return GenerationState.ATTEMPTING
        try:
            await asyncio.wait_for(run.cancel_event.wait(), timeout=delay_ms / 1000)
        except asyncio.TimeoutError:
            return GenerationState.ATTEMPTING
        return GenerationState.CANCELLED

    async def _abort(self, run: _Run) -> GenerationState:
        self.log.info("All retries failed, using fallback content", extra={"subject_id": run.subject_id})
        return GenerationState.FALLBACK

    async def _cancel(self, run: _Run) -> GenerationState:
        self.log.info("Generation cancelled after %d attempts", run.attempt, extra={"subject_id": run.subject_id})
        run.last_error = make_error(ErrorType.GENERATION_ERROR, "Generation cancelled by caller")
        if run.attempt_started_at is not None and len(run.attempts) < run.attempt:
            run.attempts.append(
                GenerationAttempt(
                    attempt_number=run.attempt,
                    started_at=run.attempt_started_at,
                    outcome=run.last_error,
                    elapsed_ms=run.attempt_elapsed_ms,
                )
            )
        return GenerationState.FALLBACK

    def _notify(self, run: _Run, message: str) -> None:
        if run.on_progress is None:
            return
        try:
            run.on_progress(message)
        except Exception:
            self.log.exception("Progress callback failed")

    def _finish(self, run: _Run) -> GenerationResult:
        request = run.request
        succeeded = run.state is GenerationState.SUCCESS and run.content

        if succeeded:
            content = run.content
            error = None
        else:
            content = self.synthesizer.synthesize(request, topic=run.topic)
            error = run.last_error or make_error(ErrorType.UNKNOWN, "All generation attempts failed")
            safe_log(
                self.audit,
                "generation_fallback_used",
                run.subject_id,
                {"error_type": error.type.value, "attempts": run.attempt, "platform": request.platform},
                "low",
            )

        metadata = ResultMetadata(
            duration_ms=int((time.monotonic() - run.started) * 1000),
            prompt_version=PROMPT_VERSION if succeeded else "fallback",
            generated_at=datetime.now(timezone.utc),
            platform=request.platform,
            content_type=request.content_type,
            hashtags=tuple(extract_hashtags(content)),
            within_platform_limit=check_content_length(content, request.platform),
        )
        return GenerationResult(
            content=content,
            success=bool(succeeded),
            error=error,
            attempts_made=run.attempt,
            fallback_used=not succeeded,
            metadata=metadata,
            attempts=tuple(run.attempts),
            rate_limit=run.rate_limit,
        )
