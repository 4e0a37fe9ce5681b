"""Provider failure types and the classifier that maps them onto the error taxonomy.

Adapters raise (or return) the exceptions defined here; the orchestrator hands
every failure to :func:`classify`, which is a pure function: the same input
always yields the same :class:`ClassifiedError`. Only
``user_friendly_message`` and ``suggested_action`` are meant for end users;
``message`` carries the diagnostic text.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import ValidationError

from postsmith.models import ClassifiedError, ErrorType


@dataclass(slots=True, eq=False)
class ProviderError(Exception):
    """Raw failure reported by an AI provider adapter."""

    message: str
    status: int | None = None
    code: str | None = None
    retry_after_ms: int | None = None
    headers: Mapping[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        prefix = self.code or (str(self.status) if self.status is not None else "provider_error")
        return f"{prefix}: {self.message}"


class ProviderTimeoutError(ProviderError):
    def __init__(self, timeout_ms: int) -> None:
        super().__init__(message=f"Generation timed out after {timeout_ms}ms", code="TIMEOUT")


class EmptyContentError(ProviderError):
    def __init__(self, message: str = "AI returned empty content") -> None:
        super().__init__(message=message, code="EMPTY_CONTENT")


_RETRYABLE: dict[ErrorType, bool] = {
    ErrorType.NETWORK: True,
    ErrorType.AUTHENTICATION: False,
    ErrorType.RATE_LIMIT: True,
    ErrorType.QUOTA_EXCEEDED: False,
    ErrorType.SERVICE_UNAVAILABLE: True,
    ErrorType.CONTENT_BLOCKED: False,
    ErrorType.GENERATION_ERROR: True,
    ErrorType.VALIDATION_ERROR: False,
    ErrorType.UNKNOWN: True,
}

_USER_MESSAGES: dict[ErrorType, tuple[str, str]] = {
    ErrorType.NETWORK: (
        "Please check your internet connection and try again.",
        "Check your connection, then generate again.",
    ),
    ErrorType.AUTHENTICATION: (
        "There was an authentication issue. Please refresh the page and try again.",
        "Sign in again or verify the AI provider configuration.",
    ),
    ErrorType.RATE_LIMIT: (
        "Too many requests. Please wait a moment before trying again.",
        "Wait a moment before generating more content.",
    ),
    ErrorType.QUOTA_EXCEEDED: (
        "The AI usage quota has been reached for now.",
        "Upgrade your plan or try again later.",
    ),
    ErrorType.SERVICE_UNAVAILABLE: (
        "The AI service is temporarily unavailable.",
        "Try again in a few minutes.",
    ),
    ErrorType.CONTENT_BLOCKED: (
        "This request was blocked by the content safety filter.",
        "Rephrase your topic and try again.",
    ),
    ErrorType.GENERATION_ERROR: (
        "The AI could not produce content for this request.",
        "You can edit the suggested content or try generating again.",
    ),
    ErrorType.VALIDATION_ERROR: (
        "Your request could not be processed. Please review your input.",
        "Adjust your topic and try again.",
    ),
    ErrorType.UNKNOWN: (
        "Something went wrong. Please try again.",
        "You can edit this content or try generating again.",
    ),
}

_SERVICE_UNAVAILABLE_STATUSES = frozenset({500, 502, 503, 504})
_QUOTA_CODES = frozenset({"insufficient_quota", "quota_exceeded"})
_BLOCKED_CODES = frozenset({"content_blocked", "safety"})


def make_error(
    error_type: ErrorType,
    message: str,
    *,
    retry_after_ms: int | None = None,
    retryable: bool | None = None,
) -> ClassifiedError:
    """Build a ``ClassifiedError`` with the taxonomy's user text.

    ``retryable`` defaults to the fixed value for ``error_type``; failures
    resolved before any provider attempt may override it.
    """
    friendly, action = _USER_MESSAGES[error_type]
    return ClassifiedError(
        type=error_type,
        message=message,
        user_friendly_message=friendly,
        retryable=_RETRYABLE[error_type] if retryable is None else retryable,
        retry_after_ms=retry_after_ms,
        suggested_action=action,
    )


def _status_of(raw: BaseException) -> int | None:
    for attr in ("status", "status_code", "code"):
        value = getattr(raw, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _code_of(raw: BaseException) -> str | None:
    value = getattr(raw, "code", None)
    if isinstance(value, str) and value:
        return value.lower()
    return None


def _retry_after_ms(raw: BaseException) -> int | None:
    """Extract a provider retry hint in milliseconds, if any."""
    explicit = getattr(raw, "retry_after_ms", None)
    if isinstance(explicit, int) and explicit > 0:
        return explicit

    headers: Any = getattr(raw, "headers", None) or {}
    try:
        value = headers.get("retry-after") or headers.get("Retry-After")
    except AttributeError:
        return None
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return int(seconds * 1000) if seconds > 0 else None


def _message_of(raw: BaseException) -> str:
    text = getattr(raw, "message", None)
    if isinstance(text, str) and text:
        return text
    return str(raw) or type(raw).__name__


def classify(raw: BaseException) -> ClassifiedError:
    """Map a raw failure into a typed, retry-annotated error.

    Args:
        raw: Exception raised by, or returned from, an AI provider adapter.

    Returns:
        The classified error. Unrecognized failures become ``unknown``.
    """
    message = _message_of(raw)

    if isinstance(raw, (ProviderTimeoutError, asyncio.TimeoutError, TimeoutError)):
        return make_error(ErrorType.SERVICE_UNAVAILABLE, message)
    if isinstance(raw, EmptyContentError):
        return make_error(ErrorType.GENERATION_ERROR, message)
    if isinstance(raw, ValidationError):
        return make_error(ErrorType.VALIDATION_ERROR, message)

    code = _code_of(raw)
    status = _status_of(raw)

    if code == "network_error" or (status is None and isinstance(raw, (ConnectionError, OSError))):
        return make_error(ErrorType.NETWORK, message)
    if code in _BLOCKED_CODES:
        return make_error(ErrorType.CONTENT_BLOCKED, message)
    if code in _QUOTA_CODES or status == 402:
        return make_error(ErrorType.QUOTA_EXCEEDED, message)
    if status in (401, 403):
        return make_error(ErrorType.AUTHENTICATION, message)
    if status == 429:
        return make_error(ErrorType.RATE_LIMIT, message, retry_after_ms=_retry_after_ms(raw))
    if status in _SERVICE_UNAVAILABLE_STATUSES:
        return make_error(ErrorType.SERVICE_UNAVAILABLE, message, retry_after_ms=_retry_after_ms(raw))
    if status in (400, 422):
        return make_error(ErrorType.VALIDATION_ERROR, message)

    return make_error(ErrorType.UNKNOWN, message)
