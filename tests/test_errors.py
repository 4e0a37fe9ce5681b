from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel, ValidationError

from postsmith.errors import EmptyContentError, ProviderError, ProviderTimeoutError, classify, make_error
from postsmith.models import ErrorType


class _StatusError(Exception):
    def __init__(self, status_code: int, message: str = "boom") -> None:
        super().__init__(message)
        self.status_code = status_code


@pytest.mark.parametrize(
    ("raw", "expected_type", "retryable"),
    [
        (ProviderError(message="bad key", status=401), ErrorType.AUTHENTICATION, False),
        (ProviderError(message="forbidden", status=403), ErrorType.AUTHENTICATION, False),
        (ProviderError(message="slow down", status=429), ErrorType.RATE_LIMIT, True),
        (ProviderError(message="pay up", status=402), ErrorType.QUOTA_EXCEEDED, False),
        (ProviderError(message="out of credits", code="insufficient_quota"), ErrorType.QUOTA_EXCEEDED, False),
        (ProviderError(message="down", status=503), ErrorType.SERVICE_UNAVAILABLE, True),
        (ProviderError(message="bad gateway", status=502), ErrorType.SERVICE_UNAVAILABLE, True),
        (ProviderError(message="blocked", code="CONTENT_BLOCKED"), ErrorType.CONTENT_BLOCKED, False),
        (ProviderError(message="offline", code="NETWORK_ERROR"), ErrorType.NETWORK, True),
        (ProviderError(message="bad request", status=400), ErrorType.VALIDATION_ERROR, False),
        (ProviderTimeoutError(15000), ErrorType.SERVICE_UNAVAILABLE, True),
        (asyncio.TimeoutError(), ErrorType.SERVICE_UNAVAILABLE, True),
        (EmptyContentError(), ErrorType.GENERATION_ERROR, True),
        (ConnectionResetError("reset by peer"), ErrorType.NETWORK, True),
        (_StatusError(401), ErrorType.AUTHENTICATION, False),
        (_StatusError(500), ErrorType.SERVICE_UNAVAILABLE, True),
        (ProviderError(message="unprocessable", status=422), ErrorType.VALIDATION_ERROR, False),
        (ValueError("unexpected payload shape"), ErrorType.UNKNOWN, True),
        (RuntimeError("something odd"), ErrorType.UNKNOWN, True),
    ],
)
def test_classify_given_raw_failure_when_classified_then_taxonomy_and_retryability_match(
    raw: BaseException,
    expected_type: ErrorType,
    retryable: bool,
) -> None:
    # When
    classified = classify(raw)

    # Then
    assert classified.type is expected_type
    assert classified.retryable is retryable
    assert classified.user_friendly_message
    assert classified.suggested_action


def test_classify_given_rate_limit_with_hint_when_classified_then_retry_after_is_carried() -> None:
    # Given
    explicit = ProviderError(message="slow down", status=429, retry_after_ms=2500)
    from_header = ProviderError(message="slow down", status=429, headers={"retry-after": "3"})

    # When
    explicit_error = classify(explicit)
    header_error = classify(from_header)

    # Then
    assert explicit_error.retry_after_ms == 2500
    assert header_error.retry_after_ms == 3000


def test_classify_given_same_input_when_classified_twice_then_results_are_equal() -> None:
    # Given
    raw = ProviderError(message="down", status=503)

    # When
    first = classify(raw)
    second = classify(raw)

    # Then
    assert first == second


def test_classify_given_pydantic_validation_error_when_classified_then_validation_error_is_returned() -> None:
    # Given
    class Payload(BaseModel):
        count: int

    with pytest.raises(ValidationError) as excinfo:
        Payload.model_validate({"count": "many"})

    # When
    classified = classify(excinfo.value)

    # Then
    assert classified.type is ErrorType.VALIDATION_ERROR
    assert not classified.retryable


def test_classify_given_provider_text_when_classified_then_raw_text_stays_out_of_user_message() -> None:
    # Given
    raw = ProviderError(message="Traceback: secret internal detail", status=500)

    # When
    classified = classify(raw)

    # Then
    assert "secret internal detail" in classified.message
    assert "secret internal detail" not in classified.user_friendly_message


def test_make_error_given_retryable_override_when_built_then_override_wins() -> None:
    # When
    error = make_error(ErrorType.RATE_LIMIT, "denied", retry_after_ms=1000, retryable=False)

    # Then
    assert error.type is ErrorType.RATE_LIMIT
    assert not error.retryable
    assert error.retry_after_ms == 1000


def test_provider_error_given_status_when_stringified_then_prefix_is_status() -> None:
    assert str(ProviderError(message="down", status=503)) == "503: down"
    assert str(ProviderError(message="offline", code="NETWORK_ERROR")) == "NETWORK_ERROR: offline"
