from __future__ import annotations

import random

import pytest
from pydantic import ValidationError

from postsmith.backoff import BackoffPolicy, progress_message
from postsmith.config import BackoffConfig
from postsmith.errors import make_error
from postsmith.models import ErrorType


def test_base_delay_given_defaults_when_attempts_increase_then_delay_doubles_until_cap() -> None:
    # Given
    policy = BackoffPolicy(BackoffConfig(base_ms=1000, max_ms=30_000))

    # When
    delays = [policy.base_delay_ms(attempt) for attempt in range(1, 8)]

    # Then
    assert delays == [1000, 2000, 4000, 8000, 16000, 30000, 30000]


def test_delay_given_jitter_when_sampled_then_it_stays_within_ratio_bounds() -> None:
    # Given
    policy = BackoffPolicy(BackoffConfig(base_ms=1000, jitter_ratio=0.25, min_ms=0), rng=random.Random(42))

    # When
    samples = [policy.delay_ms(3) for _ in range(200)]

    # Then
    assert all(3000 <= delay <= 5000 for delay in samples)
    assert len(set(samples)) > 1


def test_delay_given_seeded_rng_when_sampled_twice_then_sequences_match() -> None:
    # Given
    first = BackoffPolicy(rng=random.Random(3))
    second = BackoffPolicy(rng=random.Random(3))

    # When / Then
    assert [first.delay_ms(n) for n in range(1, 5)] == [second.delay_ms(n) for n in range(1, 5)]


def test_delay_given_tiny_base_when_jitter_pulls_low_then_floor_applies() -> None:
    # Given
    policy = BackoffPolicy(BackoffConfig(base_ms=10, max_ms=100, jitter_ratio=0.5, min_ms=50), rng=random.Random(1))

    # When
    samples = [policy.delay_ms(1) for _ in range(50)]

    # Then
    assert all(delay == 50 for delay in samples)


def test_delay_given_retry_after_hint_when_computed_then_hint_wins_and_is_capped() -> None:
    # Given
    policy = BackoffPolicy(BackoffConfig(base_ms=1000, max_ms=30_000), rng=random.Random(0))
    hinted = make_error(ErrorType.RATE_LIMIT, "slow down", retry_after_ms=4_200)
    huge = make_error(ErrorType.RATE_LIMIT, "slow down", retry_after_ms=120_000)
    unhinted = make_error(ErrorType.SERVICE_UNAVAILABLE, "down")

    # When
    hinted_delay = policy.delay_ms(1, hinted)
    capped_delay = policy.delay_ms(1, huge)
    plain_delay = policy.delay_ms(1, unhinted)

    # Then
    assert hinted_delay == 4_200
    assert capped_delay == 30_000
    assert 750 <= plain_delay <= 1250


def test_backoff_config_given_base_above_max_when_built_then_validation_fails() -> None:
    with pytest.raises(ValidationError):
        BackoffConfig(base_ms=5000, max_ms=1000)


@pytest.mark.parametrize(
    ("attempt", "max_retries", "expected"),
    [
        (2, 3, "First attempt failed, trying again... (2 attempts remaining)"),
        (3, 3, "Still having issues, retrying with a different approach... (1 attempts remaining)"),
        (4, 5, "Attempt 4 of 5 - trying alternative method..."),
    ],
)
def test_progress_message_given_attempt_number_when_formatted_then_text_matches(
    attempt: int, max_retries: int, expected: str
) -> None:
    assert progress_message(attempt, max_retries) == expected
