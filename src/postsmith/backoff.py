"""Retry delay computation and per-attempt progress messages."""

from __future__ import annotations

import random

from postsmith.config import BackoffConfig
from postsmith.models import ClassifiedError


class BackoffPolicy:
    """Exponential backoff with symmetric jitter.

    ``delay = min(base * 2**(attempt - 1), max)``, then jitter of
    ``±jitter_ratio`` of that delay, floored at ``min_ms``. A provider
    ``retry_after_ms`` hint replaces the exponential delay (capped at ``max``).
    """

    def __init__(self, config: BackoffConfig | None = None, rng: random.Random | None = None):
        self.config = config or BackoffConfig()
        self.rng = rng or random.Random()

    def base_delay_ms(self, attempt: int) -> int:
        exponent = max(attempt, 1) - 1
        return min(self.config.base_ms * (2**exponent), self.config.max_ms)

    def delay_ms(self, attempt: int, error: ClassifiedError | None = None) -> int:
        if error is not None and error.retry_after_ms:
            return min(error.retry_after_ms, self.config.max_ms)

        delay = self.base_delay_ms(attempt)
        jitter = delay * self.config.jitter_ratio * (self.rng.random() * 2 - 1)
        return int(max(self.config.min_ms, delay + jitter))


def progress_message(attempt: int, max_retries: int) -> str:
    """Return the retry message shown before ``attempt`` starts."""
    remaining = max_retries - attempt + 1
    if attempt == 2:
        return f"First attempt failed, trying again... ({remaining} attempts remaining)"
    if attempt == 3:
        return f"Still having issues, retrying with a different approach... ({remaining} attempts remaining)"
    return f"Attempt {attempt} of {max_retries} - trying alternative method..."
