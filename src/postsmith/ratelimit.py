"""Sliding-window rate limiting keyed by (subject, action)."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping

from postsmith.audit import AuditLogger, safe_log
from postsmith.config import RateLimitRule, default_rate_limits
from postsmith.models import RateLimitDecision
from postsmith.store import InMemoryRateLimitStore, RateLimitStore

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def subject_key(subject_id: str, action: str) -> str:
    return f"{subject_id}:{action}"


class RateLimiter:
    """Admit or deny actions per subject using a trailing time window.

    Each check prunes timestamps older than the window, compares the remaining
    count with the action's limit, and records the new timestamp when
    admitted. The prune-and-append step runs under a lock dedicated to the
    subject key, so concurrent checks for the same key cannot both take the
    last slot while checks for other keys proceed independently.
    """

    def __init__(
        self,
        limits: Mapping[str, RateLimitRule] | None = None,
        *,
        default_limit: RateLimitRule | None = None,
        store: RateLimitStore | None = None,
        clock: Callable[[], int] = now_ms,
        audit: AuditLogger | None = None,
    ):
        self.limits = dict(limits) if limits is not None else default_rate_limits()
        self.default_limit = default_limit or RateLimitRule(max=100, window_ms=3_600_000)
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.clock = clock
        self.audit = audit
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def rule_for(self, action: str) -> RateLimitRule:
        return self.limits.get(action, self.default_limit)

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def check(self, subject_id: str, action: str) -> RateLimitDecision:
        rule = self.rule_for(action)
        key = subject_key(subject_id, action)

        with self._lock_for(key):
            now = self.clock()
            timestamps = self.store.prune(key, now - rule.window_ms)
            if len(timestamps) < rule.max:
                self.store.set(key, [*timestamps, now])
                return RateLimitDecision(allowed=True, remaining=rule.max - len(timestamps) - 1)
            reset_time = timestamps[0] + rule.window_ms

        logger.warning(
            "Rate limit exceeded for %s on %s; resets at %d",
            subject_id,
            action,
            reset_time,
            extra={"subject_id": subject_id, "action": action, "reset_time": reset_time},
        )
        safe_log(
            self.audit,
            "rate_limit_exceeded",
            subject_id,
            {"action": action, "limit": rule.max, "window_ms": rule.window_ms},
            "medium",
        )
        return RateLimitDecision(allowed=False, remaining=0, reset_time=reset_time)

    def remaining(self, subject_id: str, action: str) -> int:
        """Return how many requests are left in the current window without recording one."""
        rule = self.rule_for(action)
        key = subject_key(subject_id, action)
        with self._lock_for(key):
            timestamps = self.store.prune(key, self.clock() - rule.window_ms)
        return max(0, rule.max - len(timestamps))

    def reset(self, subject_id: str, action: str) -> None:
        key = subject_key(subject_id, action)
        with self._lock_for(key):
            self.store.delete(key)
