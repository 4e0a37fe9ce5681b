"""Security/audit event logging for the generation path.

Audit logging is fire-and-forget: :func:`safe_log` guarantees that a failing
audit backend never interrupts validation, rate limiting, or generation.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

Severity = Literal["low", "medium", "high", "critical"]

_LEVELS: dict[str, int] = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
    "critical": logging.CRITICAL,
}

DAY_MS = 24 * 60 * 60 * 1000


class AuditLogger(Protocol):
    def log(self, event_name: str, subject_id: str, details: dict[str, Any], severity: Severity) -> None: ...


class SecurityEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: int
    event: str
    subject_id: str
    details: dict[str, Any] = Field(default_factory=dict)
    severity: Severity = "medium"
    source: str = "postsmith"


class SecurityEventLog:
    """Keeps the most recent security events in memory and mirrors them to ``logging``."""

    def __init__(self, max_events: int = 1000, source: str = "postsmith"):
        self.max_events = max_events
        self.source = source
        self._events: deque[SecurityEvent] = deque(maxlen=max_events)

    def log(
        self,
        event_name: str,
        subject_id: str,
        details: dict[str, Any] | None = None,
        severity: Severity = "medium",
    ) -> None:
        event = SecurityEvent(
            timestamp=int(time.time() * 1000),
            event=event_name,
            subject_id=subject_id,
            details=dict(details or {}),
            severity=severity,
            source=self.source,
        )
        self._events.appendleft(event)
        logger.log(
            _LEVELS[severity],
            "Security event %s for %s (%s)",
            event_name,
            subject_id,
            severity,
            extra={"security_event": event.model_dump()},
        )

    def events(
        self,
        subject_id: str | None = None,
        severity: Severity | None = None,
        limit: int = 50,
    ) -> list[SecurityEvent]:
        """Return newest-first events, optionally filtered by subject and severity."""
        selected = [
            event
            for event in self._events
            if (subject_id is None or event.subject_id == subject_id)
            and (severity is None or event.severity == severity)
        ]
        return selected[:limit]

    def stats(self, now_ms: int | None = None) -> dict[str, Any]:
        now = now_ms if now_ms is not None else int(time.time() * 1000)
        by_severity = {name: 0 for name in _LEVELS}
        recent = 0
        for event in self._events:
            by_severity[event.severity] += 1
            if event.timestamp > now - DAY_MS:
                recent += 1
        return {"total": len(self._events), "by_severity": by_severity, "recent_24h": recent}

    def clear(self) -> None:
        self._events.clear()


def safe_log(
    audit: AuditLogger | None,
    event_name: str,
    subject_id: str,
    details: dict[str, Any],
    severity: Severity = "medium",
) -> None:
    """Forward an event to ``audit`` and contain any failure it raises."""
    if audit is None:
        return
    try:
        audit.log(event_name, subject_id, details, severity)
    except Exception:
        logger.exception("Audit logging failed for event %s", event_name)
