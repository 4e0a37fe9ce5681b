"""Sanitization and validation of incoming generation requests."""

from __future__ import annotations

import re

from postsmith.models import ContentType, GenerationRequest, Platform, ValidationResult

DEFAULT_MAX_LENGTH = 2000
MIN_TOPIC_LENGTH = 3
FILTERED = "[FILTERED]"

MALICIOUS_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Script injection", re.compile(r"<script|javascript:|data:|vbscript:", re.IGNORECASE)),
    ("Event handlers", re.compile(r"\bon\w+\s*=", re.IGNORECASE)),
    ("Code execution", re.compile(r"\b(?:eval|function|constructor)\s*\(", re.IGNORECASE)),
    ("Credential exposure", re.compile(r"\b(?:password|token|key|secret)\s*[:=]", re.IGNORECASE)),
)

SPECIAL_CHARS_RE = re.compile(r"[<>{}\[\]]")

HTML_ESCAPES = (
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
    ("/", "&#x2F;"),
)

PLATFORM_MAX_LENGTHS: dict[str, int] = {
    Platform.TWITTER.value: 280,
    Platform.INSTAGRAM.value: 2200,
    Platform.LINKEDIN.value: 3000,
    Platform.FACEBOOK.value: 63206,
    Platform.TIKTOK.value: 150,
    Platform.YOUTUBE.value: 5000,
}
DEFAULT_PLATFORM_MAX_LENGTH = 5000

_PLATFORMS = frozenset(p.value for p in Platform)
_CONTENT_TYPES = frozenset(c.value for c in ContentType)


def escape_html(text: str) -> str:
    for char, entity in HTML_ESCAPES:
        text = text.replace(char, entity)
    return text


def scrub(text: str) -> tuple[str, list[str]]:
    """Replace dangerous substrings with a marker.

    Returns:
        The scrubbed text and one ``"Detected <name>"`` violation per pattern
        that matched.
    """
    violations: list[str] = []
    for name, pattern in MALICIOUS_PATTERNS:
        if pattern.search(text):
            violations.append(f"Detected {name}")
            text = pattern.sub(FILTERED, text)
    return text, violations


def check_content_length(content: str, platform: str) -> bool:
    """Return ``True`` when ``content`` fits the platform's character cap."""
    return len(content) <= PLATFORM_MAX_LENGTHS.get(platform, DEFAULT_PLATFORM_MAX_LENGTH)


class RequestValidator:
    """Validate and sanitize a :class:`GenerationRequest` before it reaches a provider.

    ``validate`` never raises: every problem becomes an entry in
    ``ValidationResult.violations``. The sanitized topic is always returned so
    that callers can build fallback content from it even when validation fails.
    """

    def __init__(self, max_length: int = DEFAULT_MAX_LENGTH):
        self.max_length = max_length

    def validate(self, request: GenerationRequest) -> ValidationResult:
        violations: list[str] = []
        topic = request.topic if isinstance(request.topic, str) else ""

        scrubbed, detections = scrub(topic)
        violations.extend(detections)

        special_count = len(SPECIAL_CHARS_RE.findall(scrubbed.replace(FILTERED, "")))
        if special_count > len(scrubbed) * 0.1:
            violations.append("Excessive special characters detected")

        sanitized = escape_html(scrubbed).strip()
        if not topic.strip():
            violations.insert(0, "Topic is required")
        elif len(sanitized) > self.max_length:
            violations.insert(0, f"Prompt is too long (max {self.max_length} characters)")
        elif len(sanitized) < MIN_TOPIC_LENGTH:
            violations.append(f"Topic must be at least {MIN_TOPIC_LENGTH} characters long")

        for label, value in (("key points", request.key_points), ("tone", request.tone), ("goal", request.goal)):
            if value:
                _, field_detections = scrub(value)
                violations.extend(f"{item} in {label}" for item in field_detections)

        if not request.platform:
            violations.append("Platform is required")
        elif request.platform not in _PLATFORMS:
            violations.append(f"Invalid platform: {request.platform}")

        if request.content_type not in _CONTENT_TYPES:
            violations.append(f"Invalid content type: {request.content_type}")

        return ValidationResult(
            is_valid=not violations,
            sanitized_content=sanitized,
            violations=tuple(violations),
        )

    def sanitize_text(self, text: str | None) -> str | None:
        """Scrub and escape a free-text field other than the topic."""
        if not text:
            return None
        scrubbed, _ = scrub(text)
        return escape_html(scrubbed).strip() or None
