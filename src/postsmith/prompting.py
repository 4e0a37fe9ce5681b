from __future__ import annotations

from postsmith.models import GenerationRequest

PROMPT_VERSION = "v2.1"

PLATFORM_SPECS: dict[str, list[str]] = {
    "instagram": [
        "Character limit: 2,200",
        "Use hashtags strategically",
        "Visual storytelling focus",
        "Encourage engagement",
    ],
    "twitter": [
        "Character limit: 280",
        "Concise and punchy",
        "Use threads if needed",
        "Trending hashtags",
    ],
    "linkedin": [
        "Professional tone",
        "Longer form content accepted",
        "Industry insights",
        "Professional networking focus",
    ],
    "facebook": [
        "Conversational tone",
        "Community building",
        "Share-worthy content",
        "Clear call-to-action",
    ],
    "tiktok": [
        "Trendy and energetic",
        "Short-form video script",
        "Hook within first 3 seconds",
        "Trending sounds/hashtags",
    ],
    "youtube": [
        "Title-friendly opening line",
        "Clear structure with sections",
        "Viewer retention focus",
        "Subscribe call-to-action",
    ],
}

DEFAULT_SPECS = ["Follow platform best practices", "Engaging and authentic content"]


def build_system_prompt() -> str:
    return (
        "You are a social media copywriter.\n"
        "Write ready-to-post content for the requested platform.\n"
        "Return only the post text: no preamble, no explanations, no markdown fences.\n"
        "Never include links, code, or personal data that the user did not provide."
    )


def build_user_prompt(
    request: GenerationRequest,
    topic: str,
    key_points: str | None = None,
    *,
    tone: str | None = None,
    goal: str | None = None,
) -> str:
    """Build the prompt for one request.

    Free-text values (``topic``, ``key_points``, ``tone``, ``goal``) must already
    be sanitized; only the enumerated fields are read from ``request``.
    """
    specs = PLATFORM_SPECS.get(request.platform, DEFAULT_SPECS)

    lines = [
        f"Create a {request.content_type} for {request.platform} about: {topic}",
        "",
        f"Platform: {request.platform}",
    ]
    if goal:
        lines.append(f"Goal: {goal}")
    if tone:
        lines.append(f"Tone: {tone}")
    if key_points:
        lines.append(f"Key points: {key_points}")

    lines += [
        "",
        "Platform Requirements:",
        *(f"- {spec}" for spec in specs),
        "",
        "Content Requirements:",
        f"- Write engaging copy optimized for {request.platform}",
        f"- Use {tone} tone throughout" if tone else "- Use a tone that fits the platform",
        "- Include relevant emojis" if request.emoji_usage else "- No emojis",
        "- Use short, punchy sentences" if request.short_sentences else "- Use natural sentence flow",
        "- Include relevant hashtags" if request.hashtag_density else "- No hashtags",
        "- Include a strong call-to-action",
        "",
        f"Make sure the content is ready to post and follows {request.platform} best practices.",
    ]
    return "\n".join(lines)
