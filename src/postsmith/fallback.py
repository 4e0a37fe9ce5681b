"""Deterministic placeholder content used when every provider attempt fails."""

from __future__ import annotations

import re

from postsmith.models import GenerationRequest

DEFAULT_TOPIC = "what matters most"
TOPIC_WORDS = 3

TOPIC_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\babout\s+([^.!?\n]+)", re.IGNORECASE),
    re.compile(r"\btopic[:\s]+([^.!?\n]+)", re.IGNORECASE),
    re.compile(r"\bcreate\b.*?\bfor\s+([^.!?\n]+)", re.IGNORECASE),
)

# {lead} is an emoji prefix (dropped when emoji usage is off); {topic} is the extracted phrase.
TEMPLATES: dict[str, dict[str, str]] = {
    "instagram": {
        "post": (
            "{lead}{topic}\n\n"
            "Discover something new today! {topic} is more than a trend, it's a lifestyle.\n\n"
            "What makes it special:\n"
            "• Authentic experiences\n"
            "• Real connections\n"
            "• Meaningful moments\n\n"
            "What's your take on {topic}? Share your thoughts below!"
        ),
        "story": (
            "{lead}Hey there!\n\n"
            "Just wanted to share something cool about {topic}.\n\n"
            "It can totally change your perspective. Have you tried it?\n\n"
            "Swipe up to learn more!"
        ),
        "video": (
            "{lead}Hook: \"You won't believe what I discovered about {topic}!\"\n\n"
            "Middle: Share 3 key insights or benefits\n\n"
            "End: \"Try this and let me know what you think!\"\n\n"
            "Call-to-action: Follow for more tips like this!"
        ),
        "carousel": (
            "{lead}Slide 1: Everything you need to know about {topic}\n"
            "Slide 2: Why it matters\n"
            "Slide 3: How to get started\n"
            "Slide 4: Common mistakes to avoid\n"
            "Slide 5: Save this post for later!"
        ),
    },
    "twitter": {
        "post": (
            "{lead}Hot take on {topic}:\n\n"
            "The key isn't just knowing about it, it's actually doing something with what you learn.\n\n"
            "Stop overthinking, start doing."
        ),
        "thread": (
            "{lead}{topic}: a quick thread\n\n"
            "1/ Why this matters now\n"
            "2/ What you need to know\n"
            "3/ How to get started\n\n"
            "Repost if this helps!"
        ),
    },
    "linkedin": {
        "post": (
            "Insights on {topic}\n\n"
            "In today's rapidly evolving landscape, {topic} has emerged as a critical factor for success.\n\n"
            "Key takeaways:\n"
            "→ Strategic importance\n"
            "→ Implementation best practices\n"
            "→ Measurable outcomes\n\n"
            "What has been your experience with {topic}? I'd love to hear your perspective in the comments."
        ),
        "article": (
            "The Future of {topic}: What You Need to Know\n\n"
            "As we navigate an increasingly complex business environment, understanding {topic} has become essential.\n\n"
            "This article explores:\n"
            "• Current trends and implications\n"
            "• Actionable strategies for implementation\n"
            "• Real-world outcomes\n\n"
            "Read more in the comments or send me a message for the full analysis."
        ),
    },
    "facebook": {
        "post": (
            "{lead}I wanted to share something that's been on my mind about {topic}.\n\n"
            "We often overcomplicate things, but sometimes the simplest approach is the most effective.\n\n"
            "Here's what I've discovered:\n"
            "✓ Start small and build momentum\n"
            "✓ Focus on progress, not perfection\n"
            "✓ Celebrate the little wins along the way\n\n"
            "How do you approach {topic}? What works best for you?"
        ),
    },
    "tiktok": {
        "post": (
            "{lead}POV: You finally understand {topic}\n\n"
            "That moment when everything clicks and you realize it was simpler than you thought.\n\n"
            "Drop a comment if you can relate!"
        ),
        "video-script": (
            "{lead}[0-3s] Hook: Nobody talks about this side of {topic}...\n"
            "[3-15s] Three quick facts about {topic}\n"
            "[15-25s] Show one practical tip\n"
            "[25-30s] Follow for part 2!"
        ),
    },
    "youtube": {
        "post": (
            "Welcome back to the channel! Today we're diving deep into {topic}.\n\n"
            "In this video, you'll learn:\n"
            "• The fundamentals you need to know\n"
            "• Common mistakes to avoid\n"
            "• Practical tips you can use today\n\n"
            "Let me know in the comments what aspect of {topic} you'd like me to cover next."
        ),
        "video-script": (
            "INTRO: Today we're breaking down {topic}.\n\n"
            "PART 1: What {topic} is and why it matters\n"
            "PART 2: Step-by-step walkthrough\n"
            "PART 3: Mistakes to avoid\n\n"
            "OUTRO: Like and subscribe for more videos like this!"
        ),
    },
}

GLOBAL_TEMPLATE = (
    "{lead}Let's talk about {topic}.\n\n"
    "It's fascinating how this subject keeps evolving and shaping our daily lives. "
    "The key is staying informed and adapting to new developments.\n\n"
    "What are your thoughts on {topic}? Share your perspective!"
)

LEAD_EMOJI: dict[str, str] = {
    "instagram": "🌟 ",
    "twitter": "🔥 ",
    "facebook": "😊 ",
    "tiktok": "🎯 ",
}
DEFAULT_LEAD_EMOJI = "✨ "

FALLBACK_HASHTAGS: dict[str, list[str]] = {
    "instagram": ["#content", "#socialmedia", "#marketing", "#business", "#brand"],
    "twitter": ["#content", "#marketing"],
    "linkedin": ["#business", "#professional", "#networking"],
    "tiktok": ["#content", "#viral", "#trending", "#fyp"],
    "facebook": ["#business", "#marketing", "#community"],
    "youtube": ["#content", "#video", "#tutorial"],
}


def fallback_hashtags(platform: str) -> list[str]:
    return list(FALLBACK_HASHTAGS.get(platform, ["#content"]))


def extract_topic(text: str) -> str | None:
    """Pull a short topic phrase out of free text.

    Tries, in order, the text following ``about``, ``topic:``, and
    ``create ... for``; otherwise uses the first few words.
    """
    cleaned = " ".join(text.split())
    if not cleaned:
        return None

    for pattern in TOPIC_PATTERNS:
        match = pattern.search(cleaned)
        if match and match.group(1).strip():
            return " ".join(match.group(1).split()[:TOPIC_WORDS])

    return " ".join(cleaned.split()[:TOPIC_WORDS])


def select_template(platform: str, content_type: str) -> str:
    platform_templates = TEMPLATES.get(platform)
    if platform_templates is None:
        return GLOBAL_TEMPLATE
    return platform_templates.get(content_type) or platform_templates["post"]


def _topic_hashtag(topic: str) -> str | None:
    tag = re.sub(r"\W+", "", topic).lower()
    return f"#{tag}" if tag else None


class FallbackSynthesizer:
    """Build platform-appropriate placeholder content from a request.

    Output depends only on the request, so identical requests always yield
    byte-identical content. The result is never empty.
    """

    def synthesize(self, request: GenerationRequest, topic: str | None = None) -> str:
        phrase = extract_topic(topic if topic is not None else request.topic or "") or DEFAULT_TOPIC
        template = select_template(request.platform, request.content_type)
        lead = LEAD_EMOJI.get(request.platform, DEFAULT_LEAD_EMOJI) if request.emoji_usage else ""

        content = template.format(lead=lead, topic=phrase).strip()

        if request.hashtag_density:
            tags = [tag for tag in [_topic_hashtag(phrase), *fallback_hashtags(request.platform)] if tag]
            content = f"{content}\n\n{' '.join(dict.fromkeys(tags))}"

        return content
