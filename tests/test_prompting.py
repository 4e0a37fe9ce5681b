from __future__ import annotations

from postsmith.models import GenerationRequest
from postsmith.prompting import DEFAULT_SPECS, PROMPT_VERSION, build_system_prompt, build_user_prompt


def test_build_system_prompt_given_no_args_when_called_then_output_contract_is_stated() -> None:
    # When
    prompt = build_system_prompt()

    # Then
    assert "social media copywriter" in prompt
    assert "Return only the post text" in prompt


def test_build_user_prompt_given_request_options_when_called_then_prompt_reflects_them() -> None:
    # Given
    request = GenerationRequest(
        topic="raw topic",
        platform="twitter",
        content_type="thread",
        tone="witty",
        goal="awareness",
        emoji_usage=False,
        hashtag_density=True,
        short_sentences=True,
    )

    # When
    prompt = build_user_prompt(
        request,
        topic="sanitized topic",
        key_points="price, taste",
        tone="witty",
        goal="awareness",
    )

    # Then
    assert prompt.startswith("Create a thread for twitter about: sanitized topic")
    assert "raw topic" not in prompt
    assert "Tone: witty" in prompt
    assert "Goal: awareness" in prompt
    assert "Key points: price, taste" in prompt
    assert "- Character limit: 280" in prompt
    assert "- No emojis" in prompt
    assert "- Use short, punchy sentences" in prompt
    assert "- Include relevant hashtags" in prompt


def test_build_user_prompt_given_unknown_platform_when_called_then_default_specs_are_used() -> None:
    # Given
    request = GenerationRequest(topic="coffee", platform="mastodon")

    # When
    prompt = build_user_prompt(request, topic="coffee")

    # Then
    assert all(f"- {spec}" in prompt for spec in DEFAULT_SPECS)
    assert "Key points" not in prompt


def test_prompt_version_given_module_when_read_then_version_is_tagged() -> None:
    assert PROMPT_VERSION == "v2.1"


def test_build_user_prompt_given_raw_tone_and_goal_on_request_when_called_then_only_passed_values_are_used() -> None:
    # Given
    request = GenerationRequest(topic="coffee", platform="facebook", tone="<b>loud</b>", goal="javascript:go()")

    # When
    prompt = build_user_prompt(request, topic="coffee", tone="&lt;b&gt;loud&lt;&#x2F;b&gt;")

    # Then
    assert "<b>" not in prompt
    assert "javascript:" not in prompt
    assert "Tone: &lt;b&gt;loud&lt;&#x2F;b&gt;" in prompt
    assert "Goal:" not in prompt
