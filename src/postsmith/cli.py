"""Typer-based CLI for generating social posts with retries and local fallback."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from pathlib import Path

import typer
from pydantic import ValidationError

from postsmith.config import CONTENT_GENERATION, get_settings
from postsmith.fallback import FallbackSynthesizer
from postsmith.models import GenerationRequest, GenerationResult
from postsmith.provider import OfflineProvider, resolve_gemini_api_key
from postsmith.service import build_orchestrator, build_store, make_request
from postsmith.validator import RequestValidator

app = typer.Typer(add_completion=False, help="postsmith: resilient social post generation")


def _echo_step(step: int, total: int, message: str) -> None:
    """Print a normalized progress step line."""
    typer.echo(f"[{step}/{total}] {message}")


def _build_request(**fields: object) -> GenerationRequest:
    try:
        return make_request(**fields)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _echo_result(result: GenerationResult, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return

    typer.echo("")
    typer.echo(result.content)
    typer.echo("")
    status = "generated" if result.success else "fallback"
    typer.echo(
        f"Done. status={status} attempts={result.attempts_made} "
        f"duration_ms={result.metadata.duration_ms} prompt_version={result.metadata.prompt_version}"
    )
    if result.error:
        typer.echo(f"Note: {result.error.user_friendly_message}")
        if result.error.suggested_action:
            typer.echo(f"Suggestion: {result.error.suggested_action}")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("generate")
def generate(
    topic: str = typer.Argument(..., help="What the post is about"),
    platform: str = typer.Option("instagram", help="Target platform"),
    content_type: str = typer.Option("post", help="post, story, video, thread, article, carousel, video-script"),
    tone: str = typer.Option("casual", help="Voice of the post"),
    goal: str = typer.Option("engagement", help="What the post should achieve"),
    key_points: str | None = typer.Option(None, help="Points the post must cover"),
    emojis: bool = typer.Option(True, "--emojis/--no-emojis", help="Allow emojis"),
    hashtags: bool = typer.Option(True, "--hashtags/--no-hashtags", help="Append hashtags"),
    short_sentences: bool = typer.Option(False, help="Prefer short, punchy sentences"),
    max_retries: int | None = typer.Option(None, min=1, help="Attempts before falling back"),
    timeout_ms: int | None = typer.Option(None, min=1, help="Per-attempt timeout"),
    subject: str = typer.Option("cli", help="Subject id used for rate limiting"),
    seed: int | None = typer.Option(None, help="Seed for backoff jitter"),
    local_only: bool = typer.Option(False, help="Skip Gemini and exercise the fallback path"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
) -> None:
    """Generate one post, retrying transient failures and falling back to templates."""
    settings = get_settings()
    overrides: dict[str, object] = {}
    if max_retries is not None:
        overrides["max_retries"] = max_retries
    if timeout_ms is not None:
        overrides["timeout_ms"] = timeout_ms

    _echo_step(1, 3, "Building request")
    request = _build_request(
        settings=settings,
        topic=topic,
        platform=platform,
        content_type=content_type,
        tone=tone,
        goal=goal,
        key_points=key_points,
        emoji_usage=emojis,
        hashtag_density=hashtags,
        short_sentences=short_sentences,
        **overrides,
    )

    _echo_step(2, 3, "Generating content" + (" (local only)" if local_only else f" with {settings.model_name}"))
    orchestrator = build_orchestrator(
        settings,
        provider=OfflineProvider() if local_only else None,
        rng=random.Random(seed) if seed is not None else None,
    )
    result = asyncio.run(
        orchestrator.generate(
            request,
            on_progress=lambda msg: typer.echo(f"    {msg}"),
            subject_id=subject,
        )
    )

    _echo_step(3, 3, "Result")
    _echo_result(result, as_json)


@app.command("check-limit")
def check_limit(
    subject: str = typer.Argument(..., help="Subject id to inspect"),
    action: str = typer.Option(CONTENT_GENERATION, help="Rate limited action name"),
    consume: bool = typer.Option(False, help="Record a request instead of only peeking"),
) -> None:
    """Show how many requests a subject has left for an action."""
    settings = get_settings()
    orchestrator = build_orchestrator(settings, provider=OfflineProvider())
    limiter = orchestrator.rate_limiter
    rule = limiter.rule_for(action)

    if consume:
        decision = orchestrator.check_rate_limit(subject, action)
        typer.echo(f"allowed={decision.allowed} remaining={decision.remaining} reset_time={decision.reset_time}")
    else:
        typer.echo(f"remaining={limiter.remaining(subject, action)}")
    typer.echo(f"limit={rule.max} window_ms={rule.window_ms}")


@app.command("fallback")
def fallback(
    topic: str = typer.Argument(..., help="What the post is about"),
    platform: str = typer.Option("instagram", help="Target platform"),
    content_type: str = typer.Option("post", help="Content type"),
    emojis: bool = typer.Option(True, "--emojis/--no-emojis", help="Allow emojis"),
    hashtags: bool = typer.Option(True, "--hashtags/--no-hashtags", help="Append hashtags"),
) -> None:
    """Print the deterministic fallback content for a request."""
    request = _build_request(
        topic=topic,
        platform=platform,
        content_type=content_type,
        emoji_usage=emojis,
        hashtag_density=hashtags,
    )
    topic = RequestValidator().validate(request).sanitized_content
    typer.echo(FallbackSynthesizer().synthesize(request, topic=topic))


@app.command("doctor")
def doctor(
    db_path: Path | None = typer.Option(None, "--db", help="SQLite rate limit store path"),
) -> None:
    """Print local environment diagnostics used by the CLI."""
    settings = get_settings()
    if db_path is not None:
        settings = settings.model_copy(update={"rate_limit_db": db_path})

    api_key = resolve_gemini_api_key()
    typer.echo(f"GEMINI_API_KEY set: {bool(api_key)}")
    typer.echo(f"Model: {settings.model_name}")
    typer.echo(f"Retries: {settings.max_retries} timeout_ms={settings.timeout_ms}")

    store = build_store(settings)
    keys = store.keys()
    backend = "sqlite" if settings.rate_limit_db else "memory"
    typer.echo(f"Rate limit store: {backend} ({settings.rate_limit_db or 'process-local'}) keys={len(keys)}")
    for action, rule in sorted(settings.rate_limits.items()):
        typer.echo(f"    {action}: {rule.max} per {rule.window_ms}ms")


if __name__ == "__main__":
    app()
