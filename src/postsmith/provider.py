"""AI provider adapters used by the generation orchestrator."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Protocol

import httpx

from postsmith.errors import ProviderError
from postsmith.models import ProviderParams, ProviderResponse

DEFAULT_GEMINI_KEY_FILE = Path(".api_keys/Gemini.md")


def resolve_gemini_api_key(key_file: Path = DEFAULT_GEMINI_KEY_FILE) -> str | None:
    """Resolve the Gemini API key from environment or fallback file.

    Resolution order:
    1. ``GEMINI_API_KEY`` environment variable.
    2. ``key_file`` plaintext contents.

    Args:
        key_file: Optional fallback file containing only the API key.

    Returns:
        The non-empty API key when found, otherwise ``None``.
    """
    api_key = (os.getenv("GEMINI_API_KEY") or "").strip()
    if api_key:
        return api_key

    if key_file.exists():
        fallback_key = key_file.read_text(encoding="utf-8").strip()
        if fallback_key:
            return fallback_key

    return None


class AIProvider(Protocol):
    """Narrow interface to an upstream completion API.

    Implementations either return a :class:`ProviderResponse` or raise; both
    a returned ``error`` and a raised exception are classified by the
    orchestrator. Implementations must tolerate ``asyncio.CancelledError``,
    which is how an attempt that timed out is abandoned.
    """

    async def invoke(self, prompt_payload: str, params: ProviderParams) -> ProviderResponse: ...


class GeminiProvider:
    """Adapter around the Google GenAI async content generation API."""

    def __init__(self, model_name: str, system_prompt: str | None = None):
        """Create a provider bound to a model name."""
        self.model_name = model_name
        self.system_prompt = system_prompt
        self._client: Any = None
        self._client_key: str | None = None

    def _client_for(self, api_key: str) -> Any:
        """Return the SDK client, creating it once per API key."""
        if self._client is None or self._client_key != api_key:
            from google import genai

            self._client = genai.Client(api_key=api_key)
            self._client_key = api_key
        return self._client

    async def invoke(self, prompt_payload: str, params: ProviderParams) -> ProviderResponse:
        """Generate post content for a prompt.

        Args:
            prompt_payload: User prompt describing the post to write.
            params: Sampling and timeout parameters for the call.

        Returns:
            A response carrying either the generated text or a ``ProviderError``.

        Raises:
            ValueError: If the prompt is blank.
        """
        if not isinstance(prompt_payload, str) or not prompt_payload.strip():
            raise ValueError("Prompt payload must be a non-empty string.")

        api_key = resolve_gemini_api_key()
        if not api_key:
            return ProviderResponse(
                error=ProviderError(
                    message="Missing GEMINI_API_KEY (set env var or .api_keys/Gemini.md)",
                    status=401,
                )
            )

        from google.genai import errors as genai_errors
        from google.genai import types

        client = self._client_for(api_key)
        try:
            response = await client.aio.models.generate_content(
                model=self.model_name,
                contents=prompt_payload,
                config=types.GenerateContentConfig(
                    system_instruction=self.system_prompt,
                    temperature=params.temperature,
                    max_output_tokens=params.max_tokens,
                ),
            )
        except genai_errors.APIError as exc:
            return ProviderResponse(
                error=ProviderError(
                    message=exc.message or str(exc),
                    status=exc.code,
                    code=exc.status,
                )
            )
        except httpx.TimeoutException as exc:
            return ProviderResponse(error=ProviderError(message=str(exc) or "Request timed out", status=504))
        except httpx.TransportError as exc:
            return ProviderResponse(error=ProviderError(message=str(exc) or "Transport failure", code="NETWORK_ERROR"))

        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            return ProviderResponse(
                error=ProviderError(message=f"Prompt blocked: {feedback.block_reason}", code="CONTENT_BLOCKED")
            )

        return ProviderResponse(content=(response.text or "").strip())


class OfflineProvider:
    """Provider that never reaches a model; every call reports the service as unavailable."""

    async def invoke(self, prompt_payload: str, params: ProviderParams) -> ProviderResponse:
        return ProviderResponse(error=ProviderError(message="Offline mode: no model backend configured", status=503))
