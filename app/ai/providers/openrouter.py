"""OpenRouter provider implementation using the openai SDK."""

from __future__ import annotations

import logging
import os
from typing import Final

import openai
from openai import AsyncOpenAI

from app.ai.providers.base import AIModel, ModelResponse, Provider
from app.core.errors import NoStructuredOutput, TransientStepFailure

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS: Final[tuple[type[Exception], ...]] = (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)


class OpenRouterModel(AIModel):
  """OpenRouter chat model client returning raw text and the truncation signal."""

  def __init__(self, name: str, *, api_key: str | None, base_url: str, timeout_seconds: float) -> None:
    self.name: str = name
    if not api_key:
      raise ValueError("OPENROUTER_API_KEY environment variable is required")

    # OpenRouter uses the OpenAI-compatible API; we add optional attribution headers.
    default_headers = {}
    referer = os.getenv("OPENROUTER_HTTP_REFERER")
    if referer:
      default_headers["HTTP-Referer"] = referer
    title = os.getenv("OPENROUTER_TITLE")
    if title:
      default_headers["X-Title"] = title

    # Retries belong to the orchestrator, so the SDK must not retry on its own.
    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, default_headers=default_headers or None, timeout=timeout_seconds, max_retries=0)

  async def generate(self, prompt: str, *, system_prompt: str, max_output_tokens: int, temperature: float) -> ModelResponse:
    """Generate text from OpenRouter without parsing it."""
    try:
      response = await self._client.chat.completions.create(
        model=self.name, messages=[{"role": "system", "content": system_prompt}, {"role": "user", "content": prompt}], max_tokens=max_output_tokens, temperature=temperature
      )
    except _TRANSIENT_ERRORS as exc:
      raise TransientStepFailure(f"OpenRouter request failed: {type(exc).__name__}: {exc}") from exc

    if not response.choices:
      raise NoStructuredOutput("OpenRouter returned no choices.")

    choice = response.choices[0]
    content = choice.message.content or ""
    if not content.strip():
      raise NoStructuredOutput("OpenRouter returned no text content.")

    truncated = choice.finish_reason == "length"
    if truncated:
      logger.warning("OpenRouter response hit max_tokens=%d for model=%s", max_output_tokens, self.name)

    usage = None
    if response.usage:
      usage = {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}

    return ModelResponse(content=content, model=self.name, truncated=truncated, usage=usage)


class OpenRouterProvider(Provider):
  """OpenRouter provider."""

  _DEFAULT_MODEL: Final[str] = "anthropic/claude-sonnet-4.5"

  def __init__(self, api_key: str | None = None, *, base_url: str = "https://openrouter.ai/api/v1", timeout_seconds: float = 120.0) -> None:
    self.name: str = "openrouter"
    self._api_key = api_key
    self._base_url = base_url
    self._timeout_seconds = timeout_seconds

  def get_model(self, model: str | None = None) -> AIModel:
    """Return an OpenRouter model client; any routed model id is accepted."""
    model_name = model or self._DEFAULT_MODEL
    if "/" not in model_name:
      raise ValueError(f"OpenRouter model ids look like 'vendor/model', got '{model_name}'.")
    return OpenRouterModel(model_name, api_key=self._api_key, base_url=self._base_url, timeout_seconds=self._timeout_seconds)
