"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import asyncio
import logging
import warnings
from typing import Final

import httpx
from pydantic.warnings import ArbitraryTypeWarning

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import errors, types

from app.ai.providers.base import AIModel, ModelResponse, Provider
from app.core.errors import NoStructuredOutput, TransientStepFailure

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS_CODES: Final[set[int]] = {408, 429, 500, 502, 503, 504}


class GeminiModel(AIModel):
  """Gemini model client returning raw text and the truncation signal."""

  def __init__(self, name: str, *, api_key: str | None, timeout_seconds: float) -> None:
    self.name: str = name
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")

    self._timeout_seconds = timeout_seconds
    self._client = genai.Client(api_key=api_key)

  async def generate(self, prompt: str, *, system_prompt: str, max_output_tokens: int, temperature: float) -> ModelResponse:
    """Generate text from Gemini without parsing it."""
    config = types.GenerateContentConfig(system_instruction=system_prompt, max_output_tokens=max_output_tokens, temperature=temperature)

    try:
      # Use the async client to avoid blocking the asyncio event loop.
      response = await asyncio.wait_for(self._client.aio.models.generate_content(model=self.name, contents=prompt, config=config), timeout=self._timeout_seconds)
    except TimeoutError as exc:
      raise TransientStepFailure(f"Gemini request timed out after {self._timeout_seconds:.0f}s") from exc
    except errors.APIError as exc:
      if exc.code in _TRANSIENT_STATUS_CODES:
        raise TransientStepFailure(f"Gemini returned {exc.code}: {exc.message}") from exc
      raise
    except httpx.TransportError as exc:
      raise TransientStepFailure(f"Gemini connection failed: {exc}") from exc

    text = response.text or ""
    if not text.strip():
      raise NoStructuredOutput("Gemini returned no text content.")

    truncated = False
    if response.candidates:
      truncated = response.candidates[0].finish_reason == types.FinishReason.MAX_TOKENS
    if truncated:
      logger.warning("Gemini response hit max_output_tokens=%d for model=%s", max_output_tokens, self.name)

    usage = None
    if response.usage_metadata:
      usage = {"prompt_tokens": response.usage_metadata.prompt_token_count, "completion_tokens": response.usage_metadata.candidates_token_count, "total_tokens": response.usage_metadata.total_token_count}

    logger.debug("Gemini response model=%s chars=%d truncated=%s", self.name, len(text), truncated)
    return ModelResponse(content=text, model=self.name, truncated=truncated, usage=usage)


class GeminiProvider(Provider):
  """Gemini provider."""

  _DEFAULT_MODEL: Final[str] = "gemini-2.5-flash"
  _AVAILABLE_MODELS: Final[set[str]] = {"gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.0-flash", "gemini-2.0-flash-lite"}

  def __init__(self, api_key: str | None = None, *, timeout_seconds: float = 120.0) -> None:
    self.name: str = "gemini"
    self._api_key = api_key
    self._timeout_seconds = timeout_seconds

  def get_model(self, model: str | None = None) -> AIModel:
    """Return a Gemini model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported Gemini model '{model_name}'.")
    return GeminiModel(model_name, api_key=self._api_key, timeout_seconds=self._timeout_seconds)
