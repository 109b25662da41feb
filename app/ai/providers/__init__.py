"""Provider implementations."""

from __future__ import annotations

from app.ai.providers.base import AIModel, ModelResponse, Provider
from app.config import Settings


def get_provider(settings: Settings) -> Provider:
  """Build the configured provider; SDK imports stay lazy so tests need no credentials."""
  if settings.llm_provider == "openrouter":
    from app.ai.providers.openrouter import OpenRouterProvider

    return OpenRouterProvider(settings.openrouter_api_key, base_url=settings.openrouter_base_url, timeout_seconds=settings.llm_request_timeout_seconds)

  from app.ai.providers.gemini import GeminiProvider

  return GeminiProvider(settings.gemini_api_key, timeout_seconds=settings.llm_request_timeout_seconds)


__all__ = ["AIModel", "ModelResponse", "Provider", "get_provider"]
