"""Base interfaces for LLM providers and models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ModelResponse:
  """Raw model output; parsing is left to the structured-output extractor."""

  content: str
  model: str
  # Set when the provider stopped at the output token ceiling.
  truncated: bool = False
  usage: dict[str, int] | None = None


class AIModel(ABC):
  """Abstract base class for text generation models."""

  name: str

  @abstractmethod
  async def generate(self, prompt: str, *, system_prompt: str, max_output_tokens: int, temperature: float) -> ModelResponse:
    """Generate a response for the given prompt.

    Implementations raise TransientStepFailure for rate limits, timeouts, connection
    errors and upstream 5xx responses so the orchestrator can retry them.
    """


class Provider(ABC):
  """Abstract base class for AI providers."""

  name: str

  @abstractmethod
  def get_model(self, model: str | None = None) -> AIModel:
    """Return the model client for the provider."""
