"""Base class for content generation agents."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar

from app.ai.agents.prompts import load_system_prompt, render_user_prompt
from app.ai.json_parser import ExtractedPayload, extract_payload
from app.ai.providers.base import AIModel
from app.jobs.models import ContentType

UsageSink = Callable[[dict[str, Any]], None] | None

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationContext:
  """Optional sermon context passed alongside the transcript."""

  title: str | None = None
  job_id: str | None = None
  main_points: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RawGeneration:
  """Unparsed model output for one content type."""

  content_type: ContentType
  text: str
  truncated: bool
  model: str
  usage: dict[str, int] | None = None


class ContentAgent:
  """Generates one content package from a transcript.

  Subclasses pick the prompt template, the output ceiling and the sampling
  temperature. `generate` only talks to the model; `parse` runs the shared
  structured-output extractor so the two stages can be retried independently.
  """

  content_type: ClassVar[ContentType]
  prompt_file: ClassVar[str]
  instruction: ClassVar[str]
  max_output_tokens: ClassVar[int] = 4096
  temperature: ClassVar[float] = 0.7

  def __init__(self, *, model: AIModel, usage_sink: UsageSink = None) -> None:
    self._model = model
    self._usage_sink = usage_sink

  @property
  def system_prompt(self) -> str:
    return load_system_prompt(self.prompt_file)

  def build_prompt(self, transcript: str, context: GenerationContext) -> str:
    return render_user_prompt(transcript=transcript, instruction=self.instruction, title=context.title)

  async def generate(self, transcript: str, context: GenerationContext) -> RawGeneration:
    """Call the model and return its raw text plus the truncation flag."""
    prompt = self.build_prompt(transcript, context)
    response = await self._model.generate(prompt, system_prompt=self.system_prompt, max_output_tokens=self.max_output_tokens, temperature=self.temperature)
    if response.truncated:
      logger.warning("Output for %s was truncated job_id=%s model=%s", self.content_type.value, context.job_id, response.model)

    self._record_usage(context=context, usage=response.usage)
    return RawGeneration(content_type=self.content_type, text=response.content, truncated=response.truncated, model=response.model, usage=response.usage)

  def parse(self, raw: RawGeneration) -> ExtractedPayload:
    """Extract and validate the payload from raw model output."""
    return extract_payload(self.content_type, raw.text, truncated=raw.truncated)

  def _record_usage(self, *, context: GenerationContext, usage: dict[str, int] | None) -> None:
    if not usage or not self._usage_sink:
      return
    payload = {"model": getattr(self._model, "name", "unknown"), "content_type": self.content_type.value, "job_id": context.job_id, **usage}
    self._usage_sink(payload)
