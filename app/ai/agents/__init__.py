"""Agent implementations."""

from app.ai.agents.base import ContentAgent, GenerationContext, RawGeneration, UsageSink
from app.ai.agents.devotional import DevotionalAgent
from app.ai.agents.discussion_guide import DiscussionGuideAgent
from app.ai.agents.sermon_notes import SermonNotesAgent
from app.ai.agents.social_media import SocialMediaAgent
from app.ai.providers.base import AIModel
from app.jobs.models import ContentType

AGENT_CLASSES: dict[ContentType, type[ContentAgent]] = {
  ContentType.SERMON_NOTES: SermonNotesAgent,
  ContentType.DEVOTIONAL: DevotionalAgent,
  ContentType.DISCUSSION_GUIDE: DiscussionGuideAgent,
  ContentType.SOCIAL_MEDIA: SocialMediaAgent,
}


def build_content_agents(model: AIModel, *, usage_sink: UsageSink = None) -> dict[ContentType, ContentAgent]:
  """Build one agent per content type sharing a single model client."""
  return {content_type: agent_cls(model=model, usage_sink=usage_sink) for content_type, agent_cls in AGENT_CLASSES.items()}


__all__ = ["AGENT_CLASSES", "ContentAgent", "DevotionalAgent", "DiscussionGuideAgent", "GenerationContext", "RawGeneration", "SermonNotesAgent", "SocialMediaAgent", "build_content_agents"]
