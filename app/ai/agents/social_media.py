"""Social media content pack agent."""

from __future__ import annotations

from app.ai.agents.base import ContentAgent
from app.jobs.models import ContentType


class SocialMediaAgent(ContentAgent):
  content_type = ContentType.SOCIAL_MEDIA
  prompt_file = "social_media.md"
  instruction = "Create a social media content pack with platform-specific variations following the specified structure. Pick quotes that work well standalone."
  max_output_tokens = 4096
  temperature = 0.8
