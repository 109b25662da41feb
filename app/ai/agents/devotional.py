"""Devotional blog post agent."""

from __future__ import annotations

from app.ai.agents.base import ContentAgent
from app.jobs.models import ContentType


class DevotionalAgent(ContentAgent):
  content_type = ContentType.DEVOTIONAL
  prompt_file = "devotional.md"
  instruction = "Create a devotional blog post following the specified structure. Keep the pastor's voice and teaching style from the sermon."
  max_output_tokens = 4096
  temperature = 0.8
