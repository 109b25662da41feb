"""Small-group discussion guide agent."""

from __future__ import annotations

from app.ai.agents.base import ContentAgent, GenerationContext
from app.ai.agents.prompts import render_user_prompt
from app.jobs.models import ContentType


class DiscussionGuideAgent(ContentAgent):
  content_type = ContentType.DISCUSSION_GUIDE
  prompt_file = "discussion_guide.md"
  instruction = "Create a small group discussion guide following the specified JSON structure."
  # Guides are shorter than the other packages; a lower ceiling keeps latency down.
  max_output_tokens = 3072
  temperature = 0.7

  def build_prompt(self, transcript: str, context: GenerationContext) -> str:
    return render_user_prompt(transcript=transcript, instruction=self.instruction, title=context.title, main_points=context.main_points)
