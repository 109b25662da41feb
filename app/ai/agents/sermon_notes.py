"""Fill-in-the-blank sermon notes agent."""

from __future__ import annotations

from app.ai.agents.base import ContentAgent, GenerationContext
from app.ai.agents.prompts import render_user_prompt
from app.jobs.models import ContentType


class SermonNotesAgent(ContentAgent):
  content_type = ContentType.SERMON_NOTES
  prompt_file = "sermon_notes.md"
  instruction = "Generate sermon notes following the specified JSON structure."
  max_output_tokens = 4096
  temperature = 0.7

  def build_prompt(self, transcript: str, context: GenerationContext) -> str:
    # Notes take their title from the content itself, so the stored title is not passed along.
    return render_user_prompt(transcript=transcript, instruction=self.instruction)
