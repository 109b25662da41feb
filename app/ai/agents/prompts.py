"""Prompt helpers shared by content agents."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path


def render_user_prompt(*, transcript: str, instruction: str, title: str | None = None, main_points: list[str] | None = None) -> str:
  """Wrap the transcript with the sermon title and the task instruction."""
  header = f'Here is the sermon titled "{title}":' if title else "Here is the sermon transcript:"
  parts = [header, transcript.strip()]
  if main_points:
    # Headings from existing notes keep the guide aligned with what was printed.
    parts.append("Main points from the sermon notes:\n" + "\n".join(f"- {point}" for point in main_points))
  parts.append(instruction)
  return "\n\n".join(parts)


@lru_cache(maxsize=8)
def load_system_prompt(name: str) -> str:
  try:
    path = Path(__file__).parents[1] / "prompts" / name
    return path.read_text(encoding="utf-8").strip()
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as exc:
    raise RuntimeError(f"Failed to load prompt '{name}': {exc}") from exc
