"""Minimal .env support so local runs pick up SERMON_* settings."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the .env path next to pyproject.toml."""
  return Path(__file__).resolve().parents[2] / ".env"


def _parse_line(raw_line: str) -> tuple[str, str] | None:
  line = raw_line.strip()
  if not line or line.startswith("#"):
    return None

  line = line.removeprefix("export ").lstrip()
  key, sep, value = line.partition("=")
  key = key.strip()
  if not sep or not key:
    return None

  value = value.strip()
  # Quoted values are taken verbatim; unquoted values may carry a trailing comment.
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    return key, value[1:-1]

  value = value.split(" #", 1)[0].rstrip()
  return key, value


def load_env_file(path: Path, *, override: bool = False) -> int:
  """Load key=value pairs into os.environ and return how many were applied."""
  if not path.is_file():
    return 0

  applied = 0
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    parsed = _parse_line(raw_line)
    if parsed is None:
      continue

    key, value = parsed
    if not override and key in os.environ:
      continue

    os.environ[key] = value
    applied += 1

  return applied
