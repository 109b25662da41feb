"""Recover structured payloads from noisy, possibly truncated LLM output."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from app.ai.pipeline.contracts import ContentPayload, validate_payload
from app.core.errors import InvalidStructuredOutput, NoStructuredOutput
from app.jobs.models import ContentType

logger = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")
_CLOSERS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class ScanResult:
  """Outcome of the brace scan over a candidate buffer."""

  start: int
  end: int | None
  # Position and still-open containers after the last structural closing brace.
  last_close: int | None
  open_at_last_close: tuple[str, ...]


@dataclass(frozen=True)
class ExtractedPayload:
  """Validated payload plus a flag telling whether truncation repair was needed."""

  payload: ContentPayload
  repaired: bool


def strip_code_fence(raw: str) -> str:
  """Return the inner text of a fenced json block, or the trimmed input."""
  text = raw.strip()
  match = _FENCED_BLOCK_RE.search(text)
  if match:
    return match.group(1).strip()
  return text


def scan_object(text: str) -> ScanResult:
  """Find the first top-level object and where it ends, honoring string escapes."""
  start = text.find("{")
  if start == -1:
    raise NoStructuredOutput("No JSON object found in model output.")

  stack: list[str] = []
  in_string = False
  escape = False
  last_close: int | None = None
  open_at_last_close: tuple[str, ...] = ()

  for index in range(start, len(text)):
    char = text[index]

    if escape:
      escape = False
      continue

    if char == "\\":
      escape = True
      continue

    if char == '"':
      in_string = not in_string
      continue

    if in_string:
      continue

    if char in "{[":
      stack.append(char)
      continue

    if char in "}]":
      # Mismatched closers mean the text is not salvageable by counting alone.
      if not stack or _CLOSERS[stack[-1]] != char:
        raise InvalidStructuredOutput(f"Unbalanced '{char}' at offset {index} in model output.")
      stack.pop()

      if not stack:
        return ScanResult(start=start, end=index, last_close=index, open_at_last_close=())

      if char == "}":
        last_close = index
        open_at_last_close = tuple(stack)

  return ScanResult(start=start, end=None, last_close=last_close, open_at_last_close=open_at_last_close)


def repair_truncated(text: str, scan: ScanResult) -> str:
  """Cut after the last complete sub-object and close whatever is still open."""
  if scan.last_close is None:
    raise NoStructuredOutput("Model output was truncated before any complete object.")

  kept = text[scan.start : scan.last_close + 1]
  closers = "".join(f"\n{_CLOSERS[opener]}" for opener in reversed(scan.open_at_last_close))
  return kept + closers


def strip_trailing_commas(text: str) -> str:
  """Drop commas that directly precede a closing brace or bracket, leaving string values untouched."""
  out: list[str] = []
  in_string = False
  escape = False
  length = len(text)

  for index, char in enumerate(text):
    if in_string:
      out.append(char)
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char == '"':
      in_string = True
    elif char == ",":
      lookahead = index + 1
      while lookahead < length and text[lookahead].isspace():
        lookahead += 1
      if lookahead < length and text[lookahead] in "}]":
        continue
    out.append(char)

  return "".join(out)


def _loads(candidate: str) -> Any:
  try:
    return json.loads(candidate)
  except json.JSONDecodeError as exc:
    first_error = exc

  # Trailing commas are the most common near-miss in model output.
  cleaned = strip_trailing_commas(candidate)
  try:
    return json.loads(cleaned)
  except json.JSONDecodeError:
    raise InvalidStructuredOutput(f"Model output is not valid JSON: {first_error.msg} at line {first_error.lineno} column {first_error.colno}.") from first_error


def extract_json_object(raw: str) -> tuple[dict[str, Any], bool]:
  """Return the embedded object and whether it had to be repaired."""
  if not raw or not raw.strip():
    raise NoStructuredOutput("Model output is empty.")

  text = strip_code_fence(raw)
  scan = scan_object(text)

  repaired = scan.end is None
  if repaired:
    candidate = repair_truncated(text, scan)
    logger.warning("Model output appears truncated; repaired by closing %d open container(s).", len(scan.open_at_last_close))
  else:
    candidate = text[scan.start : scan.end + 1]

  data = _loads(candidate)
  if not isinstance(data, dict):
    raise InvalidStructuredOutput("Model output did not contain a JSON object.")
  return data, repaired


def extract_payload(content_type: ContentType, raw: str, *, truncated: bool = False) -> ExtractedPayload:
  """Extract, repair, and validate the payload for a content type."""
  data, repaired = extract_json_object(raw)
  if truncated and not repaired:
    logger.info("Provider flagged %s output as truncated but the object closed cleanly.", content_type.value)

  try:
    payload = validate_payload(content_type, data)
  except ValidationError as exc:
    fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
    raise InvalidStructuredOutput(f"Invalid {content_type.value} structure: {', '.join(fields)}", details={"fields": fields}) from exc

  return ExtractedPayload(payload=payload, repaired=repaired)
