"""Speech-to-text client for sermon media over the AssemblyAI REST API."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from app.config import Settings
from app.core.errors import SourceUnavailable, TranscriptionFailed, TransientStepFailure

logger = logging.getLogger(__name__)

# Service error text that means the media itself could not be fetched.
_SOURCE_ERROR_MARKERS = ("download", "unable to access", "not accessible", "could not be retrieved", "404", "403")


@dataclass(frozen=True)
class TranscriptWord:
  text: str
  start: int
  end: int
  confidence: float


@dataclass(frozen=True)
class TranscriptResult:
  """Completed transcript returned by the speech-to-text service."""

  text: str
  confidence: float = 0.0
  words: list[TranscriptWord] = field(default_factory=list)


class TranscriptionClient(Protocol):
  """Interface used by the orchestrator for transcription."""

  async def transcribe(self, media_ref: str | None) -> TranscriptResult:
    """Transcribe the referenced media or raise a pipeline error."""
    ...


def _is_source_error(message: str) -> bool:
  lowered = message.lower()
  return any(marker in lowered for marker in _SOURCE_ERROR_MARKERS)


def _error_text(response: httpx.Response) -> str:
  try:
    body = response.json()
  except ValueError:
    return response.text[:500]
  if isinstance(body, dict) and body.get("error"):
    return str(body["error"])
  return response.text[:500]


class AssemblyAITranscriptionClient:
  """Submit a transcript request and poll until the service settles it.

  How/Why:
    - The client performs no retries itself; transient failures are raised so the
      orchestrator's step policy decides whether to try again.
    - A transport can be injected so tests can drive the client with httpx.MockTransport.
  """

  def __init__(
    self,
    *,
    api_key: str | None,
    base_url: str = "https://api.assemblyai.com/v2",
    timeout_seconds: float = 30.0,
    poll_interval_seconds: float = 3.0,
    poll_deadline_seconds: float = 1800.0,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
  ) -> None:
    self._api_key = api_key
    self._base_url = base_url.rstrip("/")
    self._timeout = timeout_seconds
    self._poll_interval = poll_interval_seconds
    self._poll_deadline = poll_deadline_seconds
    self._transport = transport
    self._sleep = sleep
    self._clock = clock

  @classmethod
  def from_settings(cls, settings: Settings) -> AssemblyAITranscriptionClient:
    return cls(
      api_key=settings.transcription_api_key,
      base_url=settings.transcription_base_url,
      timeout_seconds=settings.transcription_timeout_seconds,
      poll_interval_seconds=settings.transcription_poll_interval_seconds,
      poll_deadline_seconds=settings.transcription_poll_deadline_seconds,
    )

  def _build_client(self) -> httpx.AsyncClient:
    if not self._api_key:
      raise TranscriptionFailed("Transcription API key is not configured.")
    headers = {"authorization": self._api_key, "content-type": "application/json"}
    return httpx.AsyncClient(base_url=self._base_url, headers=headers, timeout=self._timeout, transport=self._transport, trust_env=False)

  async def transcribe(self, media_ref: str | None) -> TranscriptResult:
    if not media_ref or not media_ref.strip():
      raise SourceUnavailable("No audio, video, or YouTube source is attached to this sermon.")

    async with self._build_client() as client:
      transcript_id = await self._submit(client, media_ref.strip())
      logger.info("Submitted transcription %s", transcript_id)
      body = await self._poll(client, transcript_id)

    text = (body.get("text") or "").strip()
    if not text:
      raise TranscriptionFailed("No transcription text returned.")
    words = [
      TranscriptWord(text=str(word.get("text", "")), start=int(word.get("start", 0)), end=int(word.get("end", 0)), confidence=float(word.get("confidence") or 0.0))
      for word in body.get("words") or []
    ]
    logger.info("Transcription %s completed (%d characters)", transcript_id, len(text))
    return TranscriptResult(text=text, confidence=float(body.get("confidence") or 0.0), words=words)

  async def _submit(self, client: httpx.AsyncClient, media_ref: str) -> str:
    payload = {"audio_url": media_ref, "language_detection": True, "speaker_labels": True, "punctuate": True, "format_text": True}
    response = await self._request(client, "POST", "/transcript", json=payload)
    transcript_id = response.json().get("id")
    if not transcript_id:
      raise TranscriptionFailed("Transcription service did not return a transcript id.")
    return str(transcript_id)

  async def _poll(self, client: httpx.AsyncClient, transcript_id: str) -> dict[str, Any]:
    started = self._clock()
    while True:
      response = await self._request(client, "GET", f"/transcript/{transcript_id}")
      body = response.json()
      status = body.get("status")
      if status == "completed":
        return body
      if status == "error":
        message = str(body.get("error") or "Transcription failed")
        if _is_source_error(message):
          raise SourceUnavailable(f"Sermon media could not be accessed: {message}")
        raise TranscriptionFailed(message)
      if self._clock() - started >= self._poll_deadline:
        raise TransientStepFailure(f"Transcription {transcript_id} did not finish within {self._poll_deadline:.0f}s.")
      await self._sleep(self._poll_interval)

  async def _request(self, client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> httpx.Response:
    try:
      response = await client.request(method, path, **kwargs)
    except httpx.TimeoutException as exc:
      raise TransientStepFailure(f"Transcription request timed out: {exc}") from exc
    except httpx.TransportError as exc:
      raise TransientStepFailure(f"Transcription service unreachable: {exc}") from exc

    if response.status_code == 429 or response.status_code >= 500:
      raise TransientStepFailure(f"Transcription service returned {response.status_code}.")
    if response.status_code >= 400:
      message = _error_text(response)
      if _is_source_error(message) or "audio_url" in message.lower():
        raise SourceUnavailable(f"Sermon media could not be accessed: {message}")
      raise TranscriptionFailed(f"Transcription service rejected the request ({response.status_code}): {message}")
    return response
