"""AssemblyAI client behavior against a mocked HTTP transport."""

from __future__ import annotations

import json

import httpx
import pytest
from app.core.errors import SourceUnavailable, TranscriptionFailed, TransientStepFailure
from app.services.transcription import AssemblyAITranscriptionClient

MEDIA_URL = "https://cdn.example.com/sermons/grace.mp3"


def _client(handler, *, sleep, clock=None, **kwargs) -> AssemblyAITranscriptionClient:
  options = {"api_key": "aai-test", "base_url": "https://api.assemblyai.test/v2", "poll_interval_seconds": 3.0, "poll_deadline_seconds": 60.0, "transport": httpx.MockTransport(handler), "sleep": sleep}
  if clock is not None:
    options["clock"] = clock
  options.update(kwargs)
  return AssemblyAITranscriptionClient(**options)


@pytest.mark.anyio
async def test_submits_then_polls_until_completed(sleep):
  requests: list[httpx.Request] = []
  statuses = iter(["queued", "processing", "completed"])

  def handler(request: httpx.Request) -> httpx.Response:
    requests.append(request)
    if request.method == "POST":
      return httpx.Response(200, json={"id": "tr_123", "status": "queued"})
    status = next(statuses)
    body = {"id": "tr_123", "status": status}
    if status == "completed":
      body.update({"text": "  Grace is a gift.  ", "confidence": 0.91, "words": [{"text": "Grace", "start": 0, "end": 400, "confidence": 0.99}]})
    return httpx.Response(200, json=body)

  result = await _client(handler, sleep=sleep).transcribe(MEDIA_URL)

  assert result.text == "Grace is a gift."
  assert result.confidence == 0.91
  assert result.words[0].text == "Grace"
  submitted = json.loads(requests[0].content)
  assert submitted["audio_url"] == MEDIA_URL
  assert submitted["speaker_labels"] is True
  assert requests[0].headers["authorization"] == "aai-test"
  assert requests[1].url.path == "/v2/transcript/tr_123"
  assert sleep.delays == [3.0, 3.0]


@pytest.mark.anyio
async def test_missing_media_reference_is_source_unavailable(sleep):
  client = _client(lambda request: httpx.Response(500), sleep=sleep)
  with pytest.raises(SourceUnavailable):
    await client.transcribe(None)


@pytest.mark.anyio
async def test_download_error_from_service_is_source_unavailable(sleep):
  def handler(request: httpx.Request) -> httpx.Response:
    if request.method == "POST":
      return httpx.Response(200, json={"id": "tr_1"})
    return httpx.Response(200, json={"id": "tr_1", "status": "error", "error": "Download error, unable to download https://cdn.example.com/sermons/grace.mp3"})

  with pytest.raises(SourceUnavailable):
    await _client(handler, sleep=sleep).transcribe(MEDIA_URL)


@pytest.mark.anyio
async def test_other_service_errors_are_transcription_failures(sleep):
  def handler(request: httpx.Request) -> httpx.Response:
    if request.method == "POST":
      return httpx.Response(200, json={"id": "tr_1"})
    return httpx.Response(200, json={"id": "tr_1", "status": "error", "error": "Audio duration is too short"})

  with pytest.raises(TranscriptionFailed):
    await _client(handler, sleep=sleep).transcribe(MEDIA_URL)


@pytest.mark.anyio
@pytest.mark.parametrize("status_code", [429, 502, 503])
async def test_rate_limits_and_server_errors_are_transient(sleep, status_code):
  client = _client(lambda request: httpx.Response(status_code, json={"error": "busy"}), sleep=sleep)
  with pytest.raises(TransientStepFailure):
    await client.transcribe(MEDIA_URL)


@pytest.mark.anyio
async def test_connection_errors_are_transient(sleep):
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)

  with pytest.raises(TransientStepFailure):
    await _client(handler, sleep=sleep).transcribe(MEDIA_URL)


@pytest.mark.anyio
async def test_rejected_audio_url_is_source_unavailable(sleep):
  client = _client(lambda request: httpx.Response(400, json={"error": "Invalid audio_url provided"}), sleep=sleep)
  with pytest.raises(SourceUnavailable):
    await client.transcribe(MEDIA_URL)


@pytest.mark.anyio
async def test_empty_text_is_a_transcription_failure(sleep):
  def handler(request: httpx.Request) -> httpx.Response:
    if request.method == "POST":
      return httpx.Response(200, json={"id": "tr_1"})
    return httpx.Response(200, json={"id": "tr_1", "status": "completed", "text": "   "})

  with pytest.raises(TranscriptionFailed):
    await _client(handler, sleep=sleep).transcribe(MEDIA_URL)


@pytest.mark.anyio
async def test_poll_deadline_is_transient(sleep):
  ticks = iter([0.0, 30.0, 61.0])

  def handler(request: httpx.Request) -> httpx.Response:
    if request.method == "POST":
      return httpx.Response(200, json={"id": "tr_1"})
    return httpx.Response(200, json={"id": "tr_1", "status": "processing"})

  with pytest.raises(TransientStepFailure):
    await _client(handler, sleep=sleep, clock=lambda: next(ticks)).transcribe(MEDIA_URL)


@pytest.mark.anyio
async def test_missing_api_key_fails_before_any_request(sleep):
  client = _client(lambda request: httpx.Response(200, json={"id": "x"}), sleep=sleep, api_key=None)
  with pytest.raises(TranscriptionFailed):
    await client.transcribe(MEDIA_URL)
