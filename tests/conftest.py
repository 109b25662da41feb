"""Shared fixtures: in-memory repositories, scripted models, and a wired orchestrator."""

from __future__ import annotations

import dataclasses
import datetime
import json
import os
from collections.abc import Callable
from typing import Any

# Web settings are read at import time by app.main.
os.environ.setdefault("SERMON_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("SERMON_TASK_SECRET", "test-task-secret")

import pytest  # noqa: E402

from app.ai.agents import AGENT_CLASSES, ContentAgent  # noqa: E402
from app.ai.backoff import RetryPolicy  # noqa: E402
from app.ai.orchestrator import SermonOrchestrator  # noqa: E402
from app.ai.providers.base import AIModel, ModelResponse  # noqa: E402
from app.jobs.models import ArtifactRecord, ContentType, JobRecord, SermonRecord, SermonStatus, StepRecord  # noqa: E402
from app.notifications.contracts import AnalyticsEventEntry, EmailNotification  # noqa: E402
from app.notifications.service import NotificationService  # noqa: E402
from app.services.transcription import TranscriptResult  # noqa: E402
from app.storage.quotas_repo import SubscriptionSnapshot, UsageCounter  # noqa: E402

OWNER_ID = "owner-1"
SERMON_ID = "6f1c2a8e-2f6b-4d7e-9a41-0c3d5e7f9b11"

TRANSCRIPT = (
  "Good morning church. Today we are looking at Ephesians chapter two, where Paul reminds us that we are saved by grace through faith. "
  "Grace is not something we earn. It is a gift, freely given, and it changes how we treat one another during the week."
)

VALID_OUTPUTS: dict[ContentType, dict[str, Any]] = {
  ContentType.SERMON_NOTES: {
    "title": "Saved by Grace",
    "main_points": [
      {"heading": "Grace is a gift", "fill_in_blanks": [{"statement": "Grace is a ___ from God.", "answer": "gift"}], "scriptures": ["Ephesians 2:8"]},
      {"heading": "Grace changes us", "fill_in_blanks": [{"statement": "We are God's ___.", "answer": "workmanship"}], "scriptures": []},
    ],
    "discussion_questions": ["Where have you seen grace this week?"],
    "application_points": ["Thank someone who showed you grace."],
  },
  ContentType.DEVOTIONAL: {
    "title": "A Gift You Cannot Earn",
    "meta_description": "A devotional on Ephesians 2 and the gift of grace.",
    "content": "<h2>Grace</h2><p>Grace is a gift.</p>",
    "scripture_references": ["Ephesians 2:8-10"],
    "keywords": ["grace", "faith"],
  },
  ContentType.DISCUSSION_GUIDE: {
    "title": "Saved by Grace: Small Group Guide",
    "icebreaker": "What is the best gift you ever received?",
    "scripture_study": [{"question": "What does verse 8 say about effort?", "scripture_reference": "Ephesians 2:8"}],
    "application_questions": ["How can you show grace this week?"],
    "group_activity": "Write a thank-you note.",
    "prayer_points": ["Gratitude"],
  },
  ContentType.SOCIAL_MEDIA: {
    "quotes": [{"text": "Grace is not earned, it is received.", "context": "Opening point"}],
    "hashtags": ["#Grace"],
    "posting_schedule_suggestion": "Post on Monday morning.",
  },
}


def valid_output(content_type: ContentType) -> str:
  return json.dumps(VALID_OUTPUTS[content_type])


class ScriptedModel(AIModel):
  """Model double that replays scripted outputs; the last entry repeats."""

  def __init__(self, *responses: str | ModelResponse | BaseException, name: str = "scripted-model") -> None:
    self.name = name
    self._responses = list(responses)
    self.prompts: list[str] = []

  @property
  def calls(self) -> int:
    return len(self.prompts)

  async def generate(self, prompt: str, *, system_prompt: str, max_output_tokens: int, temperature: float) -> ModelResponse:
    self.prompts.append(prompt)
    item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
    if isinstance(item, BaseException):
      raise item
    if isinstance(item, ModelResponse):
      return item
    return ModelResponse(content=item, model=self.name, usage={"prompt_tokens": 10, "completion_tokens": 20})


class FakeTranscriber:
  def __init__(self, *responses: str | BaseException) -> None:
    self._responses = list(responses) or [TRANSCRIPT]
    self.media_refs: list[str | None] = []

  @property
  def calls(self) -> int:
    return len(self.media_refs)

  async def transcribe(self, media_ref: str | None) -> TranscriptResult:
    self.media_refs.append(media_ref)
    item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
    if isinstance(item, BaseException):
      raise item
    return TranscriptResult(text=item, confidence=0.93)


class InMemorySermonsRepository:
  def __init__(self) -> None:
    self.sermons: dict[str, SermonRecord] = {}
    self.status_history: list[SermonStatus] = []

  def add(self, record: SermonRecord) -> SermonRecord:
    self.sermons[record.sermon_id] = record
    return record

  async def get_sermon(self, sermon_id: str) -> SermonRecord | None:
    record = self.sermons.get(sermon_id)
    return dataclasses.replace(record) if record else None

  async def set_status(self, sermon_id: str, status: SermonStatus, *, error_message: str | None = None) -> None:
    record = self.sermons[sermon_id]
    record.status = status
    record.error_message = error_message if status == SermonStatus.ERROR else None
    self.status_history.append(status)

  async def set_transcript_if_absent(self, sermon_id: str, transcript: str) -> str:
    record = self.sermons[sermon_id]
    if not record.transcript:
      record.transcript = transcript
    return record.transcript


class InMemoryArtifactsRepository:
  def __init__(self) -> None:
    self.artifacts: dict[tuple[str, ContentType], ArtifactRecord] = {}
    self.writes = 0
    self.failures: dict[ContentType, BaseException] = {}

  async def upsert_artifact(self, sermon_id: str, content_type: ContentType, payload: dict[str, Any]) -> ArtifactRecord:
    if content_type in self.failures:
      raise self.failures[content_type]
    now = datetime.datetime.now(datetime.UTC)
    existing = self.artifacts.get((sermon_id, content_type))
    record = ArtifactRecord(sermon_id=sermon_id, content_type=content_type, payload=payload, created_at=existing.created_at if existing else now, updated_at=now)
    self.artifacts[(sermon_id, content_type)] = record
    self.writes += 1
    return record

  async def get_artifacts(self, sermon_id: str) -> list[ArtifactRecord]:
    return [record for (owner_sermon, _), record in self.artifacts.items() if owner_sermon == sermon_id]

  async def get_artifact(self, sermon_id: str, content_type: ContentType) -> ArtifactRecord | None:
    return self.artifacts.get((sermon_id, content_type))


class InMemoryJobsRepository:
  def __init__(self) -> None:
    self.jobs: dict[str, JobRecord] = {}
    self.steps: dict[tuple[str, str], StepRecord] = {}

  async def create_job(self, record: JobRecord) -> None:
    self.jobs[record.job_id] = dataclasses.replace(record)

  async def get_job(self, job_id: str) -> JobRecord | None:
    record = self.jobs.get(job_id)
    return dataclasses.replace(record) if record else None

  async def update_job(self, job_id: str, *, status: str, success_map: dict[str, bool] | None = None, error_kind: str | None = None, error_message: str | None = None) -> None:
    record = self.jobs.get(job_id)
    if record is None:
      return
    record.status = status
    if success_map is not None:
      record.success_map = success_map
    record.error_kind = error_kind
    record.error_message = error_message

  async def record_step(self, job_id: str, step_name: str, *, state: str, attempt_count: int, last_error: str | None = None) -> None:
    self.steps[(job_id, step_name)] = StepRecord(job_id=job_id, step_name=step_name, state=state, attempt_count=attempt_count, last_error=last_error)

  async def list_steps(self, job_id: str) -> list[StepRecord]:
    return [step for (step_job, _), step in self.steps.items() if step_job == job_id]


class InMemoryQuotaRepository:
  def __init__(self) -> None:
    self.subscriptions: dict[str, SubscriptionSnapshot] = {}
    self.usage: dict[str, UsageCounter] = {}

  async def get_subscription(self, owner_id: str) -> SubscriptionSnapshot | None:
    return self.subscriptions.get(owner_id)

  async def get_usage(self, owner_id: str) -> UsageCounter | None:
    return self.usage.get(owner_id)

  async def increment_usage(self, owner_id: str, *, period_start: datetime.date, period_end: datetime.date, limit: int, is_trial: bool) -> UsageCounter | None:
    current = self.usage.get(owner_id)
    used = current.used if current is not None and current.period_start == period_start else 0
    if limit != -1 and used >= limit:
      return None
    counter = UsageCounter(owner_id=owner_id, period_start=period_start, period_end=period_end, used=used + 1, limit=limit, is_trial=is_trial)
    self.usage[owner_id] = counter
    return counter

  async def release_usage(self, owner_id: str, *, period_start: datetime.date) -> None:
    current = self.usage.get(owner_id)
    if current is not None and current.period_start == period_start:
      self.usage[owner_id] = dataclasses.replace(current, used=max(current.used - 1, 0))

  async def reset_usage(self, owner_id: str, *, period_start: datetime.date, period_end: datetime.date) -> None:
    current = self.usage.get(owner_id)
    self.usage[owner_id] = UsageCounter(owner_id=owner_id, period_start=period_start, period_end=period_end, used=0, limit=current.limit if current else 1, is_trial=current.is_trial if current else False)


class RecordingEmailSender:
  def __init__(self) -> None:
    self.sent: list[EmailNotification] = []

  def send(self, notification: EmailNotification) -> dict[str, str | None]:
    self.sent.append(notification)
    return {"provider": "recording", "message_id": f"msg-{len(self.sent)}", "request_id": None}


class RecordingAnalyticsSink:
  def __init__(self) -> None:
    self.events: list[AnalyticsEventEntry] = []

  async def insert(self, entry: AnalyticsEventEntry) -> None:
    self.events.append(entry)

  def types(self) -> list[str]:
    return [event.event_type for event in self.events]


class RecordingSleep:
  def __init__(self) -> None:
    self.delays: list[float] = []

  async def __call__(self, delay: float) -> None:
    self.delays.append(delay)


def build_agents(models: dict[ContentType, AIModel] | None = None) -> dict[ContentType, ContentAgent]:
  """Build real agents over scripted models; unspecified types return valid output."""
  models = models or {}
  return {content_type: agent_cls(model=models.get(content_type) or ScriptedModel(valid_output(content_type), name=f"model-{content_type.value}")) for content_type, agent_cls in AGENT_CLASSES.items()}


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def sermons_repo() -> InMemorySermonsRepository:
  return InMemorySermonsRepository()


@pytest.fixture
def artifacts_repo() -> InMemoryArtifactsRepository:
  return InMemoryArtifactsRepository()


@pytest.fixture
def jobs_repo() -> InMemoryJobsRepository:
  return InMemoryJobsRepository()


@pytest.fixture
def quota_repo() -> InMemoryQuotaRepository:
  return InMemoryQuotaRepository()


@pytest.fixture
def transcriber() -> FakeTranscriber:
  return FakeTranscriber()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
  return RecordingEmailSender()


@pytest.fixture
def analytics_sink() -> RecordingAnalyticsSink:
  return RecordingAnalyticsSink()


@pytest.fixture
def notifier(email_sender: RecordingEmailSender, analytics_sink: RecordingAnalyticsSink) -> NotificationService:
  return NotificationService(email_sender=email_sender, analytics_sink=analytics_sink, email_enabled=True, app_base_url="https://app.example.com")


@pytest.fixture
def sleep() -> RecordingSleep:
  return RecordingSleep()


@pytest.fixture
def retry_policy() -> RetryPolicy:
  return RetryPolicy(max_attempts=3, initial_backoff_ms=100, max_backoff_ms=1000, jitter=False)


@pytest.fixture
def sermon(sermons_repo: InMemorySermonsRepository) -> SermonRecord:
  return sermons_repo.add(
    SermonRecord(sermon_id=SERMON_ID, owner_id=OWNER_ID, status=SermonStatus.UPLOADING, title="Saved by Grace", audio_url="https://cdn.example.com/sermons/grace.mp3", owner_email="pastor@example.com")
  )


@pytest.fixture
def make_orchestrator(sermons_repo, artifacts_repo, jobs_repo, transcriber, notifier, retry_policy, sleep) -> Callable[..., SermonOrchestrator]:
  def _make(*, agents: dict[ContentType, ContentAgent] | None = None, transcription_client: Any | None = None) -> SermonOrchestrator:
    return SermonOrchestrator(
      sermons=sermons_repo,
      artifacts=artifacts_repo,
      jobs=jobs_repo,
      transcriber=transcription_client or transcriber,
      agents=agents or build_agents(),
      notifier=notifier,
      policy=retry_policy,
      min_transcript_chars=100,
      sleep=sleep,
    )

  return _make
