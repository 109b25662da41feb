"""Job trigger, worker entry, and read surfaces."""

from __future__ import annotations

import datetime
from unittest.mock import AsyncMock

import pytest
from app.core.errors import AdmissionDenied, ArtifactNotFound, InvalidStructuredOutput, SermonNotFound, TranscriptMissing
from app.jobs.models import ContentType, SermonStatus
from app.services.jobs import SermonJobService
from app.services.quotas import QuotaService
from app.services.tasks.inline import InlineEnqueuer
from conftest import OWNER_ID, SERMON_ID, TRANSCRIPT, VALID_OUTPUTS

NOW = datetime.datetime(2026, 3, 15, 12, 0, tzinfo=datetime.UTC)


@pytest.fixture
def enqueuer():
  mock = AsyncMock()
  mock.enqueue.return_value = None
  return mock


@pytest.fixture
def job_service(sermons_repo, artifacts_repo, jobs_repo, quota_repo, make_orchestrator, enqueuer) -> SermonJobService:
  return SermonJobService(sermons=sermons_repo, artifacts=artifacts_repo, jobs=jobs_repo, quotas=QuotaService(quota_repo, clock=lambda: NOW), orchestrator=make_orchestrator(), enqueuer=enqueuer)


@pytest.mark.anyio
async def test_start_job_records_counts_and_dispatches(sermon, sermons_repo, jobs_repo, quota_repo, job_service, enqueuer):
  ticket = await job_service.start_job(SERMON_ID, OWNER_ID)

  assert ticket.job_kind == "full"
  assert ticket.content_types == list(ContentType)
  assert ticket.warning == "You have 1 free sermon remaining this month."
  assert jobs_repo.jobs[ticket.job_id].status == "queued"
  assert quota_repo.usage[OWNER_ID].used == 1
  assert sermons_repo.sermons[SERMON_ID].status == SermonStatus.PROCESSING
  enqueuer.enqueue.assert_awaited_once_with(ticket.job_id)


@pytest.mark.anyio
async def test_denied_admission_leaves_no_trace(sermon, sermons_repo, jobs_repo, quota_repo, job_service, enqueuer):
  await job_service.start_job(SERMON_ID, OWNER_ID)
  sermons_repo.sermons[SERMON_ID].status = SermonStatus.COMPLETE
  enqueuer.enqueue.reset_mock()

  with pytest.raises(AdmissionDenied) as exc_info:
    await job_service.start_job(SERMON_ID, OWNER_ID)

  assert exc_info.value.reason_code == "free_limit_reached"
  assert len(jobs_repo.jobs) == 1
  assert quota_repo.usage[OWNER_ID].used == 1
  assert sermons_repo.sermons[SERMON_ID].status == SermonStatus.COMPLETE
  enqueuer.enqueue.assert_not_awaited()


@pytest.mark.anyio
async def test_start_job_rejects_foreign_sermons(sermon, quota_repo, job_service):
  with pytest.raises(SermonNotFound):
    await job_service.start_job(SERMON_ID, "someone-else")
  assert quota_repo.usage == {}


@pytest.mark.anyio
async def test_generate_one_needs_a_transcript_and_does_not_count_usage(sermon, quota_repo, jobs_repo, job_service, enqueuer):
  with pytest.raises(TranscriptMissing):
    await job_service.generate_one(SERMON_ID, OWNER_ID, ContentType.DEVOTIONAL)

  sermon.transcript = TRANSCRIPT
  ticket = await job_service.generate_one(SERMON_ID, OWNER_ID, ContentType.DEVOTIONAL)

  assert ticket.job_kind == "single"
  assert jobs_repo.jobs[ticket.job_id].content_types == [ContentType.DEVOTIONAL]
  assert quota_repo.usage == {}
  enqueuer.enqueue.assert_awaited_once_with(ticket.job_id)


@pytest.mark.anyio
async def test_dispatch_failure_marks_the_job(sermon, sermons_repo, jobs_repo, quota_repo, job_service, enqueuer):
  enqueuer.enqueue.side_effect = RuntimeError("queue unavailable")

  with pytest.raises(RuntimeError):
    await job_service.start_job(SERMON_ID, OWNER_ID)

  job = next(iter(jobs_repo.jobs.values()))
  assert job.status == "error"
  assert job.error_kind == "dispatch_failed"
  # The sermon and the owner's quota are back where they started.
  assert sermons_repo.sermons[SERMON_ID].status == SermonStatus.UPLOADING
  assert quota_repo.usage[OWNER_ID].used == 0


@pytest.mark.anyio
async def test_owner_can_retry_after_a_dispatch_failure(sermon, sermons_repo, quota_repo, job_service, enqueuer):
  enqueuer.enqueue.side_effect = RuntimeError("queue unavailable")
  with pytest.raises(RuntimeError):
    await job_service.start_job(SERMON_ID, OWNER_ID)

  enqueuer.enqueue.side_effect = None
  ticket = await job_service.start_job(SERMON_ID, OWNER_ID)

  assert ticket.warning == "You have 1 free sermon remaining this month."
  assert quota_repo.usage[OWNER_ID].used == 1
  assert sermons_repo.sermons[SERMON_ID].status == SermonStatus.PROCESSING


@pytest.mark.anyio
async def test_process_job_runs_the_full_pipeline(sermon, sermons_repo, artifacts_repo, jobs_repo, notifier, job_service):
  ticket = await job_service.start_job(SERMON_ID, OWNER_ID)

  outcome = await job_service.process_job(ticket.job_id)
  await notifier.drain()

  assert outcome is not None
  assert outcome.status == SermonStatus.COMPLETE
  assert len(artifacts_repo.artifacts) == 4
  assert jobs_repo.jobs[ticket.job_id].status == "complete"
  # Duplicate deliveries of a finished job are ignored.
  assert await job_service.process_job(ticket.job_id) is None


@pytest.mark.anyio
async def test_process_job_ignores_unknown_jobs(job_service):
  assert await job_service.process_job("job-missing") is None


@pytest.mark.anyio
async def test_process_job_records_precondition_failures(sermon, jobs_repo, job_service):
  sermon.transcript = TRANSCRIPT
  ticket = await job_service.generate_one(SERMON_ID, OWNER_ID, ContentType.DEVOTIONAL)
  # The transcript disappears before the worker picks the job up.
  sermon.transcript = None

  assert await job_service.process_job(ticket.job_id) is None
  assert jobs_repo.jobs[ticket.job_id].status == "error"
  assert jobs_repo.jobs[ticket.job_id].error_kind == "transcript_missing"


@pytest.mark.anyio
async def test_inline_enqueuer_runs_the_job_in_process(sermon, sermons_repo, artifacts_repo, jobs_repo, quota_repo, notifier, make_orchestrator):
  holder = {}

  async def runner(job_id: str):
    return await holder["service"].process_job(job_id)

  inline = InlineEnqueuer(runner)
  service = SermonJobService(sermons=sermons_repo, artifacts=artifacts_repo, jobs=jobs_repo, quotas=QuotaService(quota_repo, clock=lambda: NOW), orchestrator=make_orchestrator(), enqueuer=inline)
  holder["service"] = service

  ticket = await service.start_job(SERMON_ID, OWNER_ID)
  await inline.drain()
  await notifier.drain()

  assert jobs_repo.jobs[ticket.job_id].status == "complete"
  assert sermons_repo.sermons[SERMON_ID].status == SermonStatus.COMPLETE


@pytest.mark.anyio
async def test_read_surfaces_hide_foreign_sermons(sermon, artifacts_repo, job_service):
  await artifacts_repo.upsert_artifact(SERMON_ID, ContentType.DEVOTIONAL, {"title": "Grace"})

  assert [artifact.content_type for artifact in await job_service.get_artifacts(SERMON_ID, OWNER_ID)] == [ContentType.DEVOTIONAL]
  with pytest.raises(SermonNotFound):
    await job_service.get_artifacts(SERMON_ID, "someone-else")
  with pytest.raises(ArtifactNotFound):
    await job_service.get_artifact(SERMON_ID, ContentType.SOCIAL_MEDIA, OWNER_ID)


@pytest.mark.anyio
async def test_owner_edits_are_validated_before_storing(sermon, artifacts_repo, job_service):
  edited = await job_service.update_artifact(SERMON_ID, ContentType.DEVOTIONAL, OWNER_ID, {**VALID_OUTPUTS[ContentType.DEVOTIONAL], "title": "Edited title"})
  assert edited.payload["title"] == "Edited title"

  with pytest.raises(InvalidStructuredOutput) as exc_info:
    await job_service.update_artifact(SERMON_ID, ContentType.DEVOTIONAL, OWNER_ID, {"title": "No body"})
  assert exc_info.value.details["fields"]
  assert artifacts_repo.artifacts[(SERMON_ID, ContentType.DEVOTIONAL)].payload["title"] == "Edited title"
