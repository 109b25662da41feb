"""HTTP surface: status codes, payload shapes, and error mapping."""

from __future__ import annotations

import dataclasses
import datetime
from unittest.mock import AsyncMock

import pytest
from app.api.deps import get_current_owner
from app.config import get_settings
from app.core.container import ServiceContainer
from app.core.security import CurrentOwner
from app.jobs.models import ContentType
from app.main import app
from app.services.jobs import SermonJobService
from app.services.quotas import QuotaService
from app.services.tasks.interface import TASK_ENDPOINT_PATH, TASK_SECRET_HEADER
from app.storage.quotas_repo import SubscriptionSnapshot
from conftest import OWNER_ID, SERMON_ID, TRANSCRIPT, VALID_OUTPUTS
from httpx import ASGITransport, AsyncClient

NOW = datetime.datetime(2026, 3, 15, 12, 0, tzinfo=datetime.UTC)


@pytest.fixture
def enqueuer():
  return AsyncMock()


@pytest.fixture
def job_service(sermons_repo, artifacts_repo, jobs_repo, quota_repo, make_orchestrator, enqueuer) -> SermonJobService:
  return SermonJobService(sermons=sermons_repo, artifacts=artifacts_repo, jobs=jobs_repo, quotas=QuotaService(quota_repo, clock=lambda: NOW), orchestrator=make_orchestrator(), enqueuer=enqueuer)


@pytest.fixture
async def api_client(job_service, notifier, enqueuer):
  app.state.container = ServiceContainer(job_service=job_service, orchestrator=job_service._orchestrator, notifier=notifier, enqueuer=enqueuer)
  app.dependency_overrides[get_current_owner] = lambda: CurrentOwner(owner_id=OWNER_ID, email="pastor@example.com")
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
  app.state.container = None


@pytest.mark.anyio
async def test_health_echoes_the_request_id(api_client):
  response = await api_client.get("/health", headers={"X-Request-ID": "req-123"})
  assert response.status_code == 200
  assert response.json()["status"] == "ok"
  assert response.headers["x-request-id"] == "req-123"


@pytest.mark.anyio
async def test_process_returns_a_job_ticket(sermon, api_client, enqueuer):
  response = await api_client.post(f"/v1/sermons/{SERMON_ID}/process", json={"skip_transcription": False})

  assert response.status_code == 202
  body = response.json()
  assert body["sermon_id"] == SERMON_ID
  assert body["job_kind"] == "full"
  assert body["content_types"] == ["sermon_notes", "devotional", "discussion_guide", "social_media"]
  assert body["warning"] == "You have 1 free sermon remaining this month."
  enqueuer.enqueue.assert_awaited_once_with(body["job_id"])


@pytest.mark.anyio
async def test_process_over_the_limit_is_payment_required(sermon, api_client):
  assert (await api_client.post(f"/v1/sermons/{SERMON_ID}/process")).status_code == 202

  response = await api_client.post(f"/v1/sermons/{SERMON_ID}/process")

  assert response.status_code == 402
  body = response.json()
  assert body["kind"] == "admission_denied"
  assert body["reasonCode"] == "free_limit_reached"
  assert body["requestId"]


@pytest.mark.anyio
async def test_past_due_subscription_is_forbidden(sermon, quota_repo, api_client):
  quota_repo.subscriptions[OWNER_ID] = SubscriptionSnapshot(owner_id=OWNER_ID, status="past_due", plan_id="starter")

  response = await api_client.post(f"/v1/sermons/{SERMON_ID}/process")

  assert response.status_code == 403
  assert response.json()["reasonCode"] == "payment_failed"


@pytest.mark.anyio
async def test_unknown_sermon_is_not_found(api_client):
  response = await api_client.get("/v1/sermons/00000000-0000-0000-0000-000000000000")
  assert response.status_code == 404
  assert response.json()["kind"] == "sermon_not_found"


@pytest.mark.anyio
async def test_get_sermon_reports_status(sermon, api_client):
  response = await api_client.get(f"/v1/sermons/{SERMON_ID}")
  assert response.status_code == 200
  assert response.json()["status"] == "uploading"
  assert response.json()["has_transcript"] is False


@pytest.mark.anyio
async def test_regenerate_without_transcript_is_a_conflict(sermon, api_client):
  response = await api_client.post(f"/v1/sermons/{SERMON_ID}/content/devotional")
  assert response.status_code == 409
  assert response.json()["kind"] == "transcript_missing"


@pytest.mark.anyio
async def test_regenerate_accepts_known_content_types(sermon, api_client, enqueuer):
  sermon.transcript = TRANSCRIPT

  response = await api_client.post(f"/v1/sermons/{SERMON_ID}/content/discussion_guide")

  assert response.status_code == 202
  assert response.json()["content_types"] == ["discussion_guide"]
  enqueuer.enqueue.assert_awaited_once()


@pytest.mark.anyio
async def test_unknown_content_type_is_a_validation_error(sermon, api_client):
  response = await api_client.get(f"/v1/sermons/{SERMON_ID}/content/podcast")
  assert response.status_code == 422


@pytest.mark.anyio
async def test_content_reads_and_edits(sermon, artifacts_repo, api_client):
  await artifacts_repo.upsert_artifact(SERMON_ID, ContentType.DEVOTIONAL, dict(VALID_OUTPUTS[ContentType.DEVOTIONAL]))

  listing = await api_client.get(f"/v1/sermons/{SERMON_ID}/content")
  assert listing.status_code == 200
  assert [item["content_type"] for item in listing.json()["items"]] == ["devotional"]

  missing = await api_client.get(f"/v1/sermons/{SERMON_ID}/content/social_media")
  assert missing.status_code == 404
  assert missing.json()["kind"] == "artifact_not_found"

  edited = await api_client.put(f"/v1/sermons/{SERMON_ID}/content/devotional", json={"content": {**VALID_OUTPUTS[ContentType.DEVOTIONAL], "title": "Edited"}})
  assert edited.status_code == 200
  assert edited.json()["content"]["title"] == "Edited"

  rejected = await api_client.put(f"/v1/sermons/{SERMON_ID}/content/devotional", json={"content": {"title": "No body"}})
  assert rejected.status_code == 422
  assert rejected.json()["kind"] == "invalid_structured_output"
  assert rejected.json()["fields"]


@pytest.mark.anyio
async def test_usage_snapshot(api_client):
  response = await api_client.get("/v1/usage")
  assert response.status_code == 200
  body = response.json()
  assert body["plan_name"] == "Free"
  assert body["allowed"] is True
  assert body["period_start"] == "2026-03-01"


@pytest.fixture
def task_secret():
  settings = dataclasses.replace(get_settings(), task_secret="s3cret")
  app.dependency_overrides[get_settings] = lambda: settings
  return "s3cret"


@pytest.mark.anyio
async def test_task_endpoint_requires_the_shared_secret(api_client, task_secret):
  response = await api_client.post(TASK_ENDPOINT_PATH, json={"job_id": "job-1"}, headers={TASK_SECRET_HEADER: "wrong"})
  assert response.status_code == 403


@pytest.mark.anyio
async def test_task_endpoint_runs_the_job(api_client, task_secret, job_service, monkeypatch):
  process_job = AsyncMock(return_value=None)
  monkeypatch.setattr(job_service, "process_job", process_job)

  response = await api_client.post(TASK_ENDPOINT_PATH, json={"job_id": "job-1"}, headers={TASK_SECRET_HEADER: task_secret})

  assert response.status_code == 200
  assert response.json() == {"status": "accepted"}
  process_job.assert_awaited_once_with("job-1")
