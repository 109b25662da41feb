"""Explicit wiring of external clients, repositories, and services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from app.ai.agents import build_content_agents
from app.ai.backoff import RetryPolicy
from app.ai.orchestrator import SermonOrchestrator
from app.ai.providers import get_provider
from app.config import Settings
from app.notifications.factory import build_notification_service
from app.notifications.service import NotificationService
from app.services.jobs import SermonJobService
from app.services.quotas import QuotaService
from app.services.tasks.factory import get_task_enqueuer
from app.services.tasks.interface import TaskEnqueuer
from app.services.transcription import AssemblyAITranscriptionClient
from app.storage.postgres_quotas_repo import PostgresQuotaRepository
from app.storage.postgres_sermons_repo import PostgresArtifactsRepository, PostgresJobsRepository, PostgresSermonsRepository

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
  """Long-lived collaborators built once at startup and stored on app.state."""

  job_service: SermonJobService
  orchestrator: SermonOrchestrator
  notifier: NotificationService
  enqueuer: TaskEnqueuer


def build_container(settings: Settings) -> ServiceContainer:
  """Construct every external client and inject it where it is used."""
  model = get_provider(settings).get_model(settings.llm_model)
  agents = build_content_agents(model, usage_sink=_log_usage)
  notifier = build_notification_service(settings)

  sermons = PostgresSermonsRepository()
  artifacts = PostgresArtifactsRepository()
  jobs = PostgresJobsRepository()
  policy = RetryPolicy(max_attempts=settings.step_max_attempts, initial_backoff_ms=settings.step_initial_backoff_ms, max_backoff_ms=settings.step_max_backoff_ms)
  orchestrator = SermonOrchestrator(
    sermons=sermons,
    artifacts=artifacts,
    jobs=jobs,
    transcriber=AssemblyAITranscriptionClient.from_settings(settings),
    agents=agents,
    notifier=notifier,
    policy=policy,
    min_transcript_chars=settings.min_transcript_chars,
  )

  # The inline enqueuer calls back into the job service, which needs the enqueuer.
  holder: dict[str, SermonJobService] = {}

  async def run_job(job_id: str) -> Any:
    return await holder["service"].process_job(job_id)

  enqueuer = get_task_enqueuer(settings, runner=run_job)
  job_service = SermonJobService(sermons=sermons, artifacts=artifacts, jobs=jobs, quotas=QuotaService(PostgresQuotaRepository()), orchestrator=orchestrator, enqueuer=enqueuer)
  holder["service"] = job_service
  logger.info("Service container ready provider=%s model=%s dispatch=%s", settings.llm_provider, getattr(model, "name", "unknown"), settings.task_service_provider)
  return ServiceContainer(job_service=job_service, orchestrator=orchestrator, notifier=notifier, enqueuer=enqueuer)


def _log_usage(payload: dict[str, Any]) -> None:
  logger.info("LLM usage model=%s content_type=%s job_id=%s prompt_tokens=%s completion_tokens=%s", payload.get("model"), payload.get("content_type"), payload.get("job_id"), payload.get("prompt_tokens"), payload.get("completion_tokens"))
