"""Job trigger, worker entry, and read surfaces for sermon processing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from app.ai.orchestrator import SermonOrchestrator
from app.ai.pipeline.contracts import payload_to_storage, validate_payload
from app.core.errors import ArtifactNotFound, InvalidStructuredOutput, PipelineError, SermonNotFound, TranscriptMissing
from app.jobs.models import FANOUT_CONTENT_TYPES, ArtifactRecord, ContentType, JobKind, JobOutcome, JobRecord, SermonRecord, SermonStatus, can_transition
from app.services.quotas import AdmissionDecision, QuotaService
from app.services.tasks.interface import TaskEnqueuer
from app.storage.quotas_repo import UsageCounter
from app.storage.sermons_repo import ArtifactsRepository, JobsRepository, SermonsRepository
from app.utils.ids import generate_job_id

logger = logging.getLogger(__name__)

_FINISHED_JOB_STATUSES = {"complete", "error"}


@dataclass(frozen=True)
class JobTicket:
  """Acknowledgement returned when a job has been recorded and dispatched."""

  job_id: str
  sermon_id: str
  job_kind: JobKind
  content_types: list[ContentType] = field(default_factory=list)
  status: str = "queued"
  warning: str | None = None


class SermonJobService:
  """Entry points used by the HTTP layer and the task worker.

  How/Why:
    - Admission is checked before any state changes so a denied request leaves
      no job row, counter bump, or status write behind.
    - Jobs are recorded before dispatch; the worker loads the row by id so a
      re-delivered task replays the same job identity.
  """

  def __init__(self, *, sermons: SermonsRepository, artifacts: ArtifactsRepository, jobs: JobsRepository, quotas: QuotaService, orchestrator: SermonOrchestrator, enqueuer: TaskEnqueuer) -> None:
    self._sermons = sermons
    self._artifacts = artifacts
    self._jobs = jobs
    self._quotas = quotas
    self._orchestrator = orchestrator
    self._enqueuer = enqueuer

  async def start_job(self, sermon_id: str, owner_id: str, *, skip_transcription: bool = False) -> JobTicket:
    """Admit, record, and dispatch a full processing job."""
    sermon = await self.get_sermon(sermon_id, owner_id)
    decision = await self._quotas.require_admission(owner_id)
    counter = await self._quotas.record_job_start(owner_id, decision)

    record = JobRecord(job_id=generate_job_id(), sermon_id=sermon_id, owner_id=owner_id, job_kind="full", content_types=list(FANOUT_CONTENT_TYPES), status="queued", skip_transcription=skip_transcription)
    await self._jobs.create_job(record)

    moved = can_transition(sermon.status, SermonStatus.PROCESSING)
    if moved:
      await self._sermons.set_status(sermon_id, SermonStatus.PROCESSING)
    else:
      # A job is already in flight; the new one supersedes it by upsert.
      logger.info("Sermon %s is %s; leaving status for job %s", sermon_id, sermon.status.value, record.job_id)

    try:
      await self._dispatch(record)
    except Exception:
      await self._undo_start(record, sermon, counter, restore_status=moved)
      raise
    return self._ticket(record, decision)

  async def generate_one(self, sermon_id: str, owner_id: str, content_type: ContentType) -> JobTicket:
    """Admit and dispatch regeneration of a single content type."""
    sermon = await self.get_sermon(sermon_id, owner_id)
    if not sermon.transcript:
      raise TranscriptMissing("Sermon has no transcript yet. Process the sermon before generating content.")
    # Regeneration is gated on admission but does not consume a job start.
    decision = await self._quotas.require_admission(owner_id)

    record = JobRecord(job_id=generate_job_id(), sermon_id=sermon_id, owner_id=owner_id, job_kind="single", content_types=[content_type], status="queued", skip_transcription=True)
    await self._jobs.create_job(record)
    await self._dispatch(record)
    return self._ticket(record, decision)

  async def process_job(self, job_id: str) -> JobOutcome | None:
    """Worker entry point: load the job row and run it through the orchestrator."""
    job = await self._jobs.get_job(job_id)
    if job is None:
      logger.warning("Job %s not found; dropping task", job_id)
      return None
    if job.status in _FINISHED_JOB_STATUSES:
      logger.info("Job %s already %s; ignoring duplicate delivery", job_id, job.status)
      return None

    try:
      if job.job_kind == "single":
        return await self._orchestrator.generate_one(job.sermon_id, job.owner_id, job.content_types[0], job_id=job_id)
      return await self._orchestrator.run_job(job.sermon_id, job.owner_id, skip_transcription=job.skip_transcription, job_id=job_id, content_types=job.content_types or FANOUT_CONTENT_TYPES)
    except PipelineError as exc:
      # Preconditions failed before the orchestrator owned the sermon.
      logger.error("Job %s rejected: kind=%s error=%s", job_id, exc.kind, exc.message)
      await self._jobs.update_job(job_id, status="error", error_kind=exc.kind, error_message=exc.message)
      return None

  async def get_sermon(self, sermon_id: str, owner_id: str) -> SermonRecord:
    sermon = await self._sermons.get_sermon(sermon_id)
    # Foreign sermons look missing so ids cannot be probed.
    if sermon is None or sermon.owner_id != owner_id:
      raise SermonNotFound(f"Sermon not found: {sermon_id}")
    return sermon

  async def get_artifacts(self, sermon_id: str, owner_id: str) -> list[ArtifactRecord]:
    await self.get_sermon(sermon_id, owner_id)
    return await self._artifacts.get_artifacts(sermon_id)

  async def get_artifact(self, sermon_id: str, content_type: ContentType, owner_id: str) -> ArtifactRecord:
    await self.get_sermon(sermon_id, owner_id)
    artifact = await self._artifacts.get_artifact(sermon_id, content_type)
    if artifact is None:
      raise ArtifactNotFound(f"No {content_type.value} content for sermon {sermon_id}")
    return artifact

  async def update_artifact(self, sermon_id: str, content_type: ContentType, owner_id: str, payload: dict[str, Any]) -> ArtifactRecord:
    """Replace an artifact with an owner edit after schema validation."""
    await self.get_sermon(sermon_id, owner_id)
    try:
      validated = validate_payload(content_type, payload)
    except ValidationError as exc:
      fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
      raise InvalidStructuredOutput(f"Edited {content_type.value} content is invalid.", details={"fields": fields}) from exc
    artifact = await self._artifacts.upsert_artifact(sermon_id, content_type, payload_to_storage(validated))
    logger.info("Owner %s edited %s for sermon %s", owner_id, content_type.value, sermon_id)
    return artifact

  async def get_usage(self, owner_id: str) -> AdmissionDecision:
    return await self._quotas.check_admission(owner_id)

  async def _dispatch(self, record: JobRecord) -> None:
    try:
      await self._enqueuer.enqueue(record.job_id)
    except Exception as exc:
      logger.error("Failed to dispatch job %s: %s", record.job_id, exc, exc_info=True)
      await self._jobs.update_job(record.job_id, status="error", error_kind="dispatch_failed", error_message=str(exc))
      raise
    logger.info("Dispatched %s job %s for sermon %s", record.job_kind, record.job_id, record.sermon_id)

  async def _undo_start(self, record: JobRecord, sermon: SermonRecord, counter: UsageCounter, *, restore_status: bool) -> None:
    """Put the sermon and the owner's quota back the way they were before an undispatched job."""
    try:
      if restore_status:
        await self._sermons.set_status(sermon.sermon_id, sermon.status, error_message=sermon.error_message)
      await self._quotas.release_job_start(record.owner_id, counter)
    except PipelineError as exc:
      logger.error("Could not roll back job %s for sermon %s: %s", record.job_id, sermon.sermon_id, exc)

  @staticmethod
  def _ticket(record: JobRecord, decision: AdmissionDecision) -> JobTicket:
    return JobTicket(job_id=record.job_id, sermon_id=record.sermon_id, job_kind=record.job_kind, content_types=list(record.content_types), status=record.status, warning=decision.warning)
