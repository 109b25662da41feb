"""Storage interfaces for sermons, generated artifacts, and processing jobs."""

from __future__ import annotations

from typing import Any, Protocol

from app.jobs.models import ArtifactRecord, ContentType, JobRecord, JobStatus, SermonRecord, SermonStatus, StepRecord, StepState


class SermonsRepository(Protocol):
  """Sermon reads plus the writes reserved for the orchestrator."""

  async def get_sermon(self, sermon_id: str) -> SermonRecord | None:
    """Fetch a sermon by identifier."""

  async def set_status(self, sermon_id: str, status: SermonStatus, *, error_message: str | None = None) -> None:
    """Write a status transition; a non-error status clears error_message."""

  async def set_transcript_if_absent(self, sermon_id: str, transcript: str) -> str:
    """Store the transcript unless one exists and return the stored value."""


class ArtifactsRepository(Protocol):
  """Generated content keyed by (sermon, content_type)."""

  async def upsert_artifact(self, sermon_id: str, content_type: ContentType, payload: dict[str, Any]) -> ArtifactRecord:
    """Insert or replace the artifact; last write wins."""

  async def get_artifacts(self, sermon_id: str) -> list[ArtifactRecord]:
    """Return all artifacts for a sermon."""

  async def get_artifact(self, sermon_id: str, content_type: ContentType) -> ArtifactRecord | None:
    """Return one artifact or None."""


class JobsRepository(Protocol):
  """Job rows and the per-step ledger used for replay."""

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def update_job(self, job_id: str, *, status: JobStatus, success_map: dict[str, bool] | None = None, error_kind: str | None = None, error_message: str | None = None) -> None:
    """Update job status and results."""

  async def record_step(self, job_id: str, step_name: str, *, state: StepState, attempt_count: int, last_error: str | None = None) -> None:
    """Insert or update the ledger entry for (job_id, step_name)."""

  async def list_steps(self, job_id: str) -> list[StepRecord]:
    """Return all ledger entries for a job."""
