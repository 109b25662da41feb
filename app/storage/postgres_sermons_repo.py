"""Postgres-backed repositories for sermons, artifacts, and jobs using SQLAlchemy."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_session_factory
from app.jobs.models import ArtifactRecord, ContentType, JobRecord, JobStatus, SermonRecord, SermonStatus, StepRecord, StepState
from app.schema.sermons import GeneratedContent, Sermon, SermonJob, SermonJobStep
from app.storage.sermons_repo import ArtifactsRepository, JobsRepository, SermonsRepository
from app.utils.db_failures import persistence_guard


def _as_uuid(value: str) -> uuid.UUID | None:
  try:
    return uuid.UUID(str(value))
  except ValueError:
    return None


class PostgresSermonsRepository(SermonsRepository):
  """Persist sermon status and transcript to Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()

  async def get_sermon(self, sermon_id: str) -> SermonRecord | None:
    key = _as_uuid(sermon_id)
    if key is None:
      return None
    async with persistence_guard("get_sermon"), self._session_factory() as session:
      row = await session.get(Sermon, key)
      if row is None:
        return None
      return _sermon_to_record(row)

  async def set_status(self, sermon_id: str, status: SermonStatus, *, error_message: str | None = None) -> None:
    stored_error = error_message if status == SermonStatus.ERROR else None
    async with persistence_guard("set_status"), self._session_factory() as session:
      stmt = update(Sermon).where(Sermon.id == uuid.UUID(sermon_id)).values(status=status, error_message=stored_error)
      await session.execute(stmt)
      await session.commit()

  async def set_transcript_if_absent(self, sermon_id: str, transcript: str) -> str:
    async with persistence_guard("set_transcript"), self._session_factory() as session:
      # Conditional update keeps the first transcript when a replayed step races the original.
      stmt = update(Sermon).where(Sermon.id == uuid.UUID(sermon_id), Sermon.transcript.is_(None)).values(transcript=transcript)
      await session.execute(stmt)
      await session.commit()
      stored = (await session.execute(select(Sermon.transcript).where(Sermon.id == uuid.UUID(sermon_id)))).scalar_one()
      return stored or transcript


class PostgresArtifactsRepository(ArtifactsRepository):
  """Persist generated content with upsert semantics."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()

  async def upsert_artifact(self, sermon_id: str, content_type: ContentType, payload: dict[str, Any]) -> ArtifactRecord:
    async with persistence_guard("upsert_artifact"), self._session_factory() as session:
      stmt = pg_insert(GeneratedContent).values(id=uuid.uuid4(), sermon_id=uuid.UUID(sermon_id), content_type=content_type, content=payload)
      stmt = stmt.on_conflict_do_update(constraint="ux_generated_content_sermon_type", set_={"content": stmt.excluded.content, "updated_at": datetime.now(UTC)})
      stmt = stmt.returning(GeneratedContent)
      row = (await session.execute(stmt)).scalar_one()
      await session.commit()
      return _artifact_to_record(row)

  async def get_artifacts(self, sermon_id: str) -> list[ArtifactRecord]:
    key = _as_uuid(sermon_id)
    if key is None:
      return []
    async with persistence_guard("get_artifacts"), self._session_factory() as session:
      stmt = select(GeneratedContent).where(GeneratedContent.sermon_id == key).order_by(GeneratedContent.created_at.asc())
      rows = (await session.execute(stmt)).scalars().all()
      return [_artifact_to_record(row) for row in rows]

  async def get_artifact(self, sermon_id: str, content_type: ContentType) -> ArtifactRecord | None:
    key = _as_uuid(sermon_id)
    if key is None:
      return None
    async with persistence_guard("get_artifact"), self._session_factory() as session:
      stmt = select(GeneratedContent).where(GeneratedContent.sermon_id == key, GeneratedContent.content_type == content_type).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      return _artifact_to_record(row) if row is not None else None


class PostgresJobsRepository(JobsRepository):
  """Persist jobs and their step ledger to Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()

  async def create_job(self, record: JobRecord) -> None:
    async with persistence_guard("create_job"), self._session_factory() as session:
      job = SermonJob(
        job_id=record.job_id,
        sermon_id=uuid.UUID(record.sermon_id),
        user_id=record.owner_id,
        job_kind=record.job_kind,
        content_types=[content_type.value for content_type in record.content_types],
        skip_transcription=record.skip_transcription,
        status=record.status,
      )
      session.add(job)
      await session.commit()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with persistence_guard("get_job"), self._session_factory() as session:
      row = await session.get(SermonJob, job_id)
      if row is None:
        return None
      return _job_to_record(row)

  async def update_job(self, job_id: str, *, status: JobStatus, success_map: dict[str, bool] | None = None, error_kind: str | None = None, error_message: str | None = None) -> None:
    values: dict[str, Any] = {"status": status}
    if success_map is not None:
      values["success_map"] = success_map
    if error_kind is not None:
      values["error_kind"] = error_kind
      values["error_message"] = error_message
    if status in {"complete", "error"}:
      values["completed_at"] = datetime.now(UTC)
    async with persistence_guard("update_job"), self._session_factory() as session:
      await session.execute(update(SermonJob).where(SermonJob.job_id == job_id).values(**values))
      await session.commit()

  async def record_step(self, job_id: str, step_name: str, *, state: StepState, attempt_count: int, last_error: str | None = None) -> None:
    async with persistence_guard("record_step"), self._session_factory() as session:
      stmt = pg_insert(SermonJobStep).values(job_id=job_id, step_name=step_name, state=state, attempt_count=attempt_count, last_error=last_error)
      stmt = stmt.on_conflict_do_update(index_elements=["job_id", "step_name"], set_={"state": state, "attempt_count": attempt_count, "last_error": last_error, "updated_at": datetime.now(UTC)})
      await session.execute(stmt)
      await session.commit()

  async def list_steps(self, job_id: str) -> list[StepRecord]:
    async with persistence_guard("list_steps"), self._session_factory() as session:
      stmt = select(SermonJobStep).where(SermonJobStep.job_id == job_id).order_by(SermonJobStep.id.asc())
      rows = (await session.execute(stmt)).scalars().all()
      return [StepRecord(job_id=row.job_id, step_name=row.step_name, state=row.state, attempt_count=row.attempt_count, last_error=row.last_error) for row in rows]


def _sermon_to_record(row: Sermon) -> SermonRecord:
  return SermonRecord(
    sermon_id=str(row.id),
    owner_id=row.user_id,
    status=SermonStatus(row.status),
    title=row.title,
    transcript=row.transcript,
    audio_url=row.audio_url,
    video_url=row.video_url,
    youtube_url=row.youtube_url,
    document_url=row.document_url,
    error_message=row.error_message,
    owner_email=row.owner_email,
    created_at=row.created_at,
    updated_at=row.updated_at,
  )


def _artifact_to_record(row: GeneratedContent) -> ArtifactRecord:
  return ArtifactRecord(sermon_id=str(row.sermon_id), content_type=ContentType(row.content_type), payload=dict(row.content), created_at=row.created_at, updated_at=row.updated_at)


def _job_to_record(row: SermonJob) -> JobRecord:
  return JobRecord(
    job_id=row.job_id,
    sermon_id=str(row.sermon_id),
    owner_id=row.user_id,
    job_kind=row.job_kind,
    content_types=[ContentType(value) for value in row.content_types],
    status=row.status,
    skip_transcription=row.skip_transcription,
    success_map=row.success_map,
    error_kind=row.error_kind,
    error_message=row.error_message,
    created_at=row.created_at,
    updated_at=row.updated_at,
    completed_at=row.completed_at,
  )
