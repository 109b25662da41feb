"""SQLAlchemy models for sermons, generated content, and processing jobs."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.jobs.models import ContentType, SermonStatus


class Sermon(Base):
  __tablename__ = "sermons"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title: Mapped[str | None] = mapped_column(String, nullable=True)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  preacher_name: Mapped[str | None] = mapped_column(String, nullable=True)
  scripture_reference: Mapped[str | None] = mapped_column(String, nullable=True)
  sermon_date: Mapped[date | None] = mapped_column(Date, nullable=True)
  # Schema migrations own enum lifecycle; avoid create_all races attempting to re-create the type.
  status: Mapped[SermonStatus] = mapped_column(ENUM(SermonStatus, name="sermon_status", values_callable=lambda enum_cls: [item.value for item in enum_cls], create_type=False), nullable=False, default=SermonStatus.UPLOADING)
  transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  audio_url: Mapped[str | None] = mapped_column(String, nullable=True)
  video_url: Mapped[str | None] = mapped_column(String, nullable=True)
  youtube_url: Mapped[str | None] = mapped_column(String, nullable=True)
  document_url: Mapped[str | None] = mapped_column(String, nullable=True)
  owner_email: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class GeneratedContent(Base):
  __tablename__ = "generated_content"
  __table_args__ = (UniqueConstraint("sermon_id", "content_type", name="ux_generated_content_sermon_type"),)

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  sermon_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("sermons.id", ondelete="CASCADE"), nullable=False, index=True)
  content_type: Mapped[ContentType] = mapped_column(ENUM(ContentType, name="content_type", values_callable=lambda enum_cls: [item.value for item in enum_cls], create_type=False), nullable=False)
  content: Mapped[dict] = mapped_column(JSONB, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class SermonJob(Base):
  __tablename__ = "sermon_jobs"

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  sermon_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("sermons.id", ondelete="CASCADE"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  job_kind: Mapped[str] = mapped_column(String, nullable=False)
  content_types: Mapped[list] = mapped_column(JSONB, nullable=False)
  skip_transcription: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  status: Mapped[str] = mapped_column(String, nullable=False, index=True)
  success_map: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  error_kind: Mapped[str | None] = mapped_column(String, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
  completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class SermonJobStep(Base):
  __tablename__ = "sermon_job_steps"
  __table_args__ = (Index("ux_sermon_job_steps_job_step", "job_id", "step_name", unique=True),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("sermon_jobs.job_id", ondelete="CASCADE"), nullable=False, index=True)
  step_name: Mapped[str] = mapped_column(String, nullable=False)
  state: Mapped[str] = mapped_column(String, nullable=False)
  attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
