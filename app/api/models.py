"""Request and response models for the sermon HTTP surface."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr

from app.jobs.models import ArtifactRecord, ContentType, JobKind, JobStatus, SermonRecord, SermonStatus
from app.services.jobs import JobTicket
from app.services.quotas import AdmissionDecision


class ProcessSermonRequest(BaseModel):
  """Request payload for starting a full processing job."""

  skip_transcription: StrictBool = Field(default=False, description="Reuse the stored transcript instead of transcribing the media again.")
  model_config = ConfigDict(extra="forbid")


class JobTicketResponse(BaseModel):
  """Acknowledgement for a dispatched job."""

  job_id: StrictStr
  sermon_id: StrictStr
  job_kind: JobKind
  content_types: list[ContentType] = Field(default_factory=list)
  status: JobStatus = "queued"
  warning: StrictStr | None = Field(default=None, description="Quota warning to surface to the owner, if any.")

  @classmethod
  def from_ticket(cls, ticket: JobTicket) -> JobTicketResponse:
    return cls(job_id=ticket.job_id, sermon_id=ticket.sermon_id, job_kind=ticket.job_kind, content_types=ticket.content_types, status=ticket.status, warning=ticket.warning)


class SermonResponse(BaseModel):
  """Sermon row as exposed to its owner."""

  sermon_id: StrictStr
  title: StrictStr | None = None
  status: SermonStatus
  has_transcript: bool = False
  transcript: StrictStr | None = None
  error_message: StrictStr | None = None
  created_at: datetime | None = None
  updated_at: datetime | None = None

  @classmethod
  def from_record(cls, record: SermonRecord) -> SermonResponse:
    return cls(
      sermon_id=record.sermon_id,
      title=record.title,
      status=record.status,
      has_transcript=bool(record.transcript),
      transcript=record.transcript,
      error_message=record.error_message,
      created_at=record.created_at,
      updated_at=record.updated_at,
    )


class ArtifactResponse(BaseModel):
  """One generated content artifact."""

  sermon_id: StrictStr
  content_type: ContentType
  content: dict[str, Any]
  created_at: datetime | None = None
  updated_at: datetime | None = None

  @classmethod
  def from_record(cls, record: ArtifactRecord) -> ArtifactResponse:
    return cls(sermon_id=record.sermon_id, content_type=record.content_type, content=record.payload, created_at=record.created_at, updated_at=record.updated_at)


class ArtifactListResponse(BaseModel):
  """All artifacts stored for a sermon."""

  sermon_id: StrictStr
  items: list[ArtifactResponse] = Field(default_factory=list)


class ArtifactUpdateRequest(BaseModel):
  """Owner edit of a generated artifact."""

  content: dict[str, Any] = Field(description="Full replacement payload in the generation shape for this content type.")
  model_config = ConfigDict(extra="forbid")


class UsageResponse(BaseModel):
  """Admission snapshot for the calling owner."""

  allowed: bool
  current: int = Field(ge=0)
  limit: int
  is_unlimited: bool
  is_trial: bool
  plan_id: StrictStr | None = None
  plan_name: StrictStr
  subscription_status: StrictStr | None = None
  remaining: int
  percent_used: float
  days_remaining: int
  trial_days_remaining: int = 0
  period_start: date
  period_end: date
  reason: StrictStr | None = None
  reason_code: StrictStr | None = None
  warning: StrictStr | None = None

  @classmethod
  def from_decision(cls, decision: AdmissionDecision) -> UsageResponse:
    return cls(
      allowed=decision.allowed,
      current=decision.current,
      limit=decision.limit,
      is_unlimited=decision.is_unlimited,
      is_trial=decision.is_trial,
      plan_id=decision.plan_id,
      plan_name=decision.plan_name,
      subscription_status=decision.subscription_status,
      remaining=decision.remaining,
      percent_used=decision.percent_used,
      days_remaining=decision.days_remaining,
      trial_days_remaining=decision.trial_days_remaining,
      period_start=decision.period_start,
      period_end=decision.period_end,
      reason=decision.reason,
      reason_code=decision.reason_code,
      warning=decision.warning,
    )


class TaskPayload(BaseModel):
  """Body posted by the task dispatcher to the worker endpoint."""

  job_id: StrictStr = Field(min_length=1)
