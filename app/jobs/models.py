"""Domain models for sermons, generated artifacts, and processing jobs."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

JobStatus = Literal["queued", "running", "complete", "error"]
JobKind = Literal["full", "single"]
StepState = Literal["succeeded", "failed"]


class SermonStatus(str, enum.Enum):
  """Lifecycle states of a sermon while the pipeline owns it."""

  UPLOADING = "uploading"
  PROCESSING = "processing"
  TRANSCRIBING = "transcribing"
  GENERATING = "generating"
  COMPLETE = "complete"
  ERROR = "error"

  @property
  def is_terminal(self) -> bool:
    return self in {SermonStatus.COMPLETE, SermonStatus.ERROR}


class ContentType(str, enum.Enum):
  """Derivative content packages generated for each sermon."""

  SERMON_NOTES = "sermon_notes"
  DEVOTIONAL = "devotional"
  DISCUSSION_GUIDE = "discussion_guide"
  SOCIAL_MEDIA = "social_media"


# Content types produced by a full fan-out, in display order.
FANOUT_CONTENT_TYPES: tuple[ContentType, ...] = (ContentType.SERMON_NOTES, ContentType.DEVOTIONAL, ContentType.DISCUSSION_GUIDE, ContentType.SOCIAL_MEDIA)

# Allowed status transitions; terminal states may only be re-entered by a new job.
ALLOWED_TRANSITIONS: dict[SermonStatus, frozenset[SermonStatus]] = {
  SermonStatus.UPLOADING: frozenset({SermonStatus.PROCESSING, SermonStatus.TRANSCRIBING, SermonStatus.GENERATING, SermonStatus.ERROR}),
  SermonStatus.PROCESSING: frozenset({SermonStatus.TRANSCRIBING, SermonStatus.GENERATING, SermonStatus.ERROR}),
  SermonStatus.TRANSCRIBING: frozenset({SermonStatus.GENERATING, SermonStatus.ERROR}),
  SermonStatus.GENERATING: frozenset({SermonStatus.COMPLETE, SermonStatus.ERROR}),
  SermonStatus.COMPLETE: frozenset({SermonStatus.PROCESSING, SermonStatus.GENERATING}),
  SermonStatus.ERROR: frozenset({SermonStatus.PROCESSING, SermonStatus.GENERATING}),
}


def can_transition(current: SermonStatus, target: SermonStatus) -> bool:
  """Return True when the state machine allows moving from current to target."""
  # Replays re-write the same state, which is always safe.
  if current == target:
    return True
  return target in ALLOWED_TRANSITIONS[current]


@dataclass
class SermonRecord:
  """Sermon row as seen by the pipeline."""

  sermon_id: str
  owner_id: str
  status: SermonStatus
  title: str | None = None
  transcript: str | None = None
  audio_url: str | None = None
  video_url: str | None = None
  youtube_url: str | None = None
  document_url: str | None = None
  error_message: str | None = None
  owner_email: str | None = None
  created_at: datetime | None = None
  updated_at: datetime | None = None

  def media_reference(self) -> str | None:
    """Return the authoritative media reference for transcription."""
    return self.audio_url or self.video_url or self.youtube_url


@dataclass
class ArtifactRecord:
  """One generated content package for a sermon."""

  sermon_id: str
  content_type: ContentType
  payload: dict[str, Any]
  created_at: datetime | None = None
  updated_at: datetime | None = None


@dataclass
class JobRecord:
  """Represents one processing attempt for a sermon."""

  job_id: str
  sermon_id: str
  owner_id: str
  job_kind: JobKind
  content_types: list[ContentType]
  status: JobStatus
  skip_transcription: bool = False
  success_map: dict[str, bool] | None = None
  error_kind: str | None = None
  error_message: str | None = None
  created_at: datetime | None = None
  updated_at: datetime | None = None
  completed_at: datetime | None = None


@dataclass
class StepRecord:
  """Ledger entry for a single durable step of a job."""

  job_id: str
  step_name: str
  state: StepState
  attempt_count: int
  last_error: str | None = None


@dataclass(frozen=True)
class TaskOutcome:
  """Settled result of one generation task."""

  content_type: ContentType
  succeeded: bool
  error_kind: str | None = None
  error_message: str | None = None
  attempts: int = 0
  replayed: bool = False


@dataclass
class JobOutcome:
  """Final result of a job run."""

  job_id: str
  sermon_id: str
  status: SermonStatus
  outcomes: list[TaskOutcome] = field(default_factory=list)
  error_kind: str | None = None
  error_message: str | None = None

  @property
  def success_map(self) -> dict[str, bool]:
    return {outcome.content_type.value: outcome.succeeded for outcome in self.outcomes}
