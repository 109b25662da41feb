"""Pipeline error taxonomy shared by the job service, orchestrator, and API handlers."""

from __future__ import annotations

from typing import Any


class PipelineError(RuntimeError):
  """Base class for failures the sermon pipeline knows how to classify."""

  kind = "pipeline_error"
  # Whether the orchestrator may retry the failing step.
  transient = False

  def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.details = details or {}

  def to_dict(self) -> dict[str, Any]:
    """Serialize the failure for job rows and API payloads."""
    return {"kind": self.kind, "message": self.message}


class SermonNotFound(PipelineError):
  """Raised when a sermon does not exist or belongs to another owner."""

  kind = "sermon_not_found"


class TranscriptMissing(PipelineError):
  """Raised when single-type generation is requested before a transcript exists."""

  kind = "transcript_missing"


class AdmissionDenied(PipelineError):
  """Raised when quota or subscription state blocks a new job."""

  kind = "admission_denied"

  def __init__(self, message: str, *, reason_code: str, decision: Any | None = None) -> None:
    super().__init__(message, details={"reason_code": reason_code})
    self.reason_code = reason_code
    self.decision = decision


class SourceUnavailable(PipelineError):
  """Raised when no usable media reference exists or the media cannot be fetched."""

  kind = "source_unavailable"


class TranscriptionFailed(PipelineError):
  """Raised when the speech-to-text service reports a permanent failure."""

  kind = "transcription_failed"


class TranscriptTooShort(PipelineError):
  """Raised when a transcript is too short to drive content generation."""

  kind = "transcript_too_short"

  def __init__(self, length: int, minimum: int) -> None:
    super().__init__(f"Transcript is too short ({length} characters, minimum {minimum}).", details={"length": length, "minimum": minimum})
    self.length = length
    self.minimum = minimum


class TransientStepFailure(PipelineError):
  """Raised for network errors, timeouts, and rate limits worth retrying."""

  kind = "transient_step_failure"
  transient = True


class NoStructuredOutput(PipelineError):
  """Raised when model output contains no structured object at all."""

  kind = "no_structured_output"


class InvalidStructuredOutput(PipelineError):
  """Raised when model output cannot be parsed or validated even after repair."""

  kind = "invalid_structured_output"


class PersistenceFailure(PipelineError):
  """Raised when a datastore read or write fails."""

  kind = "persistence_failure"

  def __init__(self, message: str, *, operation: str, category: str = "unknown_error", sqlstate: str | None = None, retryable: bool = True) -> None:
    super().__init__(message, details={"operation": operation, "category": category, "sqlstate": sqlstate})
    self.operation = operation
    self.category = category
    self.sqlstate = sqlstate
    # Permanent database errors (integrity, schema) are not worth retrying.
    self.transient = retryable


class ArtifactNotFound(PipelineError):
  """Raised when a sermon has no artifact of the requested content type."""

  kind = "artifact_not_found"
