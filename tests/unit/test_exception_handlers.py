"""Unit tests for API exception sanitization and pipeline error mapping."""

from __future__ import annotations

import pytest
from app.core.errors import AdmissionDenied, ArtifactNotFound, InvalidStructuredOutput, PersistenceFailure, SermonNotFound, TranscriptMissing, TranscriptionFailed
from app.core.exceptions import _sanitize_validation_errors, pipeline_error_status


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body", "content"), "msg": "Value error, bad content.", "input": {"title": "x"}, "ctx": {"error": ValueError("bad content."), "input": {"title": "x"}}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad content."
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["loc"] == ["body", "content"]


@pytest.mark.parametrize(
  ("error", "status_code"),
  [
    (AdmissionDenied("limit", reason_code="plan_limit_reached"), 402),
    (AdmissionDenied("limit", reason_code="trial_limit_reached"), 402),
    (AdmissionDenied("inactive", reason_code="subscription_inactive"), 403),
    (AdmissionDenied("past due", reason_code="payment_failed"), 403),
    (SermonNotFound("missing"), 404),
    (ArtifactNotFound("missing"), 404),
    (TranscriptMissing("no transcript"), 409),
    (InvalidStructuredOutput("bad"), 422),
    (TranscriptionFailed("boom"), 500),
    (PersistenceFailure("db down", operation="upsert"), 500),
  ],
)
def test_pipeline_error_status(error, status_code) -> None:
  assert pipeline_error_status(error) == status_code
