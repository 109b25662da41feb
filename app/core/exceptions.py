import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import AdmissionDenied, ArtifactNotFound, InvalidStructuredOutput, PipelineError, SermonNotFound, TranscriptMissing
from app.services.quotas import INACTIVE_REASON_CODES

logger = logging.getLogger("uvicorn.error")


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(detail: Any, *, request_id: str | None = None, kind: str | None = None) -> dict[str, Any]:
  """Build a safe error payload that avoids leaking internal details to clients."""
  payload: dict[str, Any] = {"detail": detail}
  if kind:
    payload["kind"] = kind
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx
    sanitized.append(_coerce_json_safe(scrubbed))
  return sanitized


def pipeline_error_status(exc: PipelineError) -> int:
  """Map a pipeline error to its HTTP status code."""
  if isinstance(exc, AdmissionDenied):
    return status.HTTP_403_FORBIDDEN if exc.reason_code in INACTIVE_REASON_CODES else status.HTTP_402_PAYMENT_REQUIRED
  if isinstance(exc, SermonNotFound | ArtifactNotFound):
    return status.HTTP_404_NOT_FOUND
  if isinstance(exc, TranscriptMissing):
    return status.HTTP_409_CONFLICT
  if isinstance(exc, InvalidStructuredOutput):
    return status.HTTP_422_UNPROCESSABLE_ENTITY
  return status.HTTP_500_INTERNAL_SERVER_ERROR


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors for debugging without leaking payloads."""
  request_id = getattr(request.state, "request_id", None)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle FastAPI HTTPExceptions while avoiding leaking internal diagnostics."""
  from app.config import get_settings

  request_id = getattr(request.state, "request_id", None)
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  # Log 4xx HTTPExceptions when explicitly enabled for debugging.
  if get_settings().log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=getattr(exc, "headers", None))


async def pipeline_exception_handler(request: Request, exc: PipelineError) -> JSONResponse:
  """Return a structured response for classified pipeline failures."""
  request_id = getattr(request.state, "request_id", None)
  status_code = pipeline_error_status(exc)
  if status_code >= 500:
    logger.error("Pipeline failure request_id=%s path=%s kind=%s", request_id, request.url.path, exc.kind, exc_info=True)
    # Internal failures may carry prompts or provider output; keep them out of responses.
    return JSONResponse(status_code=status_code, content=_error_payload("Internal Server Error", request_id=request_id, kind=exc.kind))

  logger.info("Pipeline rejection request_id=%s path=%s kind=%s status=%s", request_id, request.url.path, exc.kind, status_code)
  payload = _error_payload(exc.message, request_id=request_id, kind=exc.kind)
  if isinstance(exc, AdmissionDenied):
    payload["reasonCode"] = exc.reason_code
  if isinstance(exc, InvalidStructuredOutput) and exc.details.get("fields"):
    payload["fields"] = _coerce_json_safe(exc.details["fields"])
  return JSONResponse(status_code=status_code, content=payload)
