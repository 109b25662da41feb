"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_SUPPORTED_LLM_PROVIDERS = {"gemini", "openrouter"}
_SUPPORTED_TASK_PROVIDERS = {"inline", "local-http", "gcp"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the sermon content service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  llm_provider: str
  llm_model: str | None
  gemini_api_key: str | None
  openrouter_api_key: str | None
  openrouter_base_url: str
  llm_request_timeout_seconds: float
  step_max_attempts: int
  step_initial_backoff_ms: int
  step_max_backoff_ms: int
  min_transcript_chars: int
  transcription_base_url: str
  transcription_api_key: str | None
  transcription_timeout_seconds: float
  transcription_poll_interval_seconds: float
  transcription_poll_deadline_seconds: float
  task_service_provider: str
  base_url: str | None
  task_secret: str | None
  cloud_tasks_queue_path: str | None
  cloud_run_invoker_service_account: str | None
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  email_notifications_enabled: bool
  email_from_address: str | None
  email_from_name: str | None
  mailersend_api_key: str | None
  mailersend_timeout_seconds: int
  mailersend_base_url: str
  app_base_url: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("SERMON_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("SERMON_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("SERMON_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("SERMON_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("SERMON_DEBUG"))

  log_max_bytes = _positive_int("SERMON_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("SERMON_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SERMON_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("SERMON_LOG_HTTP_4XX"))

  llm_provider = (os.getenv("SERMON_LLM_PROVIDER") or "gemini").strip().lower()
  if llm_provider not in _SUPPORTED_LLM_PROVIDERS:
    raise ValueError(f"SERMON_LLM_PROVIDER must be one of {sorted(_SUPPORTED_LLM_PROVIDERS)}.")

  step_max_attempts = _positive_int("SERMON_STEP_MAX_ATTEMPTS", "3")
  step_initial_backoff_ms = _positive_int("SERMON_STEP_INITIAL_BACKOFF_MS", "1000")
  step_max_backoff_ms = _positive_int("SERMON_STEP_MAX_BACKOFF_MS", "20000")
  if step_max_backoff_ms < step_initial_backoff_ms:
    raise ValueError("SERMON_STEP_MAX_BACKOFF_MS must be greater than or equal to SERMON_STEP_INITIAL_BACKOFF_MS.")

  min_transcript_chars = _positive_int("SERMON_MIN_TRANSCRIPT_CHARS", "100")

  task_service_provider = (os.getenv("SERMON_TASK_SERVICE_PROVIDER") or "inline").strip().lower()
  if task_service_provider not in _SUPPORTED_TASK_PROVIDERS:
    raise ValueError(f"SERMON_TASK_SERVICE_PROVIDER must be one of {sorted(_SUPPORTED_TASK_PROVIDERS)}.")

  email_notifications_enabled = _parse_bool(os.getenv("SERMON_EMAIL_NOTIFICATIONS_ENABLED"))
  email_from_address = _optional_str(os.getenv("SERMON_EMAIL_FROM_ADDRESS"))
  mailersend_api_key = _optional_str(os.getenv("SERMON_MAILERSEND_API_KEY"))
  mailersend_timeout_seconds = int(os.getenv("SERMON_MAILERSEND_TIMEOUT_SECONDS", "10"))

  # Validate notification settings only when notifications are enabled.
  if email_notifications_enabled:
    if not email_from_address:
      raise ValueError("SERMON_EMAIL_FROM_ADDRESS must be set when email notifications are enabled.")

    if not mailersend_api_key:
      raise ValueError("SERMON_MAILERSEND_API_KEY must be set when email notifications are enabled.")

    if mailersend_timeout_seconds <= 0:
      raise ValueError("SERMON_MAILERSEND_TIMEOUT_SECONDS must be a positive integer.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("SERMON_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    pg_dsn=os.getenv("SERMON_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("SERMON_PG_CONNECT_TIMEOUT", "5"),
    llm_provider=llm_provider,
    llm_model=_optional_str(os.getenv("SERMON_LLM_MODEL")),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    openrouter_api_key=_optional_str(os.getenv("OPENROUTER_API_KEY")),
    openrouter_base_url=(os.getenv("OPENROUTER_BASE_URL") or "https://openrouter.ai/api/v1").strip(),
    llm_request_timeout_seconds=_positive_float("SERMON_LLM_REQUEST_TIMEOUT_SECONDS", "120"),
    step_max_attempts=step_max_attempts,
    step_initial_backoff_ms=step_initial_backoff_ms,
    step_max_backoff_ms=step_max_backoff_ms,
    min_transcript_chars=min_transcript_chars,
    transcription_base_url=(os.getenv("SERMON_TRANSCRIPTION_BASE_URL") or "https://api.assemblyai.com/v2").strip(),
    transcription_api_key=_optional_str(os.getenv("ASSEMBLYAI_API_KEY")),
    transcription_timeout_seconds=_positive_float("SERMON_TRANSCRIPTION_TIMEOUT_SECONDS", "30"),
    transcription_poll_interval_seconds=_positive_float("SERMON_TRANSCRIPTION_POLL_INTERVAL_SECONDS", "3"),
    transcription_poll_deadline_seconds=_positive_float("SERMON_TRANSCRIPTION_POLL_DEADLINE_SECONDS", "1800"),
    task_service_provider=task_service_provider,
    base_url=_optional_str(os.getenv("SERMON_BASE_URL")),
    task_secret=_optional_str(os.getenv("SERMON_TASK_SECRET")),
    cloud_tasks_queue_path=_optional_str(os.getenv("SERMON_CLOUD_TASKS_QUEUE_PATH")),
    cloud_run_invoker_service_account=_optional_str(os.getenv("SERMON_CLOUD_RUN_INVOKER_SERVICE_ACCOUNT")),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    email_notifications_enabled=email_notifications_enabled,
    email_from_address=email_from_address,
    email_from_name=_optional_str(os.getenv("SERMON_EMAIL_FROM_NAME")),
    mailersend_api_key=mailersend_api_key,
    mailersend_timeout_seconds=mailersend_timeout_seconds,
    mailersend_base_url=(os.getenv("SERMON_MAILERSEND_BASE_URL") or "https://api.mailersend.com/v1").strip(),
    app_base_url=_optional_str(os.getenv("SERMON_APP_BASE_URL")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations and offline scripts don't require unrelated env vars.
  debug = _parse_bool(os.getenv("SERMON_DEBUG"))
  pg_connect_timeout = int(os.getenv("SERMON_PG_CONNECT_TIMEOUT", "5"))
  if pg_connect_timeout <= 0:
    raise ValueError("SERMON_PG_CONNECT_TIMEOUT must be a positive integer.")

  pg_dsn = os.getenv("SERMON_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
