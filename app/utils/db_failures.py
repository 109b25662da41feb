"""Database failure classification and conversion into PersistenceFailure."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError

from app.core.errors import PersistenceFailure

logger = logging.getLogger(__name__)

_INTEGRITY_VIOLATIONS = {
  "23000": "integrity constraint violation",
  "23001": "restrict violation",
  "23502": "not null violation",
  "23503": "foreign key violation",
  "23505": "unique violation",
  "23514": "check constraint violation",
  "23P01": "exclusion constraint violation",
}

_CONNECTIVITY_MARKERS = ("connection", "timeout", "reset", "network", "broken pipe", "lost connection")


@dataclass(frozen=True)
class DBFailureClassification:
  """Classification result for a database failure."""

  retryable: bool
  reason: str
  sqlstate: str | None
  category: str


def _extract_sqlstate(exc: Exception) -> str | None:
  """Extract Postgres SQLSTATE from SQLAlchemy exception."""
  if isinstance(exc, DBAPIError) and exc.orig is not None:
    # asyncpg exposes sqlstate; psycopg exposes pgcode.
    for attr in ("sqlstate", "pgcode"):
      value = getattr(exc.orig, attr, None)
      if value:
        return str(value)
  return None


def classify_db_failure(exc: Exception) -> DBFailureClassification:
  """
  Classify database failure as retryable or non-retryable.

  Primary signal: Postgres SQLSTATE
  Fallback: Exception type and message patterns

  Retryable (transient): serialization failures (40001), deadlocks (40P01),
  connection drops and resets.
  Non-retryable (permanent): integrity violations (23xxx), schema errors (42xxx),
  permission errors (28xxx), lock/statement timeouts, programming errors.
  """
  sqlstate = _extract_sqlstate(exc)

  if sqlstate == "40001":
    return DBFailureClassification(retryable=True, reason="Serialization failure - transaction conflict", sqlstate=sqlstate, category="serialization_conflict")

  if sqlstate == "40P01":
    return DBFailureClassification(retryable=True, reason="Deadlock detected", sqlstate=sqlstate, category="deadlock")

  if sqlstate == "55P03":
    return DBFailureClassification(retryable=False, reason="Lock not available (NOWAIT)", sqlstate=sqlstate, category="lock_timeout")

  if sqlstate == "57014":
    return DBFailureClassification(retryable=False, reason="Query canceled (timeout)", sqlstate=sqlstate, category="query_timeout")

  if sqlstate and sqlstate.startswith("23"):
    specific = _INTEGRITY_VIOLATIONS.get(sqlstate, "integrity constraint violation")
    return DBFailureClassification(retryable=False, reason=f"Integrity violation: {specific}", sqlstate=sqlstate, category="integrity_error")

  if sqlstate and sqlstate.startswith("42"):
    return DBFailureClassification(retryable=False, reason="Schema/SQL error (undefined table/column, syntax error)", sqlstate=sqlstate, category="schema_error")

  if sqlstate and sqlstate.startswith("28"):
    return DBFailureClassification(retryable=False, reason="Authentication/permission error", sqlstate=sqlstate, category="permission_error")

  if isinstance(exc, IntegrityError):
    return DBFailureClassification(retryable=False, reason="Integrity constraint violation (detected by exception type)", sqlstate=sqlstate, category="integrity_error")

  if isinstance(exc, OperationalError):
    error_msg = str(exc).lower()
    if any(pattern in error_msg for pattern in _CONNECTIVITY_MARKERS):
      return DBFailureClassification(retryable=True, reason="Transient connection/network error", sqlstate=sqlstate, category="connectivity_error")
    return DBFailureClassification(retryable=False, reason="Operational error (unknown cause)", sqlstate=sqlstate, category="operational_error_unknown")

  # Driver-level connection errors surface as OSError subclasses before SQLAlchemy wraps them.
  if isinstance(exc, ConnectionError | TimeoutError):
    return DBFailureClassification(retryable=True, reason=f"Connection error: {type(exc).__name__}", sqlstate=sqlstate, category="connectivity_error")

  return DBFailureClassification(retryable=False, reason=f"Unknown error type: {type(exc).__name__}", sqlstate=sqlstate, category="unknown_error")


@asynccontextmanager
async def persistence_guard(operation: str) -> AsyncIterator[None]:
  """Convert database errors raised inside the block into PersistenceFailure."""
  try:
    yield
  except (SQLAlchemyError, ConnectionError, TimeoutError) as exc:
    classification = classify_db_failure(exc)
    logger.warning(
      "DB operation failed: operation=%s, category=%s, sqlstate=%s, retryable=%s, reason=%s",
      operation,
      classification.category,
      classification.sqlstate or "none",
      classification.retryable,
      classification.reason,
      exc_info=(not classification.retryable),
    )
    raise PersistenceFailure(f"{operation} failed: {classification.reason}", operation=operation, category=classification.category, sqlstate=classification.sqlstate, retryable=classification.retryable) from exc
