"""Bounded retry with exponential backoff for durable pipeline steps."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

from app.core.errors import PipelineError

T = TypeVar("T")
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
  """Retry bounds for one step; max_attempts counts the first try."""

  max_attempts: int = 3
  initial_backoff_ms: int = 1000
  max_backoff_ms: int = 20000
  jitter: bool = True

  def backoff_seconds(self, attempt: int) -> float:
    """Return the delay after a failed attempt (1-based)."""
    backoff_ms = min(self.initial_backoff_ms * (2 ** (attempt - 1)), self.max_backoff_ms)
    if self.jitter:
      # Add +/-25% jitter so concurrent tasks do not retry in lockstep.
      jitter_range = backoff_ms * 0.25
      backoff_ms += random.uniform(-jitter_range, jitter_range)
    return max(backoff_ms, 0) / 1000.0


class StepRetriesExhausted(Exception):
  """Raised when a transient failure outlives the retry budget."""

  def __init__(self, step_name: str, attempts: int, last_error: BaseException) -> None:
    super().__init__(f"Step {step_name} failed after {attempts} attempts: {last_error}")
    self.step_name = step_name
    self.attempts = attempts
    self.last_error = last_error


def is_transient_failure(exc: BaseException) -> bool:
  """Classify an exception as worth retrying."""
  if isinstance(exc, PipelineError):
    return exc.transient
  # Raw network errors escaping a client are transient by definition.
  return isinstance(exc, TimeoutError | httpx.TimeoutException | httpx.TransportError)


async def retry_step(*, job_id: str, step_name: str, func: Callable[[], Awaitable[T]], policy: RetryPolicy, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> tuple[T, int]:
  """Run a step, retrying transient failures, and return (result, attempts).

  Non-transient failures propagate immediately. When the budget runs out the last
  transient error is wrapped in StepRetriesExhausted so the caller can escalate it
  into the step's terminal category.
  """
  attempt = 0
  while True:
    attempt += 1
    try:
      result = await func()
    except Exception as exc:
      if not is_transient_failure(exc):
        logger.warning("Step failed with terminal error: job_id=%s, step=%s, attempt=%d/%d, error_type=%s, error=%s", job_id, step_name, attempt, policy.max_attempts, type(exc).__name__, exc)
        raise

      if attempt >= policy.max_attempts:
        logger.error("Step failed after %d attempts: job_id=%s, step=%s, error_type=%s - giving up", attempt, job_id, step_name, type(exc).__name__)
        raise StepRetriesExhausted(step_name, attempt, exc) from exc

      delay = policy.backoff_seconds(attempt)
      logger.warning("Transient step failure: job_id=%s, step=%s, attempt=%d/%d, backoff_s=%.2f, error=%s", job_id, step_name, attempt, policy.max_attempts, delay, exc)
      await sleep(delay)
      continue

    if attempt > 1:
      logger.info("Step succeeded after retry: job_id=%s, step=%s, attempt=%d/%d", job_id, step_name, attempt, policy.max_attempts)
    return result, attempt
