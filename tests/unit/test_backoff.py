from __future__ import annotations

import httpx
import pytest
from app.ai.backoff import RetryPolicy, StepRetriesExhausted, is_transient_failure, retry_step
from app.core.errors import InvalidStructuredOutput, PersistenceFailure, TransientStepFailure


class Flaky:
  def __init__(self, *outcomes):
    self._outcomes = list(outcomes)
    self.calls = 0

  async def __call__(self):
    self.calls += 1
    item = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
    if isinstance(item, BaseException):
      raise item
    return item


@pytest.mark.anyio
async def test_retry_step_succeeds_after_transient_failures(retry_policy, sleep):
  func = Flaky(TransientStepFailure("503"), TransientStepFailure("503"), "ok")
  result, attempts = await retry_step(job_id="job-1", step_name="generate:devotional", func=func, policy=retry_policy, sleep=sleep)
  assert result == "ok"
  assert attempts == 3
  assert sleep.delays == [0.1, 0.2]


@pytest.mark.anyio
async def test_retry_step_gives_up_after_max_attempts(retry_policy, sleep):
  func = Flaky(httpx.ConnectError("refused"))
  with pytest.raises(StepRetriesExhausted) as exc_info:
    await retry_step(job_id="job-1", step_name="transcribe", func=func, policy=retry_policy, sleep=sleep)
  assert exc_info.value.attempts == 3
  assert isinstance(exc_info.value.last_error, httpx.ConnectError)
  assert func.calls == 3


@pytest.mark.anyio
async def test_terminal_errors_are_not_retried(retry_policy, sleep):
  func = Flaky(InvalidStructuredOutput("bad json"))
  with pytest.raises(InvalidStructuredOutput):
    await retry_step(job_id="job-1", step_name="generate:social_media", func=func, policy=retry_policy, sleep=sleep)
  assert func.calls == 1
  assert sleep.delays == []


def test_transient_classification():
  assert is_transient_failure(TransientStepFailure("429"))
  assert is_transient_failure(httpx.ReadTimeout("slow"))
  assert is_transient_failure(TimeoutError())
  assert is_transient_failure(PersistenceFailure("connection reset", operation="upsert"))
  assert not is_transient_failure(PersistenceFailure("unique violation", operation="upsert", retryable=False))
  assert not is_transient_failure(ValueError("boom"))


def test_backoff_is_capped():
  policy = RetryPolicy(max_attempts=10, initial_backoff_ms=1000, max_backoff_ms=5000, jitter=False)
  assert [policy.backoff_seconds(attempt) for attempt in (1, 2, 3, 4, 5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_jitter_stays_within_a_quarter_of_the_delay():
  policy = RetryPolicy(initial_backoff_ms=1000, max_backoff_ms=1000)
  for _ in range(20):
    assert 0.75 <= policy.backoff_seconds(1) <= 1.25
