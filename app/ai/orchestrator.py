"""Sermon pipeline orchestrator: transcription, content fan-out, and status lifecycle."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar

from app.ai.agents.base import ContentAgent, GenerationContext
from app.ai.backoff import RetryPolicy, StepRetriesExhausted, retry_step
from app.ai.pipeline.contracts import payload_to_storage
from app.core.errors import PersistenceFailure, PipelineError, SermonNotFound, SourceUnavailable, TranscriptionFailed, TranscriptMissing, TranscriptTooShort
from app.jobs.models import FANOUT_CONTENT_TYPES, ContentType, JobOutcome, JobStatus, SermonRecord, SermonStatus, TaskOutcome, can_transition
from app.notifications.contracts import SermonCompletedEvent
from app.notifications.service import NotificationService
from app.services.transcription import TranscriptionClient
from app.storage.sermons_repo import ArtifactsRepository, JobsRepository, SermonsRepository

T = TypeVar("T")
logger = logging.getLogger(__name__)

STEP_TRANSCRIBE = "transcribe"
STEP_PERSIST_TRANSCRIPT = "persist_transcript"


def generation_step(content_type: ContentType) -> str:
  """Return the ledger step name for one generation task."""
  return f"generate:{content_type.value}"


class IllegalStatusTransition(PipelineError):
  """Raised when the status machine rejects a transition."""

  kind = "illegal_status_transition"


class SermonOrchestrator:
  """Drive one sermon through transcription and content generation.

  How/Why:
    - Every external call runs as a named step under a bounded retry policy; the
      step ledger lets a replayed job skip generation that already succeeded.
    - Generation tasks are settled independently: a failed package never cancels
      its siblings, and the job still completes with a per-type success map.
    - Only failures before the fan-out (source, transcription, transcript length,
      status or transcript writes) end the job in the error state.
  """

  def __init__(
    self,
    *,
    sermons: SermonsRepository,
    artifacts: ArtifactsRepository,
    jobs: JobsRepository,
    transcriber: TranscriptionClient,
    agents: Mapping[ContentType, ContentAgent],
    notifier: NotificationService | None = None,
    policy: RetryPolicy | None = None,
    min_transcript_chars: int = 100,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
  ) -> None:
    self._sermons = sermons
    self._artifacts = artifacts
    self._jobs = jobs
    self._transcriber = transcriber
    self._agents = dict(agents)
    self._notifier = notifier
    self._policy = policy or RetryPolicy()
    self._min_transcript_chars = min_transcript_chars
    self._sleep = sleep

  async def run_job(self, sermon_id: str, owner_id: str, *, skip_transcription: bool = False, job_id: str, content_types: Sequence[ContentType] = FANOUT_CONTENT_TYPES) -> JobOutcome:
    """Run the full pipeline for a sermon and return its settled outcome."""
    started = time.monotonic()
    sermon = await self._load_sermon(job_id, sermon_id, owner_id)
    completed_steps = await self._completed_steps(job_id)
    await self._update_job(job_id, status="running")
    logger.info("Job %s started for sermon %s (skip_transcription=%s, replayed_steps=%d)", job_id, sermon_id, skip_transcription, len(completed_steps))

    status = sermon.status
    try:
      # A new attempt on a finished sermon re-enters through processing.
      if status.is_terminal:
        status = await self._transition(job_id, sermon_id, status, SermonStatus.PROCESSING)

      transcript = sermon.transcript
      if not transcript and not skip_transcription:
        status = await self._transition(job_id, sermon_id, status, SermonStatus.TRANSCRIBING)
        transcript = await self._transcribe(job_id, sermon)

      transcript = self._require_usable_transcript(transcript)
      status = await self._transition(job_id, sermon_id, status, SermonStatus.GENERATING)

      context = GenerationContext(title=sermon.title, job_id=job_id)
      outcomes = await asyncio.gather(*(self._run_task(job_id=job_id, sermon=sermon, content_type=content_type, transcript=transcript, context=context, completed_steps=completed_steps) for content_type in content_types))

      await self._transition(job_id, sermon_id, status, SermonStatus.COMPLETE)

    except PipelineError as exc:
      return await self._fail_job(job_id, sermon, exc, started=started)
    except Exception as exc:  # noqa: BLE001
      logger.exception("Job %s hit an unexpected error", job_id)
      return await self._fail_job(job_id, sermon, PipelineError(f"Unexpected error: {exc}"), started=started)

    outcome = JobOutcome(job_id=job_id, sermon_id=sermon_id, status=SermonStatus.COMPLETE, outcomes=list(outcomes))
    await self._update_job(job_id, status="complete", success_map=outcome.success_map)
    succeeded = sum(1 for task in outcome.outcomes if task.succeeded)
    logger.info("Job %s complete for sermon %s: %d/%d packages generated in %.1fs", job_id, sermon_id, succeeded, len(outcome.outcomes), time.monotonic() - started)
    self._emit_completed(job_id, sermon, outcome)
    return outcome

  async def generate_one(self, sermon_id: str, owner_id: str, content_type: ContentType, *, job_id: str) -> JobOutcome:
    """Regenerate a single content package from the stored transcript."""
    started = time.monotonic()
    sermon = await self._load_sermon(job_id, sermon_id, owner_id)
    if not sermon.transcript:
      raise TranscriptMissing("Sermon has no transcript yet. Process the sermon before generating content.")
    completed_steps = await self._completed_steps(job_id)
    await self._update_job(job_id, status="running")
    logger.info("Job %s regenerating %s for sermon %s", job_id, content_type.value, sermon_id)

    status = sermon.status
    try:
      transcript = self._require_usable_transcript(sermon.transcript)
      status = await self._transition(job_id, sermon_id, status, SermonStatus.GENERATING)

      context = GenerationContext(title=sermon.title, job_id=job_id, main_points=await self._notes_main_points(job_id, sermon_id, content_type))
      task = await self._run_task(job_id=job_id, sermon=sermon, content_type=content_type, transcript=transcript, context=context, completed_steps=completed_steps)
      if not task.succeeded:
        # The single task is the whole job, so its failure is the job's failure.
        failure = PipelineError(f"Failed to generate {content_type.value.replace('_', ' ')}: {task.error_message}")
        failure.kind = task.error_kind or failure.kind
        return await self._fail_job(job_id, sermon, failure, started=started, outcomes=[task])

      await self._transition(job_id, sermon_id, status, SermonStatus.COMPLETE)

    except PipelineError as exc:
      return await self._fail_job(job_id, sermon, exc, started=started)
    except Exception as exc:  # noqa: BLE001
      logger.exception("Job %s hit an unexpected error", job_id)
      return await self._fail_job(job_id, sermon, PipelineError(f"Unexpected error: {exc}"), started=started)

    outcome = JobOutcome(job_id=job_id, sermon_id=sermon_id, status=SermonStatus.COMPLETE, outcomes=[task])
    await self._update_job(job_id, status="complete", success_map=outcome.success_map)
    logger.info("Job %s regenerated %s for sermon %s in %.1fs", job_id, content_type.value, sermon_id, time.monotonic() - started)
    return outcome

  async def _load_sermon(self, job_id: str, sermon_id: str, owner_id: str) -> SermonRecord:
    sermon = await self._persist(job_id, "load_sermon", lambda: self._sermons.get_sermon(sermon_id))
    if sermon is None or sermon.owner_id != owner_id:
      raise SermonNotFound(f"Sermon not found: {sermon_id}")
    return sermon

  async def _completed_steps(self, job_id: str) -> set[str]:
    steps = await self._persist(job_id, "list_steps", lambda: self._jobs.list_steps(job_id))
    return {step.step_name for step in steps if step.state == "succeeded"}

  async def _notes_main_points(self, job_id: str, sermon_id: str, content_type: ContentType) -> list[str]:
    if content_type != ContentType.DISCUSSION_GUIDE:
      return []
    notes = await self._persist(job_id, "load_notes", lambda: self._artifacts.get_artifact(sermon_id, ContentType.SERMON_NOTES))
    if notes is None:
      return []
    return [str(point.get("heading")) for point in notes.payload.get("main_points") or [] if isinstance(point, dict) and point.get("heading")]

  async def _transition(self, job_id: str, sermon_id: str, current: SermonStatus, target: SermonStatus, *, error_message: str | None = None) -> SermonStatus:
    if not can_transition(current, target):
      raise IllegalStatusTransition(f"Cannot move sermon from {current.value} to {target.value}.")
    await self._persist(job_id, f"status:{target.value}", lambda: self._sermons.set_status(sermon_id, target, error_message=error_message))
    logger.info("Sermon %s status %s -> %s job_id=%s", sermon_id, current.value, target.value, job_id)
    return target

  async def _transcribe(self, job_id: str, sermon: SermonRecord) -> str:
    media_ref = sermon.media_reference()
    if not media_ref:
      raise SourceUnavailable("No audio source found for transcription.")

    try:
      result, attempts = await retry_step(job_id=job_id, step_name=STEP_TRANSCRIBE, func=lambda: self._transcriber.transcribe(media_ref), policy=self._policy, sleep=self._sleep)
    except StepRetriesExhausted as exc:
      await self._record_step(job_id, STEP_TRANSCRIBE, succeeded=False, attempts=exc.attempts, error=exc.last_error)
      raise TranscriptionFailed(f"Transcription failed after {exc.attempts} attempts: {exc.last_error}") from exc
    except PipelineError as exc:
      await self._record_step(job_id, STEP_TRANSCRIBE, succeeded=False, attempts=1, error=exc)
      raise

    # The stored transcript wins when a replayed job raced the original write.
    stored = await self._persist(job_id, STEP_PERSIST_TRANSCRIPT, lambda: self._sermons.set_transcript_if_absent(sermon.sermon_id, result.text))
    await self._record_step(job_id, STEP_TRANSCRIBE, succeeded=True, attempts=attempts)
    return stored

  def _require_usable_transcript(self, transcript: str | None) -> str:
    length = len((transcript or "").strip())
    if length < self._min_transcript_chars:
      raise TranscriptTooShort(length, self._min_transcript_chars)
    return transcript or ""

  async def _run_task(self, *, job_id: str, sermon: SermonRecord, content_type: ContentType, transcript: str, context: GenerationContext, completed_steps: set[str]) -> TaskOutcome:
    """Generate, extract and persist one package; never raises."""
    step = generation_step(content_type)
    if step in completed_steps:
      logger.info("Skipping %s for job %s; already succeeded", step, job_id)
      return TaskOutcome(content_type=content_type, succeeded=True, replayed=True)

    attempts = 0
    try:
      agent = self._agents.get(content_type)
      if agent is None:
        raise PipelineError(f"No generator configured for {content_type.value}.")

      raw, attempts = await retry_step(job_id=job_id, step_name=step, func=lambda: agent.generate(transcript, context), policy=self._policy, sleep=self._sleep)
      extracted = agent.parse(raw)
      if extracted.repaired:
        logger.warning("Recovered truncated %s output for job %s", content_type.value, job_id)

      stored = payload_to_storage(extracted.payload)
      await self._persist(job_id, f"persist:{content_type.value}", lambda: self._artifacts.upsert_artifact(sermon.sermon_id, content_type, stored))

    except StepRetriesExhausted as exc:
      error = exc.last_error
      kind = getattr(error, "kind", "transient_step_failure")
      await self._record_step(job_id, step, succeeded=False, attempts=exc.attempts, error=error)
      logger.error("Task %s failed for job %s after %d attempts: %s", content_type.value, job_id, exc.attempts, error)
      return TaskOutcome(content_type=content_type, succeeded=False, error_kind=kind, error_message=str(error), attempts=exc.attempts)

    except PipelineError as exc:
      attempts = max(attempts, 1)
      await self._record_step(job_id, step, succeeded=False, attempts=attempts, error=exc)
      logger.error("Task %s failed for job %s: kind=%s error=%s", content_type.value, job_id, exc.kind, exc)
      return TaskOutcome(content_type=content_type, succeeded=False, error_kind=exc.kind, error_message=exc.message, attempts=attempts)

    except Exception as exc:  # noqa: BLE001
      attempts = max(attempts, 1)
      await self._record_step(job_id, step, succeeded=False, attempts=attempts, error=exc)
      logger.exception("Task %s crashed for job %s", content_type.value, job_id)
      return TaskOutcome(content_type=content_type, succeeded=False, error_kind="unexpected_error", error_message=str(exc), attempts=attempts)

    await self._record_step(job_id, step, succeeded=True, attempts=attempts)
    if self._notifier is not None:
      self._notifier.emit_content_generated(owner_id=sermon.owner_id, sermon_id=sermon.sermon_id, content_type=content_type.value)
    return TaskOutcome(content_type=content_type, succeeded=True, attempts=attempts)

  async def _persist(self, job_id: str, step_name: str, func: Callable[[], Awaitable[T]]) -> T:
    """Run a datastore call under the step retry policy."""
    try:
      result, _ = await retry_step(job_id=job_id, step_name=step_name, func=func, policy=self._policy, sleep=self._sleep)
    except StepRetriesExhausted as exc:
      if isinstance(exc.last_error, PersistenceFailure):
        raise exc.last_error from exc
      raise PersistenceFailure(str(exc.last_error), operation=step_name) from exc
    return result

  async def _record_step(self, job_id: str, step_name: str, *, succeeded: bool, attempts: int, error: BaseException | None = None) -> None:
    # The ledger only drives replay; a failed write must not change the task outcome.
    try:
      await self._persist(job_id, f"ledger:{step_name}", lambda: self._jobs.record_step(job_id, step_name, state="succeeded" if succeeded else "failed", attempt_count=attempts, last_error=str(error) if error else None))
    except PipelineError as exc:
      logger.error("Failed to record step %s for job %s: %s", step_name, job_id, exc)

  async def _update_job(self, job_id: str, *, status: JobStatus, success_map: dict[str, bool] | None = None, error_kind: str | None = None, error_message: str | None = None) -> None:
    try:
      await self._persist(job_id, f"job:{status}", lambda: self._jobs.update_job(job_id, status=status, success_map=success_map, error_kind=error_kind, error_message=error_message))
    except PipelineError as exc:
      logger.error("Failed to update job %s to %s: %s", job_id, status, exc)

  async def _fail_job(self, job_id: str, sermon: SermonRecord, exc: PipelineError, *, started: float, outcomes: list[TaskOutcome] | None = None) -> JobOutcome:
    logger.error("Job %s failed for sermon %s: kind=%s error=%s", job_id, sermon.sermon_id, exc.kind, exc.message)
    try:
      await self._persist(job_id, "status:error", lambda: self._sermons.set_status(sermon.sermon_id, SermonStatus.ERROR, error_message=exc.message))
    except PipelineError as status_exc:
      logger.error("Could not mark sermon %s as error: %s", sermon.sermon_id, status_exc)
    outcome = JobOutcome(job_id=job_id, sermon_id=sermon.sermon_id, status=SermonStatus.ERROR, outcomes=outcomes or [], error_kind=exc.kind, error_message=exc.message)
    await self._update_job(job_id, status="error", success_map=outcome.success_map if outcome.outcomes else None, error_kind=exc.kind, error_message=exc.message)
    logger.info("Job %s ended in error after %.1fs", job_id, time.monotonic() - started)
    return outcome

  def _emit_completed(self, job_id: str, sermon: SermonRecord, outcome: JobOutcome) -> None:
    if self._notifier is None:
      return
    event = SermonCompletedEvent(sermon_id=sermon.sermon_id, owner_id=sermon.owner_id, sermon_title=sermon.title, success_map=outcome.success_map, job_id=job_id, owner_email=sermon.owner_email)
    try:
      self._notifier.emit_sermon_completed(event)
    except Exception as exc:  # noqa: BLE001
      logger.error("Completion notification for job %s could not be scheduled: %s", job_id, exc)
