from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from app.services.tasks.interface import TaskEnqueuer

logger = logging.getLogger(__name__)

JobRunner = Callable[[str], Awaitable[Any]]


class InlineEnqueuer(TaskEnqueuer):
  """Runs jobs as background tasks on the current event loop.

  Suited to single-process deployments and tests; a process restart drops
  in-flight jobs, which the step ledger lets a re-dispatch resume.
  """

  def __init__(self, runner: JobRunner) -> None:
    self._runner = runner
    self._tasks: set[asyncio.Task[Any]] = set()

  async def enqueue(self, job_id: str) -> None:
    logger.info("Dispatching job %s in-process", job_id)
    task = asyncio.create_task(self._runner(job_id))
    self._tasks.add(task)
    task.add_done_callback(self._tasks.discard)
    task.add_done_callback(self._log_task_error)

  @staticmethod
  def _log_task_error(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
      return
    try:
      _ = task.result()
    except Exception as exc:  # noqa: BLE001
      logger.error("In-process job task failed: %s", exc, exc_info=True)

  async def drain(self) -> None:
    """Wait for dispatched jobs to settle."""
    if self._tasks:
      await asyncio.gather(*list(self._tasks), return_exceptions=True)
