from __future__ import annotations

from typing import Protocol

TASK_ENDPOINT_PATH = "/internal/tasks/process-sermon-job"
TASK_SECRET_HEADER = "X-Sermon-Task-Secret"


class TaskEnqueuer(Protocol):
  """Interface for dispatching sermon jobs to the worker endpoint."""

  async def enqueue(self, job_id: str) -> None:
    """Dispatch a recorded job for processing."""
    ...
