from __future__ import annotations

from app.config import Settings
from app.services.tasks.inline import InlineEnqueuer, JobRunner
from app.services.tasks.interface import TaskEnqueuer


def get_task_enqueuer(settings: Settings, *, runner: JobRunner) -> TaskEnqueuer:
  """Factory to get the configured task enqueuer."""
  if settings.task_service_provider == "gcp":
    from app.services.tasks.gcp import CloudTasksEnqueuer

    return CloudTasksEnqueuer(settings)
  if settings.task_service_provider == "local-http":
    from app.services.tasks.local import LocalHttpEnqueuer

    return LocalHttpEnqueuer(settings)
  return InlineEnqueuer(runner)
