from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status

from app.api.deps import get_job_service
from app.api.models import TaskPayload
from app.core.security import require_task_secret
from app.services.jobs import SermonJobService
from app.services.tasks.interface import TASK_ENDPOINT_PATH

router = APIRouter(tags=["tasks"])
logger = logging.getLogger(__name__)


@router.post(TASK_ENDPOINT_PATH, status_code=status.HTTP_200_OK, dependencies=[Depends(require_task_secret)])
async def process_sermon_job_task(payload: TaskPayload, background_tasks: BackgroundTasks, job_service: SermonJobService = Depends(get_job_service)) -> dict[str, str]:  # noqa: B008
  """
  Handler for Cloud Tasks (and local simulation).
  Accepts the task quickly and processes the job in the background to avoid dispatcher timeouts.
  """
  logger.info("Received task for job %s", payload.job_id)
  background_tasks.add_task(job_service.process_job, payload.job_id)
  return {"status": "accepted"}
