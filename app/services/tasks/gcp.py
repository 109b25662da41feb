from __future__ import annotations

import json
import logging

from google.cloud import tasks_v2
from starlette.concurrency import run_in_threadpool

from app.config import Settings
from app.services.tasks.interface import TASK_ENDPOINT_PATH, TASK_SECRET_HEADER, TaskEnqueuer

logger = logging.getLogger(__name__)


class CloudTasksEnqueuer(TaskEnqueuer):
  """Enqueues sermon jobs to Google Cloud Tasks."""

  def __init__(self, settings: Settings, client: tasks_v2.CloudTasksClient | None = None) -> None:
    self.settings = settings
    self.client = client or tasks_v2.CloudTasksClient()

  def _build_task(self, job_id: str) -> dict:
    headers = {"Content-Type": "application/json"}
    if self.settings.task_secret:
      headers[TASK_SECRET_HEADER] = self.settings.task_secret
    http_request: dict = {"http_method": tasks_v2.HttpMethod.POST, "url": f"{(self.settings.base_url or '').rstrip('/')}{TASK_ENDPOINT_PATH}", "headers": headers, "body": json.dumps({"job_id": job_id}).encode()}
    # Cloud Run invoker auth needs an OIDC token minted for a dedicated service account.
    if self.settings.cloud_run_invoker_service_account:
      http_request["oidc_token"] = {"service_account_email": self.settings.cloud_run_invoker_service_account}
    return {"http_request": http_request}

  async def enqueue(self, job_id: str) -> None:
    if not self.settings.cloud_tasks_queue_path:
      raise RuntimeError("Cloud Tasks queue path not configured.")
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured.")

    request = {"parent": self.settings.cloud_tasks_queue_path, "task": self._build_task(job_id)}
    # The client is synchronous; keep the event loop free while it talks to the API.
    response = await run_in_threadpool(self.client.create_task, request=request)
    logger.info("Enqueued task %s for job %s", response.name, job_id)
