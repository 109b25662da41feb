from __future__ import annotations

import logging
from urllib.parse import urlparse

import httpx

from app.config import Settings
from app.services.tasks.interface import TASK_ENDPOINT_PATH, TASK_SECRET_HEADER, TaskEnqueuer

logger = logging.getLogger(__name__)


class LocalHttpEnqueuer(TaskEnqueuer):
  """Enqueues tasks via local HTTP requests to simulate Cloud Tasks."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings

  def _should_use_asgi_transport(self, base_url: str) -> bool:
    """Decide if we should route requests in-process via ASGITransport."""
    # Local development calls the app in-process to avoid network and proxy edge cases.
    parsed = urlparse(base_url)
    hostname = (parsed.hostname or "").lower()
    return hostname in {"localhost", "127.0.0.1", "::1", "0.0.0.0"}

  def _build_client(self, base_url: str) -> httpx.AsyncClient:
    # Never trust environment proxy variables for internal task dispatch.
    if self._should_use_asgi_transport(base_url):
      from app.main import app

      transport = httpx.ASGITransport(app=app)
      return httpx.AsyncClient(transport=transport, base_url=base_url, trust_env=False)
    return httpx.AsyncClient(trust_env=False)

  def _task_headers(self) -> dict[str, str]:
    if not self.settings.task_secret:
      raise RuntimeError("Task secret not configured.")
    return {TASK_SECRET_HEADER: self.settings.task_secret}

  async def enqueue(self, job_id: str) -> None:
    """Enqueue a job by POSTing to the worker endpoint."""
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured, strictly required for LocalHttpEnqueuer.")

    url = f"{self.settings.base_url.rstrip('/')}{TASK_ENDPOINT_PATH}"
    try:
      async with self._build_client(self.settings.base_url) as client:
        logger.info("Dispatching job %s locally to %s", job_id, url)
        response = await client.post(url, json={"job_id": job_id}, headers=self._task_headers(), timeout=30.0)
        response.raise_for_status()

    except httpx.HTTPStatusError as e:
      logger.error("Local task dispatch returned %s for job %s: %s", e.response.status_code, job_id, e.response.text)
      raise
    except httpx.RequestError as e:
      logger.error("Failed to dispatch local task for job %s: %s", job_id, e)
      raise
