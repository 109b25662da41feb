from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.core.container import ServiceContainer
from app.core.security import CurrentOwner, get_current_owner
from app.services.jobs import SermonJobService

__all__ = ["CurrentOwner", "get_container", "get_current_owner", "get_job_service"]


def get_container(request: Request) -> ServiceContainer:
  """Return the service container built during application startup."""
  container = getattr(request.app.state, "container", None)
  if container is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting up.")
  return container


def get_job_service(request: Request) -> SermonJobService:
  return get_container(request).job_service
