from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_current_owner, get_job_service
from app.api.models import UsageResponse
from app.core.security import CurrentOwner
from app.services.jobs import SermonJobService

router = APIRouter()


@router.get("/usage", response_model=UsageResponse)
async def get_usage(current_owner: CurrentOwner = Depends(get_current_owner), job_service: SermonJobService = Depends(get_job_service)) -> UsageResponse:  # noqa: B008
  """Return the caller's admission snapshot for the current period."""
  decision = await job_service.get_usage(current_owner.owner_id)
  return UsageResponse.from_decision(decision)
