from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_owner, get_job_service
from app.api.models import ArtifactListResponse, ArtifactResponse, ArtifactUpdateRequest, JobTicketResponse, ProcessSermonRequest, SermonResponse
from app.core.security import CurrentOwner
from app.jobs.models import ContentType
from app.services.jobs import SermonJobService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/{sermon_id}/process", response_model=JobTicketResponse, status_code=status.HTTP_202_ACCEPTED)
async def process_sermon(  # noqa: B008
  sermon_id: str,
  request: ProcessSermonRequest | None = None,
  current_owner: CurrentOwner = Depends(get_current_owner),  # noqa: B008
  job_service: SermonJobService = Depends(get_job_service),  # noqa: B008
) -> JobTicketResponse:
  """Admit and dispatch transcription plus generation of every content type."""
  skip_transcription = request.skip_transcription if request is not None else False
  ticket = await job_service.start_job(sermon_id, current_owner.owner_id, skip_transcription=skip_transcription)
  return JobTicketResponse.from_ticket(ticket)


@router.post("/{sermon_id}/content/{content_type}", response_model=JobTicketResponse, status_code=status.HTTP_202_ACCEPTED)
async def regenerate_content(  # noqa: B008
  sermon_id: str,
  content_type: ContentType,
  current_owner: CurrentOwner = Depends(get_current_owner),  # noqa: B008
  job_service: SermonJobService = Depends(get_job_service),  # noqa: B008
) -> JobTicketResponse:
  """Dispatch regeneration of one content type from the stored transcript."""
  ticket = await job_service.generate_one(sermon_id, current_owner.owner_id, content_type)
  return JobTicketResponse.from_ticket(ticket)


@router.get("/{sermon_id}", response_model=SermonResponse)
async def get_sermon(  # noqa: B008
  sermon_id: str,
  current_owner: CurrentOwner = Depends(get_current_owner),  # noqa: B008
  job_service: SermonJobService = Depends(get_job_service),  # noqa: B008
) -> SermonResponse:
  """Return the sermon with its processing status."""
  sermon = await job_service.get_sermon(sermon_id, current_owner.owner_id)
  return SermonResponse.from_record(sermon)


@router.get("/{sermon_id}/content", response_model=ArtifactListResponse)
async def list_content(  # noqa: B008
  sermon_id: str,
  current_owner: CurrentOwner = Depends(get_current_owner),  # noqa: B008
  job_service: SermonJobService = Depends(get_job_service),  # noqa: B008
) -> ArtifactListResponse:
  """Return every stored artifact; missing types are simply absent."""
  artifacts = await job_service.get_artifacts(sermon_id, current_owner.owner_id)
  return ArtifactListResponse(sermon_id=sermon_id, items=[ArtifactResponse.from_record(artifact) for artifact in artifacts])


@router.get("/{sermon_id}/content/{content_type}", response_model=ArtifactResponse)
async def get_content(  # noqa: B008
  sermon_id: str,
  content_type: ContentType,
  current_owner: CurrentOwner = Depends(get_current_owner),  # noqa: B008
  job_service: SermonJobService = Depends(get_job_service),  # noqa: B008
) -> ArtifactResponse:
  artifact = await job_service.get_artifact(sermon_id, content_type, current_owner.owner_id)
  return ArtifactResponse.from_record(artifact)


@router.put("/{sermon_id}/content/{content_type}", response_model=ArtifactResponse)
async def update_content(  # noqa: B008
  sermon_id: str,
  content_type: ContentType,
  payload: ArtifactUpdateRequest,
  current_owner: CurrentOwner = Depends(get_current_owner),  # noqa: B008
  job_service: SermonJobService = Depends(get_job_service),  # noqa: B008
) -> ArtifactResponse:
  """Replace an artifact with the owner's edited version."""
  artifact = await job_service.update_artifact(sermon_id, content_type, current_owner.owner_id, payload.content)
  return ArtifactResponse.from_record(artifact)
