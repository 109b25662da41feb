from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from app.config import Settings, get_settings
from app.core.firebase import CurrentOwner, verify_owner_token
from app.services.tasks.interface import TASK_SECRET_HEADER

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer()


async def get_current_owner(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)]) -> CurrentOwner:
  """Verify the Firebase ID token and return the calling owner."""
  # The admin SDK verifies synchronously (certificate fetch), so keep it off the loop.
  owner = await run_in_threadpool(verify_owner_token, token.credentials)
  if owner is None:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})
  return owner


def require_task_secret(settings: Annotated[Settings, Depends(get_settings)], x_sermon_task_secret: Annotated[str | None, Header(alias=TASK_SECRET_HEADER)] = None) -> None:
  """Reject internal task calls that do not carry the shared secret."""
  # Secure-by-default: internal task endpoints must be authenticated to avoid arbitrary job execution.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  if not secrets.compare_digest(x_sermon_task_secret or "", settings.task_secret):
    logger.warning("Unauthorized access attempt to internal task endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")
