"""Firebase Admin bootstrap and ID-token verification for sermon owners."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import firebase_admin
from firebase_admin import auth, credentials

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

_TOKEN_ERRORS = (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError, auth.CertificateFetchError)


@dataclass(frozen=True)
class CurrentOwner:
  """Authenticated caller; the Firebase uid is the owner id on sermons."""

  owner_id: str
  email: str | None = None


def _app_ready() -> bool:
  try:
    firebase_admin.get_app()
  except ValueError:
    return False
  return True


def initialize_firebase(settings: Settings | None = None) -> bool:
  """Start the admin SDK once and report whether owner tokens can be verified."""
  if _app_ready():
    return True

  settings = settings or get_settings()
  if not settings.firebase_project_id:
    logger.warning("FIREBASE_PROJECT_ID is not set; every owner token will be rejected.")
    return False

  # Without a service account file the SDK falls back to application default credentials.
  path = settings.firebase_service_account_json_path
  try:
    firebase_admin.initialize_app(credentials.Certificate(path) if path else None, {"projectId": settings.firebase_project_id})
  except (ValueError, OSError) as exc:
    logger.error("Firebase Admin SDK failed to start for project %s: %s", settings.firebase_project_id, exc)
    return False
  logger.info("Firebase Admin SDK ready for project %s (service_account=%s)", settings.firebase_project_id, bool(path))
  return True


def verify_owner_token(id_token: str) -> CurrentOwner | None:
  """Return the owner behind a Firebase ID token, or None when it does not verify."""
  if not initialize_firebase():
    return None

  try:
    claims = auth.verify_id_token(id_token)
  except _TOKEN_ERRORS as exc:
    logger.warning("Owner token rejected: %s", type(exc).__name__)
    return None

  owner_id = claims.get("uid") or claims.get("sub")
  if not owner_id:
    logger.warning("Owner token verified without a uid claim")
    return None
  email = claims.get("email")
  return CurrentOwner(owner_id=str(owner_id), email=str(email) if email else None)
