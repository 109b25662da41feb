import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from app.core.container import build_container
from app.core.database import dispose_engine
from app.core.firebase import initialize_firebase
from app.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging, auth, and the service container; release them on shutdown."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  _initialize_logging(settings)
  logger.info("Starting sermon service environment=%s database=%s", settings.environment, _redact_dsn(settings.pg_dsn))
  initialize_firebase(settings)

  # Tests install their own container before startup.
  if getattr(app.state, "container", None) is None:
    app.state.container = build_container(settings)

  try:
    yield
  finally:
    container = app.state.container
    # Let in-flight notifications finish so completion emails are not dropped.
    await container.notifier.drain()
    await dispose_engine()
    logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
