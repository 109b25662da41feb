"""Repository helpers for analytics events."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session_factory
from app.notifications.contracts import AnalyticsEventEntry, AnalyticsSink
from app.schema.analytics import AnalyticsEvent

logger = logging.getLogger(__name__)


class AnalyticsEventRepository(AnalyticsSink):
  """Persist analytics events to Postgres using SQLAlchemy."""

  async def insert(self, entry: AnalyticsEventEntry) -> None:
    """Insert a new analytics event row."""
    session_factory = get_session_factory()
    async with session_factory() as session:
      await self._insert_with_session(session=session, entry=entry)

  async def _insert_with_session(self, *, session: AsyncSession, entry: AnalyticsEventEntry) -> None:
    sermon_id = uuid.UUID(entry.sermon_id) if entry.sermon_id else None
    session.add(AnalyticsEvent(user_id=entry.owner_id, sermon_id=sermon_id, event_type=entry.event_type, event_data=entry.event_data))
    await session.commit()


class NullAnalyticsEventRepository(AnalyticsSink):
  """No-op repository used when persistence is unavailable."""

  async def insert(self, entry: AnalyticsEventEntry) -> None:
    logger.debug("Analytics persistence disabled; dropping event_type=%s sermon_id=%s", entry.event_type, entry.sermon_id)
