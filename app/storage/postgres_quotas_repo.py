"""Postgres-backed subscription and usage counter repository."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_session_factory
from app.schema.quotas import Subscription, UsageQuota
from app.storage.quotas_repo import QuotaRepository, SubscriptionSnapshot, UsageCounter
from app.utils.db_failures import persistence_guard


class PostgresQuotaRepository(QuotaRepository):
  """Persist usage counters with row locks so concurrent job starts cannot overshoot."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()

  async def get_subscription(self, owner_id: str) -> SubscriptionSnapshot | None:
    async with persistence_guard("get_subscription"), self._session_factory() as session:
      stmt = select(Subscription).where(Subscription.user_id == owner_id).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return SubscriptionSnapshot(
        owner_id=row.user_id,
        status=getattr(row.status, "value", row.status),
        plan_id=row.plan_id,
        sermon_limit=row.sermon_limit,
        current_period_start=row.current_period_start,
        current_period_end=row.current_period_end,
        trial_start=row.trial_start,
        trial_end=row.trial_end,
      )

  async def get_usage(self, owner_id: str) -> UsageCounter | None:
    async with persistence_guard("get_usage"), self._session_factory() as session:
      stmt = select(UsageQuota).where(UsageQuota.user_id == owner_id).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      return _usage_to_counter(row) if row is not None else None

  async def increment_usage(self, owner_id: str, *, period_start: date, period_end: date, limit: int, is_trial: bool) -> UsageCounter | None:
    async with persistence_guard("increment_usage"), self._session_factory() as session:
      for attempt in range(2):
        try:
          async with session.begin():
            # Lock the counter row so check-and-increment is atomic.
            stmt = select(UsageQuota).where(UsageQuota.user_id == owner_id).with_for_update()
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
              row = UsageQuota(id=uuid.uuid4(), user_id=owner_id, period_start=period_start, period_end=period_end, used=0, limit=limit, is_trial=is_trial)
              session.add(row)
            elif row.period_start != period_start:
              # Period rolled over since the last job start.
              row.period_start = period_start
              row.period_end = period_end
              row.used = 0
            row.limit = limit
            row.is_trial = is_trial
            if limit != -1 and int(row.used or 0) >= limit:
              return None
            row.used = int(row.used or 0) + 1
            await session.flush()
            counter = _usage_to_counter(row)
          return counter
        except IntegrityError:
          # A concurrent first job start created the row; retry against it.
          if attempt == 1:
            raise
      return None

  async def release_usage(self, owner_id: str, *, period_start: date) -> None:
    async with persistence_guard("release_usage"), self._session_factory() as session:
      async with session.begin():
        stmt = select(UsageQuota).where(UsageQuota.user_id == owner_id).with_for_update()
        row = (await session.execute(stmt)).scalar_one_or_none()
        # A rollover since the start already cleared the slot.
        if row is None or row.period_start != period_start:
          return
        row.used = max(int(row.used or 0) - 1, 0)

  async def reset_usage(self, owner_id: str, *, period_start: date, period_end: date) -> None:
    async with persistence_guard("reset_usage"), self._session_factory() as session:
      async with session.begin():
        stmt = select(UsageQuota).where(UsageQuota.user_id == owner_id).with_for_update()
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
          return
        row.period_start = period_start
        row.period_end = period_end
        row.used = 0


def _usage_to_counter(row: UsageQuota) -> UsageCounter:
  return UsageCounter(owner_id=row.user_id, period_start=row.period_start, period_end=row.period_end, used=int(row.used or 0), limit=int(row.limit), is_trial=bool(row.is_trial))
