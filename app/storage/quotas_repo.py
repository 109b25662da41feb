"""Storage interface for subscription state and per-owner usage counters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol


@dataclass(frozen=True)
class SubscriptionSnapshot:
  """Subscription row fields the admission controller reads."""

  owner_id: str
  status: str
  plan_id: str | None = None
  sermon_limit: int | None = None
  current_period_start: datetime | None = None
  current_period_end: datetime | None = None
  trial_start: datetime | None = None
  trial_end: datetime | None = None


@dataclass(frozen=True)
class UsageCounter:
  """Job-start counter for one owner and period."""

  owner_id: str
  period_start: date
  period_end: date
  used: int
  limit: int
  is_trial: bool = False


class QuotaRepository(Protocol):
  """Reads subscriptions and mutates usage counters."""

  async def get_subscription(self, owner_id: str) -> SubscriptionSnapshot | None:
    """Return the owner's subscription, or None for the free tier."""

  async def get_usage(self, owner_id: str) -> UsageCounter | None:
    """Return the stored counter regardless of period."""

  async def increment_usage(self, owner_id: str, *, period_start: date, period_end: date, limit: int, is_trial: bool) -> UsageCounter | None:
    """Atomically count one job start; return None when the limit is already reached."""

  async def release_usage(self, owner_id: str, *, period_start: date) -> None:
    """Give back one job start counted in the given period."""

  async def reset_usage(self, owner_id: str, *, period_start: date, period_end: date) -> None:
    """Start a new period with a zero counter."""
