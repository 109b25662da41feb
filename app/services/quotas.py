"""Sermon quota admission control and usage accounting."""

from __future__ import annotations

import calendar
import datetime
import logging
import math
from dataclasses import dataclass

from app.core.errors import AdmissionDenied
from app.schema.quotas import SubscriptionStatus
from app.storage.quotas_repo import QuotaRepository, SubscriptionSnapshot, UsageCounter

logger = logging.getLogger(__name__)

UNLIMITED = -1
FREE_MONTHLY_LIMIT = 1
TRIAL_SERMON_LIMIT = 2
TRIAL_DAYS = 14
PLAN_LIMITS: dict[str, int] = {"starter": 4, "growth": 12, "enterprise": UNLIMITED}
PLAN_NAMES: dict[str, str] = {"starter": "Starter", "growth": "Growth", "enterprise": "Enterprise"}

# Reason codes returned on denial; inactive subscriptions map to 403, limits to 402.
REASON_SUBSCRIPTION_INACTIVE = "subscription_inactive"
REASON_PAYMENT_FAILED = "payment_failed"
REASON_PLAN_LIMIT = "plan_limit_reached"
REASON_TRIAL_LIMIT = "trial_limit_reached"
REASON_FREE_LIMIT = "free_limit_reached"
INACTIVE_REASON_CODES = frozenset({REASON_SUBSCRIPTION_INACTIVE, REASON_PAYMENT_FAILED})


@dataclass(frozen=True)
class AdmissionDecision:
  """Outcome of an admission check plus the usage snapshot shown to owners."""

  allowed: bool
  current: int
  limit: int
  is_unlimited: bool
  period_start: datetime.date
  period_end: datetime.date
  is_trial: bool
  plan_id: str
  plan_name: str
  subscription_status: str
  remaining: int
  percent_used: float
  days_remaining: int
  trial_days_remaining: int = 0
  reason: str | None = None
  reason_code: str | None = None
  warning: str | None = None


def _utc_now() -> datetime.datetime:
  """Return timezone-aware current UTC time for deterministic period math."""
  return datetime.datetime.now(datetime.UTC)


def month_bounds(now: datetime.datetime) -> tuple[datetime.date, datetime.date]:
  """Return the first and last day of the UTC calendar month containing now."""
  if now.tzinfo is None:
    raise ValueError("now must be timezone-aware (UTC).")
  today = now.astimezone(datetime.UTC).date()
  last_day = calendar.monthrange(today.year, today.month)[1]
  return today.replace(day=1), today.replace(day=last_day)


def trial_bounds(trial_start: datetime.datetime | None, trial_end: datetime.datetime | None, now: datetime.datetime) -> tuple[datetime.date, datetime.date]:
  """Return the trial window, filling missing edges with the default trial length."""
  window = datetime.timedelta(days=TRIAL_DAYS)
  if trial_start is None and trial_end is None:
    start = now
    end = now + window
  elif trial_start is None:
    end = trial_end
    start = end - window
  elif trial_end is None:
    start = trial_start
    end = start + window
  else:
    start, end = trial_start, trial_end
  return start.date(), end.date()


def days_between(start: datetime.datetime | datetime.date, end: datetime.datetime | datetime.date) -> int:
  """Return whole days from start to end, rounded up and never negative."""
  if isinstance(start, datetime.datetime) and isinstance(end, datetime.datetime):
    seconds = (end - start).total_seconds()
    return max(0, math.ceil(seconds / 86400))
  start_date = start.date() if isinstance(start, datetime.datetime) else start
  end_date = end.date() if isinstance(end, datetime.datetime) else end
  return max(0, (end_date - start_date).days)


def _current_usage(usage: UsageCounter | None, period_start: datetime.date) -> int:
  # A counter stored for another period is stale and counts as zero.
  if usage is None or usage.period_start != period_start:
    return 0
  return usage.used


def _percent_used(current: int, limit: int) -> float:
  if limit <= 0:
    return 100.0
  return min(current / limit * 100, 100.0)


def evaluate_admission(subscription: SubscriptionSnapshot | None, usage: UsageCounter | None, *, now: datetime.datetime) -> AdmissionDecision:
  """Decide whether a new job may start for the given subscription and usage.

  How/Why:
    - No subscription row means the free tier with one sermon per calendar month.
    - Trials get a fixed allowance inside the trial window.
    - Active plans count within the billing period, falling back to the calendar month.
  """
  if subscription is None:
    period_start, period_end = month_bounds(now)
    current = _current_usage(usage, period_start)
    limit = FREE_MONTHLY_LIMIT
    allowed = current < limit
    remaining = max(limit - current, 0)
    return AdmissionDecision(
      allowed=allowed,
      current=current,
      limit=limit,
      is_unlimited=False,
      period_start=period_start,
      period_end=period_end,
      is_trial=False,
      plan_id="free",
      plan_name="Free",
      subscription_status="active",
      remaining=remaining,
      percent_used=_percent_used(current, limit),
      days_remaining=days_between(now.date(), period_end),
      reason=None if allowed else "You've used your free sermon this month. Upgrade to continue.",
      reason_code=None if allowed else REASON_FREE_LIMIT,
      warning="You have 1 free sermon remaining this month." if allowed and remaining == 1 else None,
    )

  status = subscription.status
  plan_id = subscription.plan_id or "free"
  plan_name = PLAN_NAMES.get(plan_id, plan_id)
  is_trial = status == SubscriptionStatus.TRIALING.value or (subscription.trial_end is not None and subscription.trial_end > now and status != SubscriptionStatus.ACTIVE.value)

  if is_trial:
    trial_start = subscription.trial_start or subscription.current_period_start
    if trial_start is None and subscription.trial_end is None and usage is not None and usage.is_trial and usage.period_end >= now.date():
      # An undated trial keeps the window opened by its first job start.
      period_start, period_end = usage.period_start, usage.period_end
    else:
      period_start, period_end = trial_bounds(trial_start, subscription.trial_end, now)
    limit = TRIAL_SERMON_LIMIT
    plan_name = f"{plan_name} (Trial)"
  else:
    if subscription.current_period_start is not None and subscription.current_period_end is not None:
      period_start, period_end = subscription.current_period_start.date(), subscription.current_period_end.date()
    else:
      period_start, period_end = month_bounds(now)
    limit = subscription.sermon_limit if subscription.sermon_limit is not None else PLAN_LIMITS.get(plan_id, FREE_MONTHLY_LIMIT)

  trial_days_remaining = days_between(now, subscription.trial_end) if is_trial and subscription.trial_end is not None else 0
  days_remaining = days_between(now.date(), period_end)
  current = _current_usage(usage, period_start)
  is_unlimited = limit == UNLIMITED

  base = {
    "current": current,
    "limit": limit,
    "is_unlimited": is_unlimited,
    "period_start": period_start,
    "period_end": period_end,
    "is_trial": is_trial,
    "plan_id": plan_id,
    "plan_name": plan_name,
    "subscription_status": status,
    "days_remaining": days_remaining,
    "trial_days_remaining": trial_days_remaining,
  }

  if status not in {SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIALING.value}:
    if status == SubscriptionStatus.PAST_DUE.value:
      reason, reason_code = "Payment failed. Please update your payment method to continue.", REASON_PAYMENT_FAILED
    else:
      reason, reason_code = "Your subscription is inactive. Please renew to continue.", REASON_SUBSCRIPTION_INACTIVE
    remaining = UNLIMITED if is_unlimited else max(limit - current, 0)
    return AdmissionDecision(allowed=False, remaining=remaining, percent_used=0.0 if is_unlimited else _percent_used(current, limit), reason=reason, reason_code=reason_code, **base)

  if is_unlimited:
    return AdmissionDecision(allowed=True, remaining=UNLIMITED, percent_used=0.0, **base)

  allowed = current < limit
  remaining = max(limit - current, 0)
  reason = None
  reason_code = None
  warning = None
  if not allowed:
    if is_trial:
      reason, reason_code = f"You've used your {limit} trial sermons. Subscribe now for more!", REASON_TRIAL_LIMIT
    else:
      reason, reason_code = f"You've reached your {limit} sermon limit. Upgrade for more.", REASON_PLAN_LIMIT
  elif remaining == 1:
    if is_trial:
      warning = f"1 trial sermon remaining. {trial_days_remaining} days left in your trial."
    else:
      warning = "You have 1 sermon remaining this billing period."
  return AdmissionDecision(allowed=allowed, remaining=remaining, percent_used=_percent_used(current, limit), reason=reason, reason_code=reason_code, warning=warning, **base)


class QuotaService:
  """Admission gate and usage counter backed by a quota repository."""

  def __init__(self, repo: QuotaRepository, *, clock=_utc_now) -> None:
    self._repo = repo
    self._clock = clock

  async def check_admission(self, owner_id: str) -> AdmissionDecision:
    """Return the admission decision for a new job without mutating state."""
    subscription = await self._repo.get_subscription(owner_id)
    usage = await self._repo.get_usage(owner_id)
    decision = evaluate_admission(subscription, usage, now=self._clock())
    if not decision.allowed:
      logger.info("Admission denied for owner %s: %s (%s/%s)", owner_id, decision.reason_code, decision.current, decision.limit)
    return decision

  async def require_admission(self, owner_id: str) -> AdmissionDecision:
    """Return an allowed decision or raise AdmissionDenied."""
    decision = await self.check_admission(owner_id)
    if not decision.allowed:
      raise AdmissionDenied(decision.reason or "Sermon limit reached.", reason_code=decision.reason_code or REASON_PLAN_LIMIT, decision=decision)
    return decision

  async def record_job_start(self, owner_id: str, decision: AdmissionDecision) -> UsageCounter:
    """Count one job start against the decision's period."""
    if not decision.allowed:
      raise ValueError("Cannot record a job start for a denied admission.")
    counter = await self._repo.increment_usage(owner_id, period_start=decision.period_start, period_end=decision.period_end, limit=decision.limit, is_trial=decision.is_trial)
    if counter is None:
      # A concurrent job start consumed the last slot between check and increment.
      refreshed = await self.check_admission(owner_id)
      raise AdmissionDenied(refreshed.reason or "Sermon limit reached.", reason_code=refreshed.reason_code or REASON_PLAN_LIMIT, decision=refreshed)
    logger.info("Recorded job start for owner %s (%s/%s)", owner_id, counter.used, "unlimited" if counter.limit == UNLIMITED else counter.limit)
    return counter

  async def release_job_start(self, owner_id: str, counter: UsageCounter) -> None:
    """Give back a job start whose job never reached a worker."""
    await self._repo.release_usage(owner_id, period_start=counter.period_start)
    logger.info("Released job start for owner %s in period %s", owner_id, counter.period_start)

  async def reset_usage(self, owner_id: str, period_start: datetime.date, period_end: datetime.date) -> None:
    """Reset the owner's counter for a new billing period."""
    await self._repo.reset_usage(owner_id, period_start=period_start, period_end=period_end)
    logger.info("Reset usage for owner %s to period %s..%s", owner_id, period_start, period_end)
