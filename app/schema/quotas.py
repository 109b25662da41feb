"""SQLAlchemy models for subscriptions and per-owner sermon usage counters."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import BigInteger, Boolean, Date, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class SubscriptionStatus(str, enum.Enum):
  """Billing provider subscription states mirrored locally."""

  ACTIVE = "active"
  TRIALING = "trialing"
  PAST_DUE = "past_due"
  CANCELED = "canceled"
  INCOMPLETE = "incomplete"
  UNPAID = "unpaid"


class Subscription(Base):
  """Owner subscription written by the billing webhook."""

  __tablename__ = "subscriptions"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
  plan_id: Mapped[str | None] = mapped_column(String, nullable=True)
  status: Mapped[SubscriptionStatus] = mapped_column(ENUM(SubscriptionStatus, name="subscription_status", values_callable=lambda enum_cls: [item.value for item in enum_cls], create_type=False), nullable=False)
  sermon_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
  current_period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  trial_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  trial_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class UsageQuota(Base):
  """Per-owner job-start counter for the active period."""

  __tablename__ = "usage_quotas"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  user_id: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
  period_start: Mapped[date] = mapped_column(Date, nullable=False)
  period_end: Mapped[date] = mapped_column(Date, nullable=False)
  used: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
  # -1 means unlimited.
  limit: Mapped[int] = mapped_column(Integer, nullable=False)
  is_trial: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
