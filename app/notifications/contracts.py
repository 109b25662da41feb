"""Contracts for completion notifications and analytics events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class SermonCompletedEvent:
  """Emitted once a sermon job reaches the complete state."""

  sermon_id: str
  owner_id: str
  sermon_title: str | None
  success_map: dict[str, bool]
  job_id: str | None = None
  owner_email: str | None = None

  @property
  def succeeded_count(self) -> int:
    return sum(1 for ok in self.success_map.values() if ok)


@dataclass(frozen=True)
class AnalyticsEventEntry:
  """One product analytics event, recorded best-effort."""

  owner_id: str
  event_type: str
  sermon_id: str | None = None
  event_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EmailNotification:
  """Represents an email notification payload."""

  to_address: str
  to_name: str | None
  subject: str
  text: str
  html: str


class NotificationError(Exception):
  """Base class for all notification delivery failures."""


class NotificationProviderError(NotificationError):
  """Exception raised when a specific provider (e.g. MailerSend) returns a delivery error."""


class EmailSender(Protocol):
  """Delivery contract for sending email notifications."""

  def send(self, notification: EmailNotification) -> dict[str, str | None]:
    """Send an email notification synchronously and return provider identifiers."""


class AnalyticsSink(Protocol):
  """Destination for analytics events."""

  async def insert(self, entry: AnalyticsEventEntry) -> None:
    """Persist an analytics event."""
