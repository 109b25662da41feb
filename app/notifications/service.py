"""Completion notifications and analytics events for sermon jobs."""

from __future__ import annotations

import asyncio
import html
import logging
from collections.abc import Coroutine
from typing import Any

from starlette.concurrency import run_in_threadpool

from app.notifications.contracts import AnalyticsEventEntry, AnalyticsSink, EmailNotification, EmailSender, NotificationProviderError, SermonCompletedEvent

logger = logging.getLogger(__name__)

_CONTENT_LABELS = {"sermon_notes": "Sermon notes", "devotional": "Devotional", "discussion_guide": "Discussion guide", "social_media": "Social media posts"}


def render_completion_email(event: SermonCompletedEvent, *, app_base_url: str | None) -> tuple[str, str, str]:
  """Return (subject, text, html) for a completion email."""
  title = event.sermon_title or "Your sermon"
  subject = f"{title} is ready"
  lines = [f"{_CONTENT_LABELS.get(key, key)}: {'ready' if ok else 'failed'}" for key, ok in event.success_map.items()]
  link = f"{app_base_url.rstrip('/')}/sermons/{event.sermon_id}" if app_base_url else None

  text_parts = [f"{title} has finished processing.", "", *lines]
  if link:
    text_parts.extend(["", f"View it here: {link}"])
  text_body = "\n".join(text_parts)

  items = "".join(f"<li>{html.escape(line)}</li>" for line in lines)
  html_body = f"<p>{html.escape(title)} has finished processing.</p><ul>{items}</ul>"
  if link:
    html_body += f'<p><a href="{html.escape(link)}">View your content</a></p>'
  return subject, text_body, html_body


class NotificationService:
  """Dispatches completion emails and analytics events without blocking the pipeline.

  Every public emit_* method schedules work and returns immediately; delivery
  failures are logged and never raised to the caller.
  """

  def __init__(self, *, email_sender: EmailSender, analytics_sink: AnalyticsSink, email_enabled: bool, app_base_url: str | None = None) -> None:
    self._email_sender = email_sender
    self._analytics_sink = analytics_sink
    self._email_enabled = email_enabled
    self._app_base_url = app_base_url
    self._pending: set[asyncio.Task[None]] = set()

  def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
    task = asyncio.create_task(coro)
    # Hold a reference until completion so the loop does not drop the task.
    self._pending.add(task)
    task.add_done_callback(self._pending.discard)
    task.add_done_callback(self._log_task_error)
    return task

  @staticmethod
  def _log_task_error(task: asyncio.Task[None]) -> None:
    """Log background task exceptions to avoid silent delivery failures."""
    if task.cancelled():
      return
    try:
      _ = task.result()
    except Exception as exc:  # noqa: BLE001
      logger.error("Background notification task failed: %s", exc, exc_info=True)

  async def drain(self) -> None:
    """Wait for scheduled deliveries; used at shutdown and in tests."""
    if self._pending:
      await asyncio.gather(*list(self._pending), return_exceptions=True)

  def emit_sermon_completed(self, event: SermonCompletedEvent) -> None:
    """Schedule the completion email and the sermon_processed analytics event."""
    self.emit_analytics(AnalyticsEventEntry(owner_id=event.owner_id, sermon_id=event.sermon_id, event_type="sermon_processed", event_data={"job_id": event.job_id, "results": dict(event.success_map)}))
    if not self._email_enabled:
      return
    if not event.owner_email:
      logger.info("No email address known for owner %s; skipping completion email for sermon %s", event.owner_id, event.sermon_id)
      return
    self._spawn(self._send_completion_email(event))

  def emit_content_generated(self, *, owner_id: str, sermon_id: str, content_type: str) -> None:
    """Schedule the content_generated analytics event."""
    self.emit_analytics(AnalyticsEventEntry(owner_id=owner_id, sermon_id=sermon_id, event_type="content_generated", event_data={"content_type": content_type}))

  def emit_analytics(self, entry: AnalyticsEventEntry) -> None:
    self._spawn(self._record_analytics(entry))

  async def _record_analytics(self, entry: AnalyticsEventEntry) -> None:
    try:
      await self._analytics_sink.insert(entry)
    except Exception as exc:  # noqa: BLE001
      logger.error("Analytics event insert failed event_type=%s sermon_id=%s error=%s", entry.event_type, entry.sermon_id, exc)

  async def _send_completion_email(self, event: SermonCompletedEvent) -> None:
    try:
      subject, text_body, html_body = render_completion_email(event, app_base_url=self._app_base_url)
      notification = EmailNotification(to_address=event.owner_email or "", to_name=None, subject=subject, text=text_body, html=html_body)
      result = await run_in_threadpool(self._email_sender.send, notification)
      logger.info("Completion email sent for sermon %s provider=%s message_id=%s", event.sermon_id, result.get("provider"), result.get("message_id"))

    except NotificationProviderError as exc:
      # Provider errors are often expected (bad address, quota); skip the traceback.
      logger.error("Completion email delivery failed (provider error): %s", exc)

    except Exception as exc:  # noqa: BLE001
      logger.error("Completion email delivery failed: %s", exc, exc_info=True)
