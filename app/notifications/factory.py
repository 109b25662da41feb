"""Factory helpers for notification services."""

from __future__ import annotations

from app.config import Settings
from app.notifications.analytics_repo import AnalyticsEventRepository, NullAnalyticsEventRepository
from app.notifications.contracts import AnalyticsSink, EmailSender
from app.notifications.email_sender import MailerSendConfig, MailerSendEmailSender, NullEmailSender
from app.notifications.service import NotificationService


def build_notification_service(settings: Settings) -> NotificationService:
  """Construct a notification service based on environment configuration."""
  # Email is disabled by default to avoid accidental delivery in dev/test.
  if settings.email_notifications_enabled:
    mailersend_config = MailerSendConfig(
      api_key=settings.mailersend_api_key or "", from_address=settings.email_from_address or "", from_name=settings.email_from_name, timeout_seconds=settings.mailersend_timeout_seconds, base_url=settings.mailersend_base_url
    )
    email_sender: EmailSender = MailerSendEmailSender(config=mailersend_config)
  else:
    email_sender = NullEmailSender()

  # Persist analytics only when Postgres is configured.
  if settings.pg_dsn:
    analytics_sink: AnalyticsSink = AnalyticsEventRepository()
  else:
    analytics_sink = NullAnalyticsEventRepository()

  return NotificationService(email_sender=email_sender, analytics_sink=analytics_sink, email_enabled=settings.email_notifications_enabled, app_base_url=settings.app_base_url)
