"""Schema package exports."""

from .analytics import AnalyticsEvent
from .quotas import Subscription, SubscriptionStatus, UsageQuota
from .sermons import GeneratedContent, Sermon, SermonJob, SermonJobStep

__all__ = ["AnalyticsEvent", "GeneratedContent", "Sermon", "SermonJob", "SermonJobStep", "Subscription", "SubscriptionStatus", "UsageQuota"]
