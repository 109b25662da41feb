"""Create sermon pipeline tables.

Revision ID: 5c1e2a9d7f10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from app.core.migration_guards import guarded_create_enum, guarded_create_index, guarded_create_table, guarded_drop_enum, guarded_drop_index, guarded_drop_table
from sqlalchemy.dialects import postgresql

revision = "5c1e2a9d7f10"
down_revision = None
branch_labels = None
depends_on = None

SERMON_STATUS_VALUES = ("uploading", "processing", "transcribing", "generating", "complete", "error")
CONTENT_TYPE_VALUES = ("sermon_notes", "devotional", "discussion_guide", "social_media")
SUBSCRIPTION_STATUS_VALUES = ("active", "trialing", "past_due", "canceled", "incomplete", "unpaid")


def upgrade() -> None:
  """Upgrade schema."""
  guarded_create_enum("sermon_status", *SERMON_STATUS_VALUES)
  guarded_create_enum("content_type", *CONTENT_TYPE_VALUES)
  guarded_create_enum("subscription_status", *SUBSCRIPTION_STATUS_VALUES)

  guarded_create_table(
    "sermons",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("title", sa.String(), nullable=True),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("preacher_name", sa.String(), nullable=True),
    sa.Column("scripture_reference", sa.String(), nullable=True),
    sa.Column("sermon_date", sa.Date(), nullable=True),
    sa.Column("status", postgresql.ENUM(*SERMON_STATUS_VALUES, name="sermon_status", create_type=False), nullable=False),
    sa.Column("transcript", sa.Text(), nullable=True),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("audio_url", sa.String(), nullable=True),
    sa.Column("video_url", sa.String(), nullable=True),
    sa.Column("youtube_url", sa.String(), nullable=True),
    sa.Column("document_url", sa.String(), nullable=True),
    sa.Column("owner_email", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index(op.f("ix_sermons_user_id"), "sermons", ["user_id"], unique=False)

  guarded_create_table(
    "generated_content",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("sermon_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("content_type", postgresql.ENUM(*CONTENT_TYPE_VALUES, name="content_type", create_type=False), nullable=False),
    sa.Column("content", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["sermon_id"], ["sermons.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("sermon_id", "content_type", name="ux_generated_content_sermon_type"),
  )
  guarded_create_index(op.f("ix_generated_content_sermon_id"), "generated_content", ["sermon_id"], unique=False)

  guarded_create_table(
    "subscriptions",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("plan_id", sa.String(), nullable=True),
    sa.Column("status", postgresql.ENUM(*SUBSCRIPTION_STATUS_VALUES, name="subscription_status", create_type=False), nullable=False),
    sa.Column("sermon_limit", sa.Integer(), nullable=True),
    sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
    sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
    sa.Column("trial_start", sa.DateTime(timezone=True), nullable=True),
    sa.Column("trial_end", sa.DateTime(timezone=True), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index(op.f("ix_subscriptions_user_id"), "subscriptions", ["user_id"], unique=True)

  guarded_create_table(
    "usage_quotas",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("period_start", sa.Date(), nullable=False),
    sa.Column("period_end", sa.Date(), nullable=False),
    sa.Column("used", sa.BigInteger(), server_default="0", nullable=False),
    sa.Column("limit", sa.Integer(), nullable=False),
    sa.Column("is_trial", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index(op.f("ix_usage_quotas_user_id"), "usage_quotas", ["user_id"], unique=True)

  guarded_create_table(
    "sermon_jobs",
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("sermon_id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("job_kind", sa.String(), nullable=False),
    sa.Column("content_types", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("skip_transcription", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("success_map", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error_kind", sa.String(), nullable=True),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(["sermon_id"], ["sermons.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("job_id"),
  )
  guarded_create_index(op.f("ix_sermon_jobs_sermon_id"), "sermon_jobs", ["sermon_id"], unique=False)
  guarded_create_index(op.f("ix_sermon_jobs_user_id"), "sermon_jobs", ["user_id"], unique=False)
  guarded_create_index(op.f("ix_sermon_jobs_status"), "sermon_jobs", ["status"], unique=False)

  guarded_create_table(
    "sermon_job_steps",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("step_name", sa.String(), nullable=False),
    sa.Column("state", sa.String(), nullable=False),
    sa.Column("attempt_count", sa.Integer(), nullable=False),
    sa.Column("last_error", sa.Text(), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["job_id"], ["sermon_jobs.job_id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index(op.f("ix_sermon_job_steps_job_id"), "sermon_job_steps", ["job_id"], unique=False)
  guarded_create_index("ux_sermon_job_steps_job_step", "sermon_job_steps", ["job_id", "step_name"], unique=True)

  guarded_create_table(
    "analytics_events",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("sermon_id", postgresql.UUID(as_uuid=True), nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("event_data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index(op.f("ix_analytics_events_user_id"), "analytics_events", ["user_id"], unique=False)
  guarded_create_index(op.f("ix_analytics_events_sermon_id"), "analytics_events", ["sermon_id"], unique=False)
  guarded_create_index(op.f("ix_analytics_events_event_type"), "analytics_events", ["event_type"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  guarded_drop_index(op.f("ix_analytics_events_event_type"), table_name="analytics_events")
  guarded_drop_index(op.f("ix_analytics_events_sermon_id"), table_name="analytics_events")
  guarded_drop_index(op.f("ix_analytics_events_user_id"), table_name="analytics_events")
  guarded_drop_table("analytics_events")
  guarded_drop_index("ux_sermon_job_steps_job_step", table_name="sermon_job_steps")
  guarded_drop_index(op.f("ix_sermon_job_steps_job_id"), table_name="sermon_job_steps")
  guarded_drop_table("sermon_job_steps")
  guarded_drop_index(op.f("ix_sermon_jobs_status"), table_name="sermon_jobs")
  guarded_drop_index(op.f("ix_sermon_jobs_user_id"), table_name="sermon_jobs")
  guarded_drop_index(op.f("ix_sermon_jobs_sermon_id"), table_name="sermon_jobs")
  guarded_drop_table("sermon_jobs")
  guarded_drop_index(op.f("ix_usage_quotas_user_id"), table_name="usage_quotas")
  guarded_drop_table("usage_quotas")
  guarded_drop_index(op.f("ix_subscriptions_user_id"), table_name="subscriptions")
  guarded_drop_table("subscriptions")
  guarded_drop_index(op.f("ix_generated_content_sermon_id"), table_name="generated_content")
  guarded_drop_table("generated_content")
  guarded_drop_index(op.f("ix_sermons_user_id"), table_name="sermons")
  guarded_drop_table("sermons")
  guarded_drop_enum("subscription_status")
  guarded_drop_enum("content_type")
  guarded_drop_enum("sermon_status")
