"""Typed payload contracts for each generated content package."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from app.jobs.models import ContentType

DEFAULT_SOCIAL_HASHTAGS: tuple[str, ...] = ("#Faith", "#ChristianLiving", "#SundaySermon", "#ChurchOnline")
DEFAULT_POSTING_SCHEDULE = (
  "Post quotes throughout the week to maximize engagement. Monday and Wednesday tend to perform well for inspirational content. Share Stories/Reels on weekends when engagement is higher."
)


class _Payload(BaseModel):
  # Models sometimes add commentary keys; keep them rather than failing validation.
  model_config = ConfigDict(extra="allow")


class FillInBlank(BaseModel):
  """One fill-in-the-blank statement with its answer."""

  statement: str
  answer: str


class NotesMainPoint(BaseModel):
  """A main point of the sermon with blanks and supporting scriptures."""

  heading: str
  fill_in_blanks: list[FillInBlank] = Field(default_factory=list)
  scriptures: list[str] = Field(default_factory=list)


class SermonNotesPayload(_Payload):
  """Fill-in-the-blank sermon notes."""

  content_type: Literal["sermon_notes"] = "sermon_notes"
  title: str = Field(min_length=1)
  main_points: list[NotesMainPoint]
  discussion_questions: list[str] = Field(default_factory=list)
  application_points: list[str] = Field(default_factory=list)

  def to_sections(self) -> dict[str, Any]:
    """Flatten main points into printable sections; scriptures lead each section."""
    sections = []
    for point in self.main_points:
      points: list[dict[str, Any]] = [{"text": f"📖 {scripture}", "blank": False} for scripture in point.scriptures]
      points.extend({"text": blank.statement, "blank": True, "answer": blank.answer} for blank in point.fill_in_blanks)
      sections.append({"title": point.heading, "points": points})
    return {"sections": sections, "discussion_questions": list(self.discussion_questions), "application_points": list(self.application_points)}


class DevotionalPayload(_Payload):
  """Long-form devotional with SEO metadata."""

  content_type: Literal["devotional"] = "devotional"
  title: str = Field(min_length=1)
  meta_description: str = Field(min_length=1)
  # HTML body with heading hierarchy.
  content: str = Field(min_length=1)
  scripture_references: list[str] = Field(default_factory=list)
  keywords: list[str] = Field(default_factory=list)


class ScriptureStudyQuestion(BaseModel):
  """Discussion question anchored to a passage."""

  question: str
  scripture_reference: str = ""


class DiscussionGuidePayload(_Payload):
  """Small-group discussion guide."""

  content_type: Literal["discussion_guide"] = "discussion_guide"
  title: str = Field(min_length=1)
  icebreaker: str = ""
  scripture_study: list[ScriptureStudyQuestion]
  application_questions: list[str]
  group_activity: str = ""
  prayer_points: list[str] = Field(default_factory=list)
  additional_resources: list[str] = Field(default_factory=list)


class SocialQuote(BaseModel):
  """A quotable moment with platform-specific caption variants."""

  text: str = Field(min_length=1)
  context: str = ""
  instagram_caption: str = ""
  facebook_caption: str = ""
  twitter_text: str = ""
  linkedin_post: str = ""
  story_idea: str = ""


class SocialMediaPayload(_Payload):
  """Social media kit; tolerant of truncated trailing fields."""

  content_type: Literal["social_media"] = "social_media"
  quotes: list[SocialQuote] = Field(min_length=1)
  hashtags: list[str] = Field(default_factory=lambda: list(DEFAULT_SOCIAL_HASHTAGS))
  posting_schedule_suggestion: str = DEFAULT_POSTING_SCHEDULE

  @field_validator("hashtags", mode="before")
  @classmethod
  def _default_hashtags(cls, value: Any) -> Any:
    if not value:
      return list(DEFAULT_SOCIAL_HASHTAGS)
    return value

  @field_validator("posting_schedule_suggestion", mode="before")
  @classmethod
  def _default_schedule(cls, value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
      return DEFAULT_POSTING_SCHEDULE
    return value


ContentPayload = Annotated[SermonNotesPayload | DevotionalPayload | DiscussionGuidePayload | SocialMediaPayload, Field(discriminator="content_type")]

PAYLOAD_MODELS: dict[ContentType, type[_Payload]] = {
  ContentType.SERMON_NOTES: SermonNotesPayload,
  ContentType.DEVOTIONAL: DevotionalPayload,
  ContentType.DISCUSSION_GUIDE: DiscussionGuidePayload,
  ContentType.SOCIAL_MEDIA: SocialMediaPayload,
}

_CONTENT_PAYLOAD_ADAPTER: TypeAdapter[ContentPayload] = TypeAdapter(ContentPayload)


def validate_payload(content_type: ContentType, data: dict[str, Any]) -> ContentPayload:
  """Validate raw data as the payload variant for a content type."""
  # The discriminator comes from the task, never from model output.
  tagged = {**data, "content_type": content_type.value}
  return _CONTENT_PAYLOAD_ADAPTER.validate_python(tagged)


def payload_to_storage(payload: ContentPayload) -> dict[str, Any]:
  """Dump a payload into the JSON stored on the artifact row."""
  data = payload.model_dump(mode="json", exclude={"content_type"})
  # Printable notes are rendered from sections, so store them alongside the raw points.
  if isinstance(payload, SermonNotesPayload):
    data["sections"] = payload.to_sections()["sections"]
  return data
