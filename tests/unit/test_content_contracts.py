from __future__ import annotations

from app.ai.pipeline.contracts import DEFAULT_POSTING_SCHEDULE, DEFAULT_SOCIAL_HASHTAGS, SermonNotesPayload, SocialMediaPayload, payload_to_storage, validate_payload
from app.jobs.models import ContentType
from conftest import VALID_OUTPUTS


def test_notes_sections_lead_with_scriptures_then_blanks() -> None:
  notes = validate_payload(ContentType.SERMON_NOTES, VALID_OUTPUTS[ContentType.SERMON_NOTES])
  sections = notes.to_sections()["sections"]
  assert sections[0]["title"] == "Grace is a gift"
  assert sections[0]["points"][0] == {"text": "📖 Ephesians 2:8", "blank": False}
  assert sections[0]["points"][1] == {"text": "Grace is a ___ from God.", "blank": True, "answer": "gift"}
  assert sections[1]["points"] == [{"text": "We are God's ___.", "blank": True, "answer": "workmanship"}]


def test_notes_storage_keeps_main_points_and_adds_sections() -> None:
  notes = validate_payload(ContentType.SERMON_NOTES, VALID_OUTPUTS[ContentType.SERMON_NOTES])
  stored = payload_to_storage(notes)
  assert stored["title"] == "Saved by Grace"
  assert stored["main_points"][0]["heading"] == "Grace is a gift"
  assert len(stored["sections"]) == 2
  assert "content_type" not in stored


def test_content_type_comes_from_the_task_not_the_output() -> None:
  payload = validate_payload(ContentType.SERMON_NOTES, {**VALID_OUTPUTS[ContentType.SERMON_NOTES], "content_type": "devotional"})
  assert isinstance(payload, SermonNotesPayload)


def test_social_defaults_apply_to_empty_fields() -> None:
  payload = validate_payload(ContentType.SOCIAL_MEDIA, {"quotes": [{"text": "Grace wins."}], "hashtags": [], "posting_schedule_suggestion": "  "})
  assert isinstance(payload, SocialMediaPayload)
  assert payload.hashtags == list(DEFAULT_SOCIAL_HASHTAGS)
  assert payload.posting_schedule_suggestion == DEFAULT_POSTING_SCHEDULE


def test_extra_model_keys_are_preserved() -> None:
  payload = validate_payload(ContentType.DEVOTIONAL, {**VALID_OUTPUTS[ContentType.DEVOTIONAL], "reading_time": "4 min"})
  assert payload_to_storage(payload)["reading_time"] == "4 min"
