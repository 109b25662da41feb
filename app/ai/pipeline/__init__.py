"""Content payload contracts."""

from app.ai.pipeline.contracts import PAYLOAD_MODELS, ContentPayload, DevotionalPayload, DiscussionGuidePayload, SermonNotesPayload, SocialMediaPayload, payload_to_storage, validate_payload

__all__ = ["ContentPayload", "DevotionalPayload", "DiscussionGuidePayload", "PAYLOAD_MODELS", "SermonNotesPayload", "SocialMediaPayload", "payload_to_storage", "validate_payload"]
