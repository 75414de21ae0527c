"""
Webhook Event Data Models

This module defines the Pydantic models for inbound meeting-bot webhooks.
The payload shape is owned by the upstream bot service and drifts over time,
so every field except the event name is optional and unknown fields are kept.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


# Event names the bot service has used for "recording/transcript is ready"
COMPLETION_EVENTS = frozenset({
    "complete",
    "completed",
    "bot.completed",
    "bot.done",
    "recording.completed",
    "transcription.completed",
})


class WebhookData(BaseModel):
    """
    Nested data object carrying the meeting artifacts.

    ``transcript`` is intentionally untyped: it may be a list of
    speaker-tagged word segments, a plain string, or an object with a
    ``text`` field. Shape resolution happens in the transcript normalizer.
    """
    model_config = ConfigDict(extra="allow")

    bot_id: Optional[str] = Field(
        default=None,
        description="External bot/session identifier"
    )
    transcript: Optional[Any] = Field(
        default=None,
        description="Raw transcript in any of the supported shapes"
    )
    mp4: Optional[str] = Field(
        default=None,
        description="Recording URI"
    )
    speakers: Optional[Any] = Field(
        default=None,
        description="Speaker list as reported by the bot service"
    )


class WebhookEvent(BaseModel):
    """
    Envelope of a meeting-bot webhook delivery.

    Attributes:
        event: Declared event type (e.g. "complete")
        data: Event payload
    """
    model_config = ConfigDict(extra="allow")

    event: str = Field(
        default="",
        description="Declared event type"
    )
    data: WebhookData = Field(
        default_factory=WebhookData,
        description="Event payload"
    )

    def is_completion(self) -> bool:
        """Tolerant completion predicate.

        True when the declared event is a known completion name, or when the
        payload carries transcript/media regardless of the declared name.
        """
        if self.event.strip().lower() in COMPLETION_EVENTS:
            return True
        return self.data.transcript is not None or self.data.mp4 is not None


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the webhook sender."""
    success: bool
    message: Optional[str] = None
    meetingId: Optional[str] = None
    queued: Optional[bool] = None
