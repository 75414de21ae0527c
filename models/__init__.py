"""Data models for the meeting intelligence service."""
from .transcript import NormalizedTranscript, TranscriptSegment, TimeWindow
from .extraction_models import (
    MeetingSummaryExtraction,
    ActionItem,
    SummaryResult,
    RiskReport,
    SentimentBatch,
    WindowSentiment,
    SpeakerScore,
    SpeakerProfile,
    SpeakerProfiles,
    GraphNode,
    GraphRelationship,
    GraphExtraction,
)
from .db_models import (
    UserModel,
    MeetingModel,
    TranscriptChunkModel,
    STAGE_FIELD_OWNERSHIP,
    build_vector_id,
)
from .job_models import (
    ProcessMeetingJob,
    StageName,
    StageResult,
    FanOutReport,
    PipelineReport,
)
from .webhook_models import WebhookEvent, WebhookData, COMPLETION_EVENTS

__all__ = [
    # Canonical transcript
    "NormalizedTranscript",
    "TranscriptSegment",
    "TimeWindow",
    # Extraction models
    "MeetingSummaryExtraction",
    "ActionItem",
    "SummaryResult",
    "RiskReport",
    "SentimentBatch",
    "WindowSentiment",
    "SpeakerScore",
    "SpeakerProfile",
    "SpeakerProfiles",
    "GraphNode",
    "GraphRelationship",
    "GraphExtraction",
    # Database models
    "UserModel",
    "MeetingModel",
    "TranscriptChunkModel",
    "STAGE_FIELD_OWNERSHIP",
    "build_vector_id",
    # Jobs
    "ProcessMeetingJob",
    "StageName",
    "StageResult",
    "FanOutReport",
    "PipelineReport",
    # Webhooks
    "WebhookEvent",
    "WebhookData",
    "COMPLETION_EVENTS",
]
