"""Job models for deferred meeting processing.

A job is created by the webhook ingress once the meeting record has been
updated, published to the durable queue, and delivered to the worker
endpoint (at-least-once).

Job Lifecycle:
    queued -> delivered -> succeeded | failed (non-retryable)

Only the transcript is trusted from the job body. Ownership, title and
pipeline flags are always re-read from the current meeting record.
"""
from typing import Any, Optional
import enum

from pydantic import BaseModel, ConfigDict, Field


class StageName(str, enum.Enum):
    """Independent enrichment stages launched by the fan-out coordinator."""
    vector = "vector"
    risk = "risk"
    graph = "graph"
    sentiment = "sentiment"
    speakers = "speakers"


class ProcessMeetingJob(BaseModel):
    """Body of a queued processing job.

    Wire format is camelCase, matching what the queue delivers.
    """
    model_config = ConfigDict(populate_by_name=True)

    meeting_id: str = Field(..., alias="meetingId", min_length=1)
    transcript: Optional[Any] = Field(default=None)
    bot_id: Optional[str] = Field(default=None, alias="botId")
    meeting_title: Optional[str] = Field(default=None, alias="meetingTitle")


class StageResult(BaseModel):
    """Outcome of one enrichment stage."""
    name: str
    succeeded: bool
    error: Optional[str] = None
    duration_ms: float = 0.0


class FanOutReport(BaseModel):
    """Settle-all outcome of the concurrent enrichment stages."""
    results: list[StageResult] = Field(default_factory=list)

    @property
    def failed(self) -> list[str]:
        return [r.name for r in self.results if not r.succeeded]

    @property
    def succeeded(self) -> list[str]:
        return [r.name for r in self.results if r.succeeded]

    def get(self, name: str) -> Optional[StageResult]:
        for result in self.results:
            if result.name == name:
                return result
        return None


class PipelineReport(BaseModel):
    """Everything the worker did for one job."""
    meeting_id: str
    summarized: bool = False
    email_sent: bool = False
    skipped_summary: bool = False
    fan_out: FanOutReport = Field(default_factory=FanOutReport)


class JobResponse(BaseModel):
    """Response model for POST /queue/process-meeting"""
    success: bool
    meetingId: str
    summarized: bool = False
    skippedSummary: bool = False
    stages: dict[str, StageResult] = Field(default_factory=dict)
