"""
Owner-facing Request/Response Models

Pydantic models for the meeting, action-item and chat endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActionItemCreateRequest(BaseModel):
    """
    Request body for adding an action item.

    Attributes:
        text: Action item text (required, must not be whitespace-only)
    """
    text: str = Field(..., description="Action item text")

    @field_validator('text')
    @classmethod
    def text_must_not_be_empty(cls, v: str) -> str:
        """Validate that text is not empty or whitespace-only."""
        if not v or not v.strip():
            raise ValueError("text field cannot be empty or contain only whitespace")
        return v.strip()


class MeetingResponse(BaseModel):
    """A meeting record as seen by its owner."""
    id: str
    title: str
    created_by_id: str
    bot_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    recording_url: Optional[str] = None
    transcript: Optional[Any] = None
    speakers: Optional[Any] = None
    meeting_ended: bool = False
    transcript_ready: bool = False
    processed: bool = False
    processed_at: Optional[datetime] = None
    email_sent: bool = False
    rag_processed: bool = False
    summary: Optional[str] = None
    action_items: List[Dict[str, Any]] = Field(default_factory=list)
    risk_analysis: Optional[str] = None
    sentiment_data: Optional[List[Dict[str, Any]]] = None
    speaker_profiles: Optional[Dict[str, Any]] = None
    is_processing: bool = True
    is_owner: bool = True


class ChatMeetingRequest(BaseModel):
    """Request body for POST /chat/meeting"""
    model_config = ConfigDict(populate_by_name=True)

    meeting_id: str = Field(..., alias="meetingId", min_length=1)
    question: str = Field(..., min_length=1)


class ChatAllRequest(BaseModel):
    """Request body for POST /chat/all"""
    question: str = Field(..., min_length=1)


class ChatSource(BaseModel):
    """A transcript chunk cited by a chat answer."""
    meetingId: Optional[str] = None
    meetingTitle: Optional[str] = None
    content: Optional[str] = None
    speakerName: Optional[str] = None
    confidence: Optional[float] = None


class ChatResponse(BaseModel):
    """Answer to a chat question."""
    answer: str
    sources: List[ChatSource] = Field(default_factory=list)
    isCached: bool = False


class GraphViewNode(BaseModel):
    """An entity in the graph view. ``label`` is its node type."""
    id: str
    label: str


class GraphViewLink(BaseModel):
    """A relationship in the graph view. ``label`` is its relationship type."""
    source: str
    target: str
    label: str


class GraphViewResponse(BaseModel):
    """Nodes and links for a force-directed graph view."""
    nodes: List[GraphViewNode] = Field(default_factory=list)
    links: List[GraphViewLink] = Field(default_factory=list)
