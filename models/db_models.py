"""SQLModel table definitions for meetings, their owners and transcript chunks.

The meeting row is the only shared mutable resource of the processing
pipeline. Every writer (ingress, summarizer, enrichment stages) updates a
disjoint set of columns, listed in ``STAGE_FIELD_OWNERSHIP``.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Text, Index, DateTime, JSON, Boolean
from typing import Any, Optional
from datetime import datetime, timezone
from uuid import uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(SQLModel, table=True):
    """Meeting owner. Only the fields the pipeline needs for notification."""
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: Optional[str] = Field(default=None, sa_column=Column(Text, name="email"))
    name: Optional[str] = Field(default=None, sa_column=Column(Text, name="name"))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), name="created_at", nullable=False)
    )


class MeetingModel(SQLModel, table=True):
    """A recorded meeting and every artifact derived from it.

    Lifecycle (processing subset):
        CREATED -> ENDED (meeting_ended) -> TRANSCRIPT_READY -> PROCESSED

    Table: meetings
    """
    __tablename__ = "meetings"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    created_by_id: str = Field(foreign_key="users.id", index=True)

    # External correlation
    bot_id: Optional[str] = Field(default=None, index=True)
    calendar_event_id: Optional[str] = Field(default=None, unique=True)

    title: str = Field(default="Untitled Meeting", sa_column=Column(Text, name="title", nullable=False))
    start_time: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), name="start_time", nullable=True)
    )
    end_time: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), name="end_time", nullable=True)
    )

    # Raw content written by the webhook ingress
    transcript: Optional[Any] = Field(default=None, sa_column=Column(JSON, name="transcript"))
    recording_url: Optional[str] = Field(default=None, sa_column=Column(Text, name="recording_url"))
    speakers: Optional[Any] = Field(default=None, sa_column=Column(JSON, name="speakers"))

    # Pipeline state flags
    meeting_ended: bool = Field(default=False, sa_column=Column(Boolean, name="meeting_ended", nullable=False, default=False))
    meeting_ended_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), name="meeting_ended_at"))
    transcript_ready: bool = Field(default=False, sa_column=Column(Boolean, name="transcript_ready", nullable=False, default=False))
    transcript_ready_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), name="transcript_ready_at"))
    processed: bool = Field(default=False, sa_column=Column(Boolean, name="processed", nullable=False, default=False))
    processed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), name="processed_at"))
    email_sent: bool = Field(default=False, sa_column=Column(Boolean, name="email_sent", nullable=False, default=False))
    email_sent_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), name="email_sent_at"))
    rag_processed: bool = Field(default=False, sa_column=Column(Boolean, name="rag_processed", nullable=False, default=False))
    rag_processed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), name="rag_processed_at"))

    # Derived artifacts (one owner each)
    summary: Optional[str] = Field(default=None, sa_column=Column(Text, name="summary"))
    action_items: Optional[list] = Field(default=None, sa_column=Column(JSON, name="action_items"))
    risk_analysis: Optional[str] = Field(default=None, sa_column=Column(Text, name="risk_analysis"))
    sentiment_data: Optional[list] = Field(default=None, sa_column=Column(JSON, name="sentiment_data"))
    speaker_profiles: Optional[dict] = Field(default=None, sa_column=Column(JSON, name="speaker_profiles"))

    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), name="created_at", nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), name="updated_at", nullable=False)
    )


class TranscriptChunkModel(SQLModel, table=True):
    """One indexed span of a meeting transcript.

    ``vector_id`` is always ``{meeting_id}_chunk_{chunk_index}`` so that
    re-ingestion replaces vectors instead of accumulating duplicates.
    """
    __tablename__ = "transcript_chunks"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    meeting_id: str = Field(foreign_key="meetings.id", index=True)
    chunk_index: int
    content: str = Field(sa_column=Column(Text, name="content", nullable=False))
    speaker_name: Optional[str] = Field(default=None, sa_column=Column(Text, name="speaker_name"))
    vector_id: str = Field(sa_column=Column(Text, name="vector_id", nullable=False))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), name="created_at", nullable=False)
    )

    __table_args__ = (
        Index("ix_transcript_chunks_meeting_chunk", "meeting_id", "chunk_index", unique=True),
    )


def build_vector_id(meeting_id: str, chunk_index: int) -> str:
    """Deterministic vector-store id for a transcript chunk."""
    return f"{meeting_id}_chunk_{chunk_index}"


# Columns each pipeline writer may update. A writer never touches
# columns owned by another writer.
STAGE_FIELD_OWNERSHIP: dict[str, frozenset[str]] = {
    "ingress": frozenset({
        "meeting_ended", "meeting_ended_at",
        "transcript_ready", "transcript_ready_at",
        "transcript", "recording_url", "speakers",
    }),
    "summarizer": frozenset({"summary", "action_items"}),
    "email": frozenset({"email_sent", "email_sent_at"}),
    "worker": frozenset({"processed", "processed_at"}),
    "risk": frozenset({"risk_analysis"}),
    "sentiment": frozenset({"sentiment_data"}),
    "speakers": frozenset({"speaker_profiles"}),
    "vector": frozenset({"rag_processed", "rag_processed_at"}),
    "owner": frozenset({"action_items"}),
}
