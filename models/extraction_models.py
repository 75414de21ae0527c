"""Pydantic models for LLM extraction using structured outputs.

These models define the structure each enrichment stage asks the LLM for.
They are used with OpenAI Structured Outputs (and instructor for the graph
extractor) to ensure reliable parsing of LLM responses.
"""
from pydantic import BaseModel, Field
from typing import List, Literal


# --- Summarizer ---

class MeetingSummaryExtraction(BaseModel):
    """Summary and action items as returned by the LLM."""
    summary: str = Field(
        description="A 2-3 sentence summary of the key discussion points and decisions"
    )
    action_items: List[str] = Field(
        default_factory=list,
        description="Actionable tasks and follow-ups, most relevant first"
    )


class ActionItem(BaseModel):
    """An action item as stored on the meeting record."""
    id: int = Field(ge=1, description="Per-meeting identifier, 1-based")
    text: str


class SummaryResult(BaseModel):
    """Output of the summarizer stage."""
    summary: str
    action_items: List[ActionItem] = Field(default_factory=list)


# --- Risk analyzer ---

class RiskReport(BaseModel):
    """Adversarial review of a meeting."""
    critical_risks: List[str] = Field(
        default_factory=list,
        description="Critical risks that could derail the plans discussed"
    )
    blind_spots: List[str] = Field(
        default_factory=list,
        description="Assumptions or topics the participants failed to examine"
    )
    confidence_score: int = Field(
        ge=0,
        le=100,
        description="Confidence (0-100) that the plans discussed will succeed as stated"
    )


# --- Sentiment arc ---

class SpeakerScore(BaseModel):
    """Sentiment of one speaker inside one window."""
    speaker: str = Field(description="Speaker name exactly as it appears in the window")
    score: float = Field(description="-1.0 (negative/angry) to 1.0 (positive/excited), 0 is neutral")


class WindowSentiment(BaseModel):
    """Per-speaker sentiment for one time window."""
    timestamp: int = Field(description="The window id given in the input")
    scores: List[SpeakerScore] = Field(default_factory=list)


class SentimentBatch(BaseModel):
    """Sentiment for a batch of windows."""
    windows: List[WindowSentiment] = Field(default_factory=list)


# --- Speaker profiler ---

class SpeakerProfile(BaseModel):
    """Behavioral profile of one participant."""
    name: str = Field(description="Speaker name exactly as it appears in the transcript")
    role: str = Field(description="Inferred role in the meeting (e.g. facilitator, decision maker)")
    sentiment: str = Field(description="Overall attitude during the meeting")
    trait: str = Field(description="Most prominent communication trait")
    feedback: str = Field(description="One piece of constructive feedback for this speaker")


class SpeakerProfiles(BaseModel):
    """Profiles for every speaker in the meeting."""
    profiles: List[SpeakerProfile] = Field(default_factory=list)


# --- Knowledge graph ---

NodeType = Literal["Person", "Project", "Company", "Technology", "Risk", "Decision"]
RelationshipType = Literal["WORKS_ON", "MANAGED_BY", "MENTIONED", "HAS_RISK", "DECIDED_TO"]

NODE_TYPES: tuple[str, ...] = ("Person", "Project", "Company", "Technology", "Risk", "Decision")
RELATIONSHIP_TYPES: tuple[str, ...] = ("WORKS_ON", "MANAGED_BY", "MENTIONED", "HAS_RISK", "DECIDED_TO")


class GraphNode(BaseModel):
    """An entity mentioned in the meeting."""
    id: str = Field(description="Canonical human-readable name of the entity")
    type: NodeType


class GraphRelationship(BaseModel):
    """A typed, directed relationship between two extracted entities."""
    source: str = Field(description="id of the source node")
    target: str = Field(description="id of the target node")
    type: RelationshipType


class GraphExtraction(BaseModel):
    """Entities and relationships extracted from a transcript."""
    nodes: List[GraphNode] = Field(default_factory=list)
    relationships: List[GraphRelationship] = Field(default_factory=list)
