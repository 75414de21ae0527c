"""
Canonical Transcript Model

This module defines the shape-independent transcript representation that
every enrichment stage consumes. It is produced once, by the transcript
normalizer, from whichever raw shape the bot service delivered.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class TranscriptSegment:
    """
    One speaker turn.

    Attributes:
        speaker: Speaker name ("Speaker"/"Unknown" when the source has none)
        text: The spoken words joined by single spaces
        start: Start offset in seconds
    """
    speaker: str
    text: str
    start: float = 0.0

    @property
    def line(self) -> str:
        return f"{self.speaker}: {self.text}"


@dataclass(frozen=True)
class TimeWindow:
    """
    All segments whose start time falls in ``[start, start + size)``.

    Attributes:
        start: Window start offset in seconds (multiple of the window size)
        lines: ``"{speaker}: {text}"`` lines in original order
        speakers: Unique speakers active in the window, first-appearance order
    """
    start: int
    lines: List[str] = field(default_factory=list)
    speakers: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass(frozen=True)
class NormalizedTranscript:
    """
    Canonical transcript.

    Attributes:
        text: Flat ``"{speaker}: {words}"`` lines joined by newlines
        segments: Speaker turns in original order
        windows: Non-empty fixed-size time windows in ascending order
        speakers: Unique speakers in first-appearance order
        has_speaker_labels: True when the source carried real speaker names
    """
    text: str
    segments: List[TranscriptSegment] = field(default_factory=list)
    windows: List[TimeWindow] = field(default_factory=list)
    speakers: List[str] = field(default_factory=list)
    has_speaker_labels: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()
