"""Temporal sentiment mapping.

Windows of the normalized transcript are scored per active speaker, a few
windows per LLM call. The result is one point per non-empty window in
ascending order, shaped ``{"timestamp": 30, "Alice": 0.4, "Bob": -0.2}``.
"""
import json
import os
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from models.extraction_models import SentimentBatch, WindowSentiment
from models.transcript import NormalizedTranscript, TimeWindow

logger = logging.getLogger(__name__)

SENTIMENT_BATCH_SIZE = 5


def clamp_score(value: float) -> float:
    return max(-1.0, min(1.0, float(value)))


def to_sentiment_point(window: TimeWindow, scored: Optional[WindowSentiment]) -> Dict[str, Any]:
    """Build the stored point for one window.

    Scores for speakers not active in the window are dropped and every score
    is clamped to [-1, 1].
    """
    point: Dict[str, Any] = {"timestamp": window.start}
    if scored is None:
        return point
    active = set(window.speakers)
    for entry in scored.scores:
        if entry.speaker in active:
            point[entry.speaker] = clamp_score(entry.score)
    return point


class SentimentService:
    """Per-speaker sentiment arc over 30 second windows."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: Optional[str] = None,
        batch_size: int = SENTIMENT_BATCH_SIZE
    ):
        self.client = client
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))
        self.batch_size = batch_size

    async def generate_arc(self, transcript: NormalizedTranscript, meeting_id: str = "") -> List[Dict[str, Any]]:
        """Score every window of the transcript.

        Batches run sequentially. A failed batch fails the whole arc, so a
        partial series is never persisted.
        """
        windows = transcript.windows
        points: List[Dict[str, Any]] = []

        for offset in range(0, len(windows), self.batch_size):
            batch = windows[offset:offset + self.batch_size]
            scored = await self._score_batch(batch)
            by_timestamp = {entry.timestamp: entry for entry in scored.windows}
            points.extend(to_sentiment_point(window, by_timestamp.get(window.start)) for window in batch)

        logger.info(
            f"Sentiment arc complete: meeting_id={meeting_id}, windows={len(windows)}, "
            f"calls={(len(windows) + self.batch_size - 1) // self.batch_size}"
        )
        return points

    async def _score_batch(self, batch: List[TimeWindow]) -> SentimentBatch:
        payload = [
            {"id": window.start, "speakers": window.speakers, "text": window.text}
            for window in batch
        ]
        completion = await self.client.chat.completions.parse(
            model=self.model,
            messages=[
                {"role": "system", "content": self._get_system_prompt()},
                {"role": "user", "content": json.dumps(payload)}
            ],
            response_format=SentimentBatch,
            temperature=0.2,
            timeout=self.timeout,
        )
        parsed = completion.choices[0].message.parsed
        if parsed is None:
            raise ValueError("Sentiment batch returned no result")
        return parsed

    def _get_system_prompt(self) -> str:
        return """Analyze the sentiment of each speaker in each dialogue window.

Each input window has an "id", the list of "speakers" active in it, and its "text".
For every window, return its id as "timestamp" and one score per listed speaker,
from -1.0 (negative/angry) to 1.0 (positive/excited). 0 is neutral.
Only score the speakers listed for that window."""
