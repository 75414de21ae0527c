"""SummarizerService for turning a meeting transcript into a summary and action items.

Uses OpenAI Structured Outputs so the reply always parses into
``MeetingSummaryExtraction``. The summarizer never raises: on any failure
it returns a fixed fallback summary with no action items, so the worker can
always mark the meeting processed.
"""
import os
import logging
from typing import Optional

from openai import AsyncOpenAI

from models.extraction_models import ActionItem, MeetingSummaryExtraction, SummaryResult
from models.transcript import NormalizedTranscript

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = (
    "Meeting transcript processed successfully. Please check the full transcript for details."
)
MISSING_SUMMARY = "Summary could not be generated"


class SummarizerService:
    """Summary + action item extraction for a whole meeting."""

    def __init__(self, client: AsyncOpenAI, model: Optional[str] = None):
        self.client = client
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))
        logger.info(f"SummarizerService initialized with model: {self.model}")

    async def process_meeting_transcript(
        self,
        transcript: NormalizedTranscript,
        meeting_id: str = ""
    ) -> SummaryResult:
        """Summarize a meeting.

        Args:
            transcript: Normalized transcript
            meeting_id: Meeting identifier for logging

        Returns:
            SummaryResult with 1-based action item ids, or the fallback
            summary and no action items on any failure
        """
        if transcript.is_empty:
            logger.warning(f"Empty transcript, using fallback summary: meeting_id={meeting_id}")
            return fallback_summary()

        logger.info(
            f"Summarizing transcript: meeting_id={meeting_id}, "
            f"length={len(transcript.text)} chars"
        )

        try:
            completion = await self.client.chat.completions.parse(
                model=self.model,
                messages=[
                    {"role": "system", "content": self._get_system_prompt()},
                    {"role": "user", "content": f"Analyze this meeting:\n\n{transcript.text}"}
                ],
                response_format=MeetingSummaryExtraction,
                temperature=0.3,
                max_tokens=1000,
                timeout=self.timeout,
            )

            parsed = completion.choices[0].message.parsed
            if parsed is None:
                raise ValueError("Empty response from OpenAI")

            result = to_summary_result(parsed)
            logger.info(
                f"Transcript summarized: meeting_id={meeting_id}, "
                f"summary_length={len(result.summary)}, action_items={len(result.action_items)}"
            )
            return result

        except Exception as e:
            logger.error(
                f"Failed to summarize transcript: meeting_id={meeting_id}, error={str(e)}",
                exc_info=True
            )
            return fallback_summary()

    def _get_system_prompt(self) -> str:
        return """You are an AI assistant that analyzes meeting transcripts and provides concise summaries and action items.

Provide:
1. A 2-3 sentence summary of the key discussion points and decisions.
2. A list of action items: concrete tasks, follow-ups and commitments.

Only use information stated in the transcript."""


def to_summary_result(extraction: MeetingSummaryExtraction) -> SummaryResult:
    """Number extracted action items from 1 in the order the model gave them."""
    texts = [text.strip() for text in extraction.action_items if text and text.strip()]
    return SummaryResult(
        summary=extraction.summary.strip() or MISSING_SUMMARY,
        action_items=[ActionItem(id=index + 1, text=text) for index, text in enumerate(texts)],
    )


def fallback_summary() -> SummaryResult:
    return SummaryResult(summary=FALLBACK_SUMMARY, action_items=[])
