"""Adversarial risk review of a meeting.

The model returns a structured ``RiskReport``; the markup stored on the
meeting is rendered here from a fixed set of tags, with every piece of model
text HTML-escaped. Model output is never stored as markup directly.
"""
import html
import os
import logging
from typing import Optional

from openai import AsyncOpenAI

from models.extraction_models import RiskReport
from models.transcript import NormalizedTranscript

logger = logging.getLogger(__name__)

MAX_RISK_INPUT_CHARS = 15000


class RiskService:
    """Devil's-advocate analysis of plans discussed in a meeting."""

    def __init__(self, client: AsyncOpenAI, model: Optional[str] = None):
        self.client = client
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))

    async def analyze(self, transcript: NormalizedTranscript, meeting_id: str = "") -> Optional[str]:
        """Produce risk markup for a meeting, or None if nothing could be produced.

        Raises:
            Exception: OpenAI failures propagate to the fan-out coordinator,
                which records them as a failed stage.
        """
        if transcript.is_empty:
            logger.info(f"Skipping risk analysis for empty transcript: meeting_id={meeting_id}")
            return None

        completion = await self.client.chat.completions.parse(
            model=self.model,
            messages=[
                {"role": "system", "content": self._get_system_prompt()},
                {"role": "user", "content": transcript.text[:MAX_RISK_INPUT_CHARS]}
            ],
            response_format=RiskReport,
            temperature=0.7,
            timeout=self.timeout,
        )
        report = completion.choices[0].message.parsed
        if report is None:
            logger.warning(f"Risk analysis returned no report: meeting_id={meeting_id}")
            return None

        logger.info(
            f"Risk analysis complete: meeting_id={meeting_id}, "
            f"risks={len(report.critical_risks)}, blind_spots={len(report.blind_spots)}, "
            f"confidence={report.confidence_score}"
        )
        return render_risk_report(report)

    def _get_system_prompt(self) -> str:
        return """You are "The Devil's Advocate", a ruthless senior risk analyst.
Do NOT summarize. Do NOT be polite. Your job is to find flaws in what was discussed.

Identify:
1. Critical risks: anything that could derail the plans or decisions made
2. Blind spots: assumptions nobody questioned, topics nobody raised
3. Confidence score: 0-100, how likely the plans are to succeed as stated

Keep every item to one or two sentences."""


def render_risk_report(report: RiskReport) -> str:
    """Render a RiskReport using only div, h3, ul, li, strong, p and span.text-red-500."""
    parts = ["<div>"]

    parts.append("<h3>Critical Risks</h3>")
    parts.append(_render_list(report.critical_risks, highlight=True))

    parts.append("<h3>Blind Spots</h3>")
    parts.append(_render_list(report.blind_spots, highlight=False))

    parts.append("<h3>Confidence Score</h3>")
    parts.append(f"<p><strong>{int(report.confidence_score)}%</strong></p>")

    parts.append("</div>")
    return "".join(parts)


def _render_list(items: list[str], highlight: bool) -> str:
    if not items:
        return "<p>None identified.</p>"
    rendered = []
    for item in items:
        text = html.escape(item.strip())
        if highlight:
            text = f'<span class="text-red-500">{text}</span>'
        rendered.append(f"<li>{text}</li>")
    return "<ul>" + "".join(rendered) + "</ul>"
