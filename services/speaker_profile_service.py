"""Behavioral profiling of meeting participants."""
import os
import logging
from typing import Dict, Optional

from openai import AsyncOpenAI

from models.extraction_models import SpeakerProfiles
from models.transcript import NormalizedTranscript
from services.transcript_normalizer import UNKNOWN_SPEAKER

logger = logging.getLogger(__name__)

MAX_PROFILE_INPUT_CHARS = 20000


class SpeakerProfileService:

    def __init__(self, client: AsyncOpenAI, model: Optional[str] = None):
        self.client = client
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))

    async def generate_profiles(
        self,
        transcript: NormalizedTranscript,
        meeting_id: str = ""
    ) -> Optional[Dict[str, Dict[str, str]]]:
        """Profile each speaker as ``{name: {role, sentiment, trait, feedback}}``.

        When the transcript carries speaker labels, profiles for names that
        never spoke are discarded.
        """
        if transcript.is_empty:
            logger.info(f"Skipping speaker profiles for empty transcript: meeting_id={meeting_id}")
            return None

        completion = await self.client.chat.completions.parse(
            model=self.model,
            messages=[
                {"role": "system", "content": self._get_system_prompt()},
                {"role": "user", "content": transcript.text[:MAX_PROFILE_INPUT_CHARS]}
            ],
            response_format=SpeakerProfiles,
            temperature=0.4,
            timeout=self.timeout,
        )
        parsed = completion.choices[0].message.parsed
        if parsed is None:
            return None

        known = set(transcript.speakers) - {UNKNOWN_SPEAKER} if transcript.has_speaker_labels else None
        profiles: Dict[str, Dict[str, str]] = {}
        for profile in parsed.profiles:
            name = profile.name.strip()
            if not name or (known is not None and name not in known):
                continue
            profiles[name] = {
                "role": profile.role,
                "sentiment": profile.sentiment,
                "trait": profile.trait,
                "feedback": profile.feedback,
            }

        logger.info(
            f"Speaker profiles complete: meeting_id={meeting_id}, "
            f"profiles={len(profiles)}, discarded={len(parsed.profiles) - len(profiles)}"
        )
        return profiles

    def _get_system_prompt(self) -> str:
        return """You are an organizational psychologist reviewing a meeting transcript.

For every speaker in the transcript, infer:
- role: the part they played (e.g. facilitator, decision maker, skeptic)
- sentiment: their overall attitude
- trait: their most prominent communication trait
- feedback: one piece of constructive feedback

Use speaker names exactly as they appear in the transcript. Do not invent speakers."""
