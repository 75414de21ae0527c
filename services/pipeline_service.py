"""Meeting processing pipeline.

Runs one delivered job end to end:

    1. re-read the meeting record (the job body is not trusted for
       ownership, title or flags)
    2. normalize the transcript once
    3. summarize, persist summary + action items, email the owner, and mark
       the meeting processed (skipped when already processed)
    4. fan out the five independent enrichment stages and settle all of them

Step 4 never raises. Each stage either persists its own fields or is
reported as failed in the FanOutReport.
"""
import asyncio
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from models.db_models import MeetingModel
from models.extraction_models import SummaryResult
from models.job_models import (
    FanOutReport,
    PipelineReport,
    ProcessMeetingJob,
    StageName,
    StageResult,
)
from models.transcript import NormalizedTranscript
from services.email_service import EmailService
from services.graph_service import GraphService
from services.meeting_repository import MeetingRepository
from services.risk_service import RiskService
from services.sentiment_service import SentimentService
from services.speaker_profile_service import SpeakerProfileService
from services.summarizer_service import SummarizerService
from services.transcript_normalizer import normalize_transcript
from services.vector_index_service import VectorIndexService

logger = logging.getLogger(__name__)

DEFAULT_STAGE_TIMEOUT_SECONDS = 180.0
PROCESSING_FAILED_SUMMARY = "processing failed. Please check the transcript manually."

StageFactory = Callable[[], Awaitable[Any]]


class MeetingNotFoundError(Exception):
    """The job references a meeting that does not exist. Not retryable."""

    def __init__(self, meeting_id: str):
        self.meeting_id = meeting_id
        super().__init__(f"Meeting not found: {meeting_id}")


async def _run_stage(name: str, factory: StageFactory, timeout: float, meeting_id: str) -> StageResult:
    started = time.monotonic()
    try:
        await asyncio.wait_for(factory(), timeout=timeout)
    except asyncio.TimeoutError:
        elapsed = (time.monotonic() - started) * 1000
        logger.error(
            f"Stage timed out: meeting_id={meeting_id}, stage={name}, timeout={timeout}s"
        )
        return StageResult(name=name, succeeded=False, error=f"timed out after {timeout}s", duration_ms=elapsed)
    except Exception as e:
        elapsed = (time.monotonic() - started) * 1000
        logger.error(
            f"Stage failed: meeting_id={meeting_id}, stage={name}, "
            f"error={type(e).__name__}: {str(e)}",
            exc_info=True
        )
        return StageResult(name=name, succeeded=False, error=f"{type(e).__name__}: {str(e)}", duration_ms=elapsed)

    elapsed = (time.monotonic() - started) * 1000
    logger.info(f"Stage completed: meeting_id={meeting_id}, stage={name}, duration_ms={elapsed:.0f}")
    return StageResult(name=name, succeeded=True, duration_ms=elapsed)


async def run_fan_out(
    stages: Dict[str, StageFactory],
    timeout: float = DEFAULT_STAGE_TIMEOUT_SECONDS,
    meeting_id: str = ""
) -> FanOutReport:
    """Run every stage concurrently and wait for all of them to settle.

    A failure or timeout in one stage never cancels or affects the others.

    Args:
        stages: Stage name -> zero-argument coroutine factory
        timeout: Per-stage timeout in seconds
        meeting_id: Meeting identifier for logging

    Returns:
        FanOutReport with one StageResult per stage, in input order
    """
    names = list(stages)
    outcomes = await asyncio.gather(
        *(_run_stage(name, stages[name], timeout, meeting_id) for name in names),
        return_exceptions=True
    )

    results = []
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            # _run_stage only lets non-Exception errors through
            logger.error(
                f"Stage aborted: meeting_id={meeting_id}, stage={name}, "
                f"error={type(outcome).__name__}"
            )
            results.append(StageResult(name=name, succeeded=False, error=type(outcome).__name__))
        else:
            results.append(outcome)

    report = FanOutReport(results=results)
    logger.info(
        f"Fan-out settled: meeting_id={meeting_id}, "
        f"succeeded={report.succeeded}, failed={report.failed}"
    )
    return report


def _has_content(raw: Any) -> bool:
    if raw is None:
        return False
    if isinstance(raw, str):
        return bool(raw.strip())
    if isinstance(raw, (list, dict)):
        return bool(raw)
    return True


class MeetingPipeline:
    """Worker-side orchestration of all enrichment for one meeting."""

    def __init__(
        self,
        repository: MeetingRepository,
        summarizer: SummarizerService,
        email: EmailService,
        risk: RiskService,
        sentiment: SentimentService,
        speakers: SpeakerProfileService,
        vector_index: VectorIndexService,
        graph: GraphService,
        stage_timeout: Optional[float] = None
    ):
        self.repository = repository
        self.summarizer = summarizer
        self.email = email
        self.risk = risk
        self.sentiment = sentiment
        self.speakers = speakers
        self.vector_index = vector_index
        self.graph = graph
        self.stage_timeout = stage_timeout or float(
            os.getenv("STAGE_TIMEOUT_SECONDS", str(DEFAULT_STAGE_TIMEOUT_SECONDS))
        )

    async def process_job(self, job: ProcessMeetingJob) -> PipelineReport:
        """Process one delivered job.

        Raises:
            MeetingNotFoundError: If the meeting no longer exists
        """
        meeting = await self.repository.get_by_id(job.meeting_id)
        if meeting is None:
            logger.error(f"Job references unknown meeting: meeting_id={job.meeting_id}, bot_id={job.bot_id}")
            raise MeetingNotFoundError(job.meeting_id)

        raw = job.transcript if _has_content(job.transcript) else meeting.transcript
        transcript = normalize_transcript(raw)
        report = PipelineReport(meeting_id=meeting.id)

        logger.info(
            f"Processing meeting: meeting_id={meeting.id}, segments={len(transcript.segments)}, "
            f"windows={len(transcript.windows)}, already_processed={meeting.processed}"
        )

        if meeting.processed:
            report.skipped_summary = True
            logger.info(f"Meeting already processed, skipping summary and email: meeting_id={meeting.id}")
        else:
            summary = await self.summarizer.process_meeting_transcript(transcript, meeting.id)
            report.summarized = await self._persist_summary(meeting.id, summary)
            if report.summarized:
                report.email_sent = await self._notify_owner(meeting, summary)
            await self.repository.update_fields(
                meeting.id,
                "worker",
                processed=True,
                processed_at=datetime.now(timezone.utc),
            )

        report.fan_out = await run_fan_out(
            self.build_stages(meeting, transcript),
            timeout=self.stage_timeout,
            meeting_id=meeting.id,
        )
        return report

    def build_stages(self, meeting: MeetingModel, transcript: NormalizedTranscript) -> Dict[str, StageFactory]:
        meeting_id = meeting.id

        async def vector_stage():
            await self.vector_index.index_transcript(
                meeting_id, meeting.created_by_id, transcript, meeting.title
            )

        async def risk_stage():
            markup = await self.risk.analyze(transcript, meeting_id)
            if markup is not None:
                await self.repository.update_fields(meeting_id, "risk", risk_analysis=markup)

        async def graph_stage():
            await self.graph.add_to_knowledge_graph(meeting_id, transcript)

        async def sentiment_stage():
            points = await self.sentiment.generate_arc(transcript, meeting_id)
            if points:
                await self.repository.update_fields(meeting_id, "sentiment", sentiment_data=points)

        async def speakers_stage():
            profiles = await self.speakers.generate_profiles(transcript, meeting_id)
            if profiles is not None:
                await self.repository.update_fields(meeting_id, "speakers", speaker_profiles=profiles)

        return {
            StageName.vector.value: vector_stage,
            StageName.risk.value: risk_stage,
            StageName.graph.value: graph_stage,
            StageName.sentiment.value: sentiment_stage,
            StageName.speakers.value: speakers_stage,
        }

    async def _persist_summary(self, meeting_id: str, summary: SummaryResult) -> bool:
        try:
            await self.repository.update_fields(
                meeting_id,
                "summarizer",
                summary=summary.summary,
                action_items=[item.model_dump() for item in summary.action_items],
            )
            return True
        except Exception as e:
            logger.error(
                f"Failed to persist summary: meeting_id={meeting_id}, error={str(e)}",
                exc_info=True
            )

        try:
            await self.repository.update_fields(meeting_id, "summarizer", summary=PROCESSING_FAILED_SUMMARY)
        except Exception as e:
            logger.error(
                f"Failed to persist failure summary: meeting_id={meeting_id}, error={str(e)}",
                exc_info=True
            )
        return False

    async def _notify_owner(self, meeting: MeetingModel, summary: SummaryResult) -> bool:
        """Email the summary to the owner. Best-effort: never raises."""
        try:
            owner = await self.repository.get_owner(meeting.created_by_id)
            if owner is None:
                logger.warning(f"Meeting owner not found: meeting_id={meeting.id}, owner_id={meeting.created_by_id}")
                return False

            sent = await self.email.send_meeting_summary(
                to_email=owner.email,
                user_name=owner.name or "User",
                meeting_id=meeting.id,
                meeting_title=meeting.title,
                summary=summary.summary,
                action_items=summary.action_items,
                meeting_date=meeting.start_time,
            )
            if sent:
                await self.repository.update_fields(
                    meeting.id,
                    "email",
                    email_sent=True,
                    email_sent_at=datetime.now(timezone.utc),
                )
            return sent
        except Exception as e:
            logger.error(
                f"Summary email failed (non-critical): meeting_id={meeting.id}, "
                f"error={type(e).__name__}: {str(e)}",
                exc_info=True
            )
            return False
