"""
Owner-facing meeting routes.

Every route requires an internal JWT; a meeting that exists but belongs to
someone else is reported as 404, same as a meeting that does not exist.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from models.api_models import ActionItemCreateRequest, MeetingResponse
from models.db_models import MeetingModel
from models.extraction_models import ActionItem
from models.job_models import ProcessMeetingJob
from models.request_context import RequestContext
from services.container import ServiceContainer, get_container
from services.queue_service import QueueServiceError
from utils.context_utils import get_owner_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meetings", tags=["meetings"])


def to_meeting_response(meeting: MeetingModel) -> MeetingResponse:
    return MeetingResponse(
        id=meeting.id,
        title=meeting.title,
        created_by_id=meeting.created_by_id,
        bot_id=meeting.bot_id,
        start_time=meeting.start_time,
        end_time=meeting.end_time,
        recording_url=meeting.recording_url,
        transcript=meeting.transcript,
        speakers=meeting.speakers,
        meeting_ended=meeting.meeting_ended,
        transcript_ready=meeting.transcript_ready,
        processed=meeting.processed,
        processed_at=meeting.processed_at,
        email_sent=meeting.email_sent,
        rag_processed=meeting.rag_processed,
        summary=meeting.summary,
        action_items=meeting.action_items or [],
        risk_analysis=meeting.risk_analysis,
        sentiment_data=meeting.sentiment_data,
        speaker_profiles=meeting.speaker_profiles,
        is_processing=not meeting.processed,
        is_owner=True,
    )


async def _get_owned_or_404(container: ServiceContainer, meeting_id: str, user_id: str) -> MeetingModel:
    meeting = await container.repository.get_owned(meeting_id, user_id)
    if meeting is None:
        raise HTTPException(status_code=404, detail="Meeting not found")
    return meeting


@router.get("/{meeting_id}", response_model=MeetingResponse)
async def get_meeting(
    meeting_id: str,
    context: RequestContext = Depends(get_owner_context),
    container: ServiceContainer = Depends(get_container)
):
    meeting = await _get_owned_or_404(container, meeting_id, context.user_id)
    return to_meeting_response(meeting)


@router.post("/{meeting_id}/action-items", response_model=ActionItem)
async def add_action_item(
    meeting_id: str,
    body: ActionItemCreateRequest,
    context: RequestContext = Depends(get_owner_context),
    container: ServiceContainer = Depends(get_container)
):
    """Append an action item. Its id is one more than the largest existing id."""
    item = await container.repository.add_action_item(meeting_id, context.user_id, body.text)
    if item is None:
        raise HTTPException(status_code=404, detail="Meeting not found")
    return item


@router.delete("/{meeting_id}/action-items/{item_id}")
async def delete_action_item(
    meeting_id: str,
    item_id: int,
    context: RequestContext = Depends(get_owner_context),
    container: ServiceContainer = Depends(get_container)
):
    removed = await container.repository.remove_action_item(meeting_id, context.user_id, item_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Action item not found")
    return {"success": True}


@router.post("/{meeting_id}/reprocess")
async def reprocess_meeting(
    meeting_id: str,
    context: RequestContext = Depends(get_owner_context),
    container: ServiceContainer = Depends(get_container)
):
    """
    Re-enqueue a meeting from its stored raw transcript.

    Recovers meetings whose processing job was never published. Summary and
    email are still skipped for meetings already marked processed.
    """
    meeting = await _get_owned_or_404(container, meeting_id, context.user_id)
    if meeting.transcript is None:
        raise HTTPException(status_code=409, detail="Meeting has no transcript yet")

    job = ProcessMeetingJob(
        meeting_id=meeting.id,
        transcript=meeting.transcript,
        bot_id=meeting.bot_id,
        meeting_title=meeting.title,
    )
    try:
        await container.queue.publish_job(job)
    except QueueServiceError as e:
        logger.error(f"Reprocess enqueue failed: meeting_id={meeting.id}, error={str(e)}")
        raise HTTPException(status_code=503, detail="Could not enqueue meeting for processing")

    logger.info(f"Meeting re-enqueued: meeting_id={meeting.id}, request_id={context.request_id}")
    return {"success": True, "meetingId": meeting.id, "queued": True}
