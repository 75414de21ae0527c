"""
Meeting-bot webhook ingress.

POST /webhooks/meetingbaas receives signed lifecycle events from the
meeting-bot service. A completion event is resolved to its meeting record,
the raw artifacts are stored with one column-targeted update, and a
processing job is published to the durable queue. All heavy work happens
in the worker; this endpoint only ever does fast writes.

Response contract:
    401  signature missing/invalid (only when a secret is configured)
    200  everything else, including ignored events, unknown bots and
         enqueue failures, so the sender does not retry them
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from middleware.webhook_auth import SIGNATURE_HEADER, WebhookSignatureError, verify_webhook_signature
from models.job_models import ProcessMeetingJob
from models.webhook_models import WebhookEvent, WebhookResponse
from services.container import ServiceContainer, get_container
from services.queue_service import QueueServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _ignored(reason: str) -> WebhookResponse:
    return WebhookResponse(success=True, message=f"ignored: {reason}")


@router.post("/meetingbaas", response_model=WebhookResponse, response_model_exclude_none=True)
async def meetingbaas_webhook(
    request: Request,
    container: ServiceContainer = Depends(get_container)
):
    """
    Handle one meeting-bot event.

    The body is read as raw bytes and verified before it is parsed, so the
    signature covers exactly what was sent.
    """
    body = await request.body()

    try:
        verify_webhook_signature(body, request.headers.get(SIGNATURE_HEADER))
    except WebhookSignatureError as e:
        logger.warning(f"Webhook rejected: code={e.code}")
        return JSONResponse(
            status_code=401,
            content={"success": False, "message": e.message}
        )

    try:
        event = WebhookEvent.model_validate(json.loads(body))
    except (ValueError, ValidationError) as e:
        logger.warning(f"Webhook payload could not be parsed: error={type(e).__name__}")
        return _ignored("malformed payload")

    logger.info(f"Webhook received: event={event.event!r}, bot_id={event.data.bot_id}")

    if not event.is_completion():
        return _ignored(f"event '{event.event}' is not a completion event")

    bot_id = event.data.bot_id
    if not bot_id:
        logger.warning(f"Completion webhook without bot_id: event={event.event!r}")
        return _ignored("missing bot_id")

    meeting = await container.repository.find_by_bot_id(bot_id)
    if meeting is None:
        logger.error(f"No meeting found for bot: bot_id={bot_id}")
        return _ignored(f"no meeting for bot_id {bot_id}")

    await container.repository.mark_transcript_ready(
        meeting.id,
        transcript=event.data.transcript,
        recording_url=event.data.mp4,
        speakers=event.data.speakers,
    )
    logger.info(f"Meeting marked transcript-ready: meeting_id={meeting.id}, bot_id={bot_id}")

    queued = False
    if event.data.transcript is not None:
        job = ProcessMeetingJob(
            meeting_id=meeting.id,
            transcript=event.data.transcript,
            bot_id=bot_id,
            meeting_title=meeting.title,
        )
        try:
            await container.queue.publish_job(job)
            queued = True
        except QueueServiceError as e:
            # Raw transcript is already stored; the owner can reprocess
            logger.error(f"Failed to enqueue meeting: meeting_id={meeting.id}, error={str(e)}")

    return WebhookResponse(
        success=True,
        message="meeting queued for processing" if queued else "meeting updated",
        meetingId=meeting.id,
        queued=queued,
    )
