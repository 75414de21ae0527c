"""
Queue worker endpoint.

POST /queue/process-meeting receives jobs from QStash (at-least-once) and
runs the meeting pipeline.

Response contract:
    401  signature missing/invalid
    400  job body invalid (retrying cannot fix it, so also non-retryable)
    489  meeting no longer exists, with Upstash-NonRetryable-Error: true
    500  unexpected failure; QStash retries the delivery
    200  pipeline ran; body reports every stage
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from middleware.queue_auth import SIGNATURE_HEADER, QueueSignatureError, verify_queue_signature
from models.job_models import JobResponse, ProcessMeetingJob
from services.container import ServiceContainer, get_container
from services.pipeline_service import MeetingNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue", tags=["queue"])

NON_RETRYABLE_STATUS = 489
NON_RETRYABLE_HEADERS = {"Upstash-NonRetryable-Error": "true"}


@router.post("/process-meeting", response_model=JobResponse)
async def process_meeting(
    request: Request,
    container: ServiceContainer = Depends(get_container)
):
    """Run the pipeline for one queued meeting."""
    body = await request.body()

    try:
        verify_queue_signature(body, request.headers.get(SIGNATURE_HEADER))
    except QueueSignatureError as e:
        return JSONResponse(
            status_code=401,
            content={"success": False, "error": e.message, "code": e.code}
        )

    try:
        job = ProcessMeetingJob.model_validate_json(body)
    except ValidationError as e:
        logger.error(f"Invalid job body: errors={e.error_count()}")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid job body"},
            headers=NON_RETRYABLE_HEADERS,
        )

    logger.info(f"Worker started: meeting_id={job.meeting_id}, bot_id={job.bot_id}")

    try:
        report = await container.pipeline.process_job(job)
    except MeetingNotFoundError as e:
        return JSONResponse(
            status_code=NON_RETRYABLE_STATUS,
            content={"success": False, "error": str(e)},
            headers=NON_RETRYABLE_HEADERS,
        )
    except Exception as e:
        logger.error(
            f"Worker failed: meeting_id={job.meeting_id}, error={type(e).__name__}: {str(e)}",
            exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Processing failed"}
        )

    logger.info(
        f"Worker finished: meeting_id={job.meeting_id}, summarized={report.summarized}, "
        f"failed_stages={report.fan_out.failed}"
    )
    return JobResponse(
        success=True,
        meetingId=report.meeting_id,
        summarized=report.summarized,
        skippedSummary=report.skipped_summary,
        stages={result.name: result for result in report.fan_out.results},
    )
