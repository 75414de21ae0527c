"""
Retrieval-augmented chat routes.

POST /chat/meeting answers a question about one of the caller's meetings.
POST /chat/all answers a question across all of the caller's meetings.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from models.api_models import ChatAllRequest, ChatMeetingRequest, ChatResponse
from models.request_context import RequestContext
from services.container import ServiceContainer, get_container
from utils.context_utils import get_owner_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/meeting", response_model=ChatResponse)
async def chat_meeting(
    body: ChatMeetingRequest,
    context: RequestContext = Depends(get_owner_context),
    container: ServiceContainer = Depends(get_container)
):
    if not body.question.strip():
        raise HTTPException(status_code=400, detail="question cannot be empty")

    try:
        response = await container.rag.chat_with_meeting(context.user_id, body.meeting_id, body.question)
    except Exception as e:
        logger.error(
            f"Meeting chat failed: meeting_id={body.meeting_id}, request_id={context.request_id}, "
            f"error={type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=503, detail="Chat is temporarily unavailable")

    if response is None:
        raise HTTPException(status_code=404, detail="Meeting not found")
    return response


@router.post("/all", response_model=ChatResponse)
async def chat_all(
    body: ChatAllRequest,
    context: RequestContext = Depends(get_owner_context),
    container: ServiceContainer = Depends(get_container)
):
    if not body.question.strip():
        raise HTTPException(status_code=400, detail="question cannot be empty")

    try:
        return await container.rag.chat_with_all_meetings(context.user_id, body.question)
    except Exception as e:
        logger.error(
            f"All-meetings chat failed: request_id={context.request_id}, "
            f"error={type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=503, detail="Chat is temporarily unavailable")
