"""
Knowledge graph view route.

GET /graph returns the entities and relationships extracted from the
caller's meetings, shaped for a force-directed graph view.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from models.api_models import GraphViewResponse
from models.request_context import RequestContext
from services.container import ServiceContainer, get_container
from services.graph_service import MAX_GRAPH_VIEW_EDGES
from utils.context_utils import get_owner_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/graph", tags=["graph"])


@router.get("", response_model=GraphViewResponse)
async def get_graph(
    meeting_id: Optional[str] = Query(default=None, alias="meetingId"),
    limit: int = Query(default=MAX_GRAPH_VIEW_EDGES, ge=1, le=MAX_GRAPH_VIEW_EDGES),
    context: RequestContext = Depends(get_owner_context),
    container: ServiceContainer = Depends(get_container)
):
    """
    Graph of the caller's meetings, or of one meeting when ``meetingId`` is given.

    Only relationships tagged with one of the caller's meetings are
    returned, so another user's facts never leak into the view.
    """
    meeting_ids = await container.repository.list_meeting_ids(context.user_id)
    if meeting_id is not None:
        if meeting_id not in meeting_ids:
            raise HTTPException(status_code=404, detail="Meeting not found")
        meeting_ids = [meeting_id]

    if container.graph is None:
        raise HTTPException(status_code=503, detail="Knowledge graph is unavailable")

    try:
        return await container.graph.get_graph(meeting_ids, limit=limit)
    except Exception as e:
        logger.error(
            f"Graph view failed: request_id={context.request_id}, "
            f"error={type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=503, detail="Knowledge graph is unavailable")
