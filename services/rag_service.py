"""Retrieval-augmented chat over a user's meetings.

Single-meeting chat answers from that meeting's transcript chunks.
All-meetings chat combines transcript chunks with knowledge-graph facts
about entities named in the question. Answers are memoized per user (and
meeting) in the response cache.
"""
import asyncio
import os
import logging
from typing import List, Optional

from openai import AsyncOpenAI

from models.api_models import ChatResponse, ChatSource
from services.cache_service import ResponseCache
from services.graph_service import GraphService
from services.meeting_repository import MeetingRepository
from services.vector_index_service import SearchMatch, VectorIndexService

logger = logging.getLogger(__name__)

MEETING_TOP_K = 5
ALL_MEETINGS_TOP_K = 8


def meeting_cache_subject(user_id: str, meeting_id: str) -> str:
    return f"{user_id}:{meeting_id}"


class RagService:

    def __init__(
        self,
        openai_client: AsyncOpenAI,
        repository: MeetingRepository,
        vector_index: VectorIndexService,
        graph: GraphService,
        cache: ResponseCache,
        model: Optional[str] = None
    ):
        self.client = openai_client
        self.repository = repository
        self.vector_index = vector_index
        self.graph = graph
        self.cache = cache
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))

    async def chat_with_meeting(self, user_id: str, meeting_id: str, question: str) -> Optional[ChatResponse]:
        """Answer a question about one meeting.

        Returns:
            ChatResponse, or None if the meeting does not exist or is not
            owned by ``user_id``
        """
        meeting = await self.repository.get_owned(meeting_id, user_id)
        if meeting is None:
            return None

        subject = meeting_cache_subject(user_id, meeting_id)
        cached = await self.cache.get_cached_response(question, subject)
        if cached is not None:
            return ChatResponse(answer=cached, sources=[], isCached=True)

        matches = await self.vector_index.search(question, user_id, meeting_id=meeting_id, top_k=MEETING_TOP_K)
        context = "\n\n".join(f"{m.speaker_name}: {m.content}" for m in matches)
        meeting_date = meeting.start_time or meeting.created_at
        system_prompt = f"""You are helping someone understand their meeting.
Meeting: {meeting.title or 'Untitled Meeting'}
Date: {meeting_date.strftime('%a %b %d %Y') if meeting_date else 'Unknown'}

Here's what was discussed:
{context or 'No transcript content is available.'}

Answer the user's question based only on the meeting content above. If the answer isn't in the meeting, say so."""

        answer = await self._complete(system_prompt, question)
        await self.cache.set_cached_response(question, answer, subject)

        logger.info(f"Meeting chat answered: user_id={user_id}, meeting_id={meeting_id}, sources={len(matches)}")
        return ChatResponse(answer=answer, sources=_to_sources(matches), isCached=False)

    async def chat_with_all_meetings(self, user_id: str, question: str) -> ChatResponse:
        """Answer a question across all of a user's meetings."""
        cached = await self.cache.get_cached_response(question, user_id)
        if cached is not None:
            return ChatResponse(answer=cached, sources=[], isCached=True)

        meeting_ids = await self.repository.list_meeting_ids(user_id)
        matches, facts = await asyncio.gather(
            self.vector_index.search(question, user_id, top_k=ALL_MEETINGS_TOP_K),
            self.graph.query_facts(question, meeting_ids),
        )

        vector_context = "\n\n".join(
            f"[Meeting: {m.meeting_title or 'Untitled Meeting'}] {m.speaker_name}: {m.content}"
            for m in matches
        )
        graph_context = "\n".join(facts) if facts else "No direct relationships found in the graph."

        system_prompt = f"""You are an assistant with access to the user's meeting memory.

You have two sources of information:

--- SOURCE 1: KNOWLEDGE GRAPH (Structured Facts) ---
{graph_context}

--- SOURCE 2: TRANSCRIPT FRAGMENTS (Discussion Context) ---
{vector_context or 'No transcript fragments matched.'}

INSTRUCTIONS:
1. Use the knowledge graph to identify entities, roles and relationships.
2. Use the transcripts for the context and nuance of those discussions.
3. Combine both sources to answer the question.
4. If the sources conflict, prefer the transcripts: they are the raw record."""

        answer = await self._complete(system_prompt, question)
        await self.cache.set_cached_response(question, answer, user_id)

        logger.info(
            f"All-meetings chat answered: user_id={user_id}, sources={len(matches)}, graph_facts={len(facts)}"
        )
        return ChatResponse(answer=answer, sources=_to_sources(matches), isCached=False)

    async def _complete(self, system_prompt: str, question: str) -> str:
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": question}
            ],
            temperature=0.3,
            timeout=self.timeout,
        )
        return (completion.choices[0].message.content or "").strip()


def _to_sources(matches: List[SearchMatch]) -> List[ChatSource]:
    return [
        ChatSource(
            meetingId=m.meeting_id,
            meetingTitle=m.meeting_title,
            content=m.content,
            speakerName=m.speaker_name,
            confidence=m.confidence,
        )
        for m in matches
    ]
