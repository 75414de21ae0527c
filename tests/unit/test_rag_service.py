"""
Unit tests for RagService.

Real VectorIndexService over the in-memory collection, fakeredis for the
response cache, and a mocked graph lookup.
"""

import fakeredis.aioredis
import pytest
from unittest.mock import AsyncMock, MagicMock

from services.cache_service import ResponseCache
from services.rag_service import RagService, meeting_cache_subject
from services.transcript_normalizer import normalize_transcript
from services.vector_index_service import VectorIndexService
from tests.fakes import FakeCollection, FakeMeetingRepository, make_meeting, make_openai_client


@pytest.fixture
def repository():
    return FakeMeetingRepository(meetings=[
        make_meeting(),
        make_meeting(id="meeting-2", title="Roadmap"),
        make_meeting(id="meeting-3", created_by_id="user-2", bot_id="bot-3"),
    ])


@pytest.fixture
def openai_client():
    return make_openai_client(content=" We ship on Friday. ")


@pytest.fixture
def graph():
    graph = MagicMock()
    graph.query_facts = AsyncMock(return_value=["Alice -[WORKS_ON]-> Apollo"])
    return graph


@pytest.fixture
def cache():
    return ResponseCache(redis_client=fakeredis.aioredis.FakeRedis(decode_responses=True))


@pytest.fixture
async def rag(openai_client, repository, graph, cache):
    vector_index = VectorIndexService(openai_client, FakeCollection(), repository)
    await vector_index.index_transcript("meeting-1", "user-1", normalize_transcript("Alice: we ship Friday"), "Weekly Sync")
    await vector_index.index_transcript("meeting-3", "user-2", normalize_transcript("Mallory: secret plans"), "Private")
    return RagService(openai_client, repository, vector_index, graph, cache)


async def test_meeting_chat_answers_with_sources(rag, openai_client):
    response = await rag.chat_with_meeting("user-1", "meeting-1", "When do we ship?")

    assert response.answer == "We ship on Friday."
    assert response.isCached is False
    assert [s.meetingId for s in response.sources] == ["meeting-1"]
    assert response.sources[0].speakerName == "Alice"
    system_prompt = openai_client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
    assert "Weekly Sync" in system_prompt
    assert "we ship Friday" in system_prompt


async def test_second_identical_question_is_cached(rag, openai_client):
    await rag.chat_with_meeting("user-1", "meeting-1", "When do we ship?")

    response = await rag.chat_with_meeting("user-1", "meeting-1", "  when do we SHIP?")

    assert response.isCached is True
    assert response.answer == "We ship on Friday."
    assert response.sources == []
    assert openai_client.chat.completions.create.await_count == 1


async def test_foreign_meeting_returns_none(rag, openai_client):
    assert await rag.chat_with_meeting("user-1", "meeting-3", "What are the plans?") is None
    openai_client.chat.completions.create.assert_not_called()


async def test_all_meetings_chat_combines_graph_and_transcripts(rag, graph, openai_client):
    response = await rag.chat_with_all_meetings("user-1", "What is Alice working on?")

    graph.query_facts.assert_awaited_once_with("What is Alice working on?", ["meeting-1", "meeting-2"])
    system_prompt = openai_client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
    assert "Alice -[WORKS_ON]-> Apollo" in system_prompt
    assert "[Meeting: Weekly Sync]" in system_prompt
    assert "secret plans" not in system_prompt
    assert all(s.meetingId == "meeting-1" for s in response.sources)


async def test_cache_entries_are_per_meeting(rag, cache):
    await rag.chat_with_meeting("user-1", "meeting-1", "When do we ship?")

    assert await cache.get_cached_response("When do we ship?", meeting_cache_subject("user-1", "meeting-1"))
    assert await cache.get_cached_response("When do we ship?", meeting_cache_subject("user-1", "meeting-2")) is None
    assert await cache.get_cached_response("When do we ship?", "user-1") is None
