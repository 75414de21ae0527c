"""
Unit tests for VectorIndexService.

Uses an in-memory collection and repository to check deterministic ids,
idempotent re-indexing and owner-scoped search.
"""

import pytest

from services.transcript_normalizer import normalize_transcript
from services.vector_index_service import VectorIndexService
from tests.fakes import FakeCollection, FakeMeetingRepository, make_meeting, make_openai_client


@pytest.fixture
def repository():
    return FakeMeetingRepository(meetings=[make_meeting()])


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def service(repository, collection):
    return VectorIndexService(make_openai_client(), collection, repository)


@pytest.fixture
def transcript():
    lines = [f"Speaker{i % 2}: " + "detail " * 60 for i in range(8)]
    return normalize_transcript("\n".join(lines))


async def test_index_uses_deterministic_ids(service, collection, transcript):
    count = await service.index_transcript("meeting-1", "user-1", transcript, "Weekly Sync")

    assert count > 1
    assert sorted(collection.records) == sorted(f"meeting-1_chunk_{i}" for i in range(count))
    metadata = collection.records["meeting-1_chunk_0"]["metadata"]
    assert metadata["userId"] == "user-1"
    assert metadata["meetingTitle"] == "Weekly Sync"
    assert metadata["speakerName"] == "Speaker0"


async def test_reindexing_is_idempotent(service, collection, repository, transcript):
    first = await service.index_transcript("meeting-1", "user-1", transcript, "Weekly Sync")
    ids_after_first = set(collection.records)
    chunk_rows_after_first = len(repository.chunks)

    second = await service.index_transcript("meeting-1", "user-1", transcript, "Weekly Sync")

    assert first == second
    assert set(collection.records) == ids_after_first
    assert len(repository.chunks) == chunk_rows_after_first


async def test_index_sets_rag_processed(service, repository, transcript):
    await service.index_transcript("meeting-1", "user-1", transcript)

    assert repository.meetings["meeting-1"].rag_processed is True
    assert repository.writers() == ["vector"]


async def test_empty_transcript_writes_nothing(service, collection, repository):
    count = await service.index_transcript("meeting-1", "user-1", normalize_transcript(""))

    assert count == 0
    assert collection.records == {}
    assert repository.writes == []


async def test_search_is_scoped_to_owner_and_meeting(service, collection, transcript):
    await service.index_transcript("meeting-1", "user-1", transcript, "Weekly Sync")
    await service.index_transcript("meeting-2", "user-2", transcript, "Other")

    mine = await service.search("what was decided?", "user-1", meeting_id="meeting-1", top_k=50)
    theirs = await service.search("what was decided?", "user-2", top_k=50)

    assert mine and all(m.meeting_id == "meeting-1" for m in mine)
    assert theirs and all(m.meeting_id == "meeting-2" for m in theirs)
    assert mine[0].confidence == 0.75


async def test_missing_vector_store_raises(repository, transcript):
    service = VectorIndexService(make_openai_client(), None, repository)

    with pytest.raises(RuntimeError):
        await service.index_transcript("meeting-1", "user-1", transcript)
