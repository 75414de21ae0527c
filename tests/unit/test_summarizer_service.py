"""
Unit Tests for SummarizerService

Tests action item numbering and the never-raise fallback contract with a
mocked OpenAI client.
"""

import pytest
from unittest.mock import AsyncMock

from models.extraction_models import MeetingSummaryExtraction
from services.summarizer_service import FALLBACK_SUMMARY, SummarizerService
from services.transcript_normalizer import normalize_transcript
from tests.fakes import make_openai_client, parsed_completion


@pytest.fixture
def transcript():
    return normalize_transcript("Alice: we ship Friday\nBob: I'll update the docs")


async def test_action_items_are_numbered_from_one(transcript):
    client = make_openai_client(parsed=MeetingSummaryExtraction(
        summary="The team agreed to ship on Friday.",
        action_items=["Update the docs", "  ", "Tag the release"],
    ))
    service = SummarizerService(client, model="test-model")

    result = await service.process_meeting_transcript(transcript, "m-1")

    assert result.summary == "The team agreed to ship on Friday."
    assert [(i.id, i.text) for i in result.action_items] == [(1, "Update the docs"), (2, "Tag the release")]
    kwargs = client.chat.completions.parse.call_args.kwargs
    assert kwargs["response_format"] is MeetingSummaryExtraction
    assert "Alice: we ship Friday" in kwargs["messages"][1]["content"]


async def test_empty_transcript_returns_fallback_without_calling_llm():
    client = make_openai_client()
    service = SummarizerService(client)

    result = await service.process_meeting_transcript(normalize_transcript(""), "m-1")

    assert result.summary == FALLBACK_SUMMARY
    assert result.action_items == []
    client.chat.completions.parse.assert_not_called()


async def test_llm_failure_returns_fallback(transcript):
    client = make_openai_client()
    client.chat.completions.parse = AsyncMock(side_effect=RuntimeError("rate limited"))
    service = SummarizerService(client)

    result = await service.process_meeting_transcript(transcript, "m-1")

    assert result.summary == FALLBACK_SUMMARY
    assert result.action_items == []


async def test_unparsed_response_returns_fallback(transcript):
    client = make_openai_client()
    client.chat.completions.parse = AsyncMock(return_value=parsed_completion(None))
    service = SummarizerService(client)

    result = await service.process_meeting_transcript(transcript, "m-1")

    assert result.summary == FALLBACK_SUMMARY
