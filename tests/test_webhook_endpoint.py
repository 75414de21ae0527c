"""Tests for the meeting-bot webhook endpoint.

The container is replaced with in-memory fakes, so these tests cover the
HTTP contract: what is rejected, what is ignored, and what gets written
and queued.
"""
import json

import pytest
from fastapi.testclient import TestClient

from middleware.webhook_auth import SIGNATURE_HEADER, compute_signature
from services.queue_service import QueueServiceError
from tests.fakes import FakeMeetingRepository, FakeQueue, make_container, make_meeting

SECRET = "webhook-test-secret"


@pytest.fixture
def repository():
    return FakeMeetingRepository(meetings=[make_meeting()])


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def client(monkeypatch, repository, queue):
    monkeypatch.setenv("MEETINGBAAS_WEBHOOK_SECRET", SECRET)
    from main import app
    app.state.container = make_container(repository, queue=queue)
    return TestClient(app)


def post_signed(client, payload, secret=SECRET, signature=None):
    body = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if signature is None:
        signature = compute_signature(body, secret)
    if signature:
        headers[SIGNATURE_HEADER] = signature
    return client.post("/webhooks/meetingbaas", content=body, headers=headers)


def completion(bot_id="bot-1", transcript="Alice: hello\nBob: hi"):
    return {
        "event": "complete",
        "data": {"bot_id": bot_id, "transcript": transcript, "mp4": "https://cdn.example.com/rec.mp4"},
    }


def test_completion_updates_meeting_and_queues_job(client, repository, queue):
    response = post_signed(client, completion())

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "meeting queued for processing",
        "meetingId": "meeting-1",
        "queued": True,
    }
    meeting = repository.meetings["meeting-1"]
    assert meeting.transcript_ready is True
    assert meeting.meeting_ended is True
    assert meeting.recording_url == "https://cdn.example.com/rec.mp4"
    assert repository.writers() == ["ingress"]
    job = queue.published[0]
    assert job.meeting_id == "meeting-1"
    assert job.bot_id == "bot-1"
    assert job.meeting_title == "Weekly Sync"


def test_prefixed_signature_is_accepted(client, queue):
    payload = completion()
    body = json.dumps(payload).encode("utf-8")

    response = post_signed(client, payload, signature="sha256=" + compute_signature(body, SECRET))

    assert response.status_code == 200
    assert len(queue.published) == 1


def test_bad_signature_is_rejected_without_writes(client, repository, queue):
    response = post_signed(client, completion(), secret="not-the-secret")

    assert response.status_code == 401
    assert response.json()["success"] is False
    assert repository.writes == []
    assert queue.published == []


def test_missing_signature_is_rejected(client, repository):
    response = post_signed(client, completion(), signature="")

    assert response.status_code == 401
    assert repository.writes == []


def test_unknown_bot_is_ignored_without_writes(client, repository, queue):
    response = post_signed(client, completion(bot_id="bot-unknown"))

    assert response.status_code == 200
    assert response.json()["message"].startswith("ignored")
    assert repository.writes == []
    assert queue.published == []


def test_non_completion_event_is_ignored(client, repository):
    response = post_signed(client, {"event": "bot.joining", "data": {"bot_id": "bot-1"}})

    assert response.status_code == 200
    assert response.json()["message"].startswith("ignored")
    assert repository.writes == []


def test_transcript_payload_counts_as_completion(client, queue):
    payload = completion()
    payload["event"] = "some.new.event"

    response = post_signed(client, payload)

    assert response.json()["queued"] is True
    assert len(queue.published) == 1


def test_enqueue_failure_still_acknowledges(client, repository, queue):
    queue.error = QueueServiceError("qstash unavailable")

    response = post_signed(client, completion())

    assert response.status_code == 200
    assert response.json()["queued"] is False
    assert repository.meetings["meeting-1"].transcript_ready is True


def test_completion_without_transcript_is_not_queued(client, repository, queue):
    response = post_signed(client, {"event": "complete", "data": {"bot_id": "bot-1", "mp4": "https://x/rec.mp4"}})

    assert response.status_code == 200
    assert response.json()["queued"] is False
    assert queue.published == []
    assert repository.writers() == ["ingress"]


def test_media_only_event_keeps_stored_transcript(client, repository, queue):
    repository.meetings["meeting-1"].transcript = "Alice: hello"

    response = post_signed(client, {
        "event": "recording.completed",
        "data": {"bot_id": "bot-1", "mp4": "https://x/rec.mp4"},
    })

    assert response.status_code == 200
    meeting = repository.meetings["meeting-1"]
    assert meeting.transcript == "Alice: hello"
    assert meeting.recording_url == "https://x/rec.mp4"
    assert meeting.transcript_ready is True
    assert "transcript" not in repository.writes[0][2]
    assert queue.published == []


def test_malformed_body_is_ignored(client, repository):
    body = b"{not json"
    response = client.post(
        "/webhooks/meetingbaas",
        content=body,
        headers={SIGNATURE_HEADER: compute_signature(body, SECRET)},
    )

    assert response.status_code == 200
    assert response.json()["message"].startswith("ignored")
    assert repository.writes == []


def test_unsigned_webhook_accepted_without_secret(monkeypatch, repository, queue):
    monkeypatch.delenv("MEETINGBAAS_WEBHOOK_SECRET", raising=False)
    from main import app
    app.state.container = make_container(repository, queue=queue)
    client = TestClient(app)

    response = client.post("/webhooks/meetingbaas", json=completion())

    assert response.status_code == 200
    assert response.json()["queued"] is True
