"""Tests for the queue worker endpoint.

Deliveries are signed the way QStash signs them: an HS256 JWT whose
``body`` claim is the base64url SHA-256 of the raw request body.
"""
import json
import time

import jwt as pyjwt
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from middleware.queue_auth import SIGNATURE_HEADER, body_hash
from models.job_models import FanOutReport, PipelineReport, StageResult
from services.pipeline_service import MeetingNotFoundError
from tests.fakes import FakeMeetingRepository, make_container

CURRENT_KEY = "sig_current_key"
NEXT_KEY = "sig_next_key"
WORKER_URL = "https://api.example.com/queue/process-meeting"


def sign(body: bytes, key: str = CURRENT_KEY, **overrides) -> str:
    now = int(time.time())
    claims = {
        "iss": "Upstash",
        "sub": WORKER_URL,
        "iat": now,
        "nbf": now,
        "exp": now + 300,
        "body": body_hash(body),
    }
    claims.update(overrides)
    return pyjwt.encode(claims, key, algorithm="HS256")


@pytest.fixture
def pipeline():
    pipeline = MagicMock()
    pipeline.process_job = AsyncMock(return_value=PipelineReport(
        meeting_id="meeting-1",
        summarized=True,
        fan_out=FanOutReport(results=[
            StageResult(name="vector", succeeded=True, duration_ms=12.0),
            StageResult(name="risk", succeeded=False, error="RuntimeError: boom"),
        ]),
    ))
    return pipeline


@pytest.fixture
def client(monkeypatch, pipeline):
    monkeypatch.setenv("QSTASH_CURRENT_SIGNING_KEY", CURRENT_KEY)
    monkeypatch.setenv("QSTASH_NEXT_SIGNING_KEY", NEXT_KEY)
    monkeypatch.setenv("WORKER_URL", WORKER_URL)
    from main import app
    app.state.container = make_container(FakeMeetingRepository(), pipeline=pipeline)
    return TestClient(app)


def deliver(client, payload, signature=None):
    body = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    signature = sign(body) if signature is None else signature
    if signature:
        headers[SIGNATURE_HEADER] = signature
    return client.post("/queue/process-meeting", content=body, headers=headers)


JOB = {"meetingId": "meeting-1", "botId": "bot-1", "transcript": "Alice: hi"}


def test_signed_delivery_runs_pipeline(client, pipeline):
    response = deliver(client, JOB)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["meetingId"] == "meeting-1"
    assert data["stages"]["vector"]["succeeded"] is True
    assert data["stages"]["risk"]["error"] == "RuntimeError: boom"
    job = pipeline.process_job.call_args.args[0]
    assert job.meeting_id == "meeting-1"


def test_next_key_is_accepted(client, pipeline):
    body = json.dumps(JOB).encode("utf-8")

    response = deliver(client, JOB, signature=sign(body, key=NEXT_KEY))

    assert response.status_code == 200


def test_missing_signature_is_rejected(client, pipeline):
    response = deliver(client, JOB, signature="")

    assert response.status_code == 401
    assert response.json()["code"] == "QUEUE_SIGNATURE_MISSING"
    pipeline.process_job.assert_not_called()


def test_tampered_body_is_rejected(client, pipeline):
    signature = sign(json.dumps(JOB).encode("utf-8"))
    tampered = dict(JOB, meetingId="meeting-2")

    response = deliver(client, tampered, signature=signature)

    assert response.status_code == 401
    assert response.json()["code"] == "QUEUE_BODY_MISMATCH"
    pipeline.process_job.assert_not_called()


def test_unknown_meeting_is_non_retryable(client, pipeline):
    pipeline.process_job = AsyncMock(side_effect=MeetingNotFoundError("meeting-1"))

    response = deliver(client, JOB)

    assert response.status_code == 489
    assert response.headers["Upstash-NonRetryable-Error"] == "true"


def test_invalid_job_body_is_non_retryable(client, pipeline):
    response = deliver(client, {"botId": "bot-1"})

    assert response.status_code == 400
    assert response.headers["Upstash-NonRetryable-Error"] == "true"
    pipeline.process_job.assert_not_called()


def test_unexpected_failure_is_retryable(client, pipeline):
    pipeline.process_job = AsyncMock(side_effect=ConnectionError("database down"))

    response = deliver(client, JOB)

    assert response.status_code == 500
    assert "Upstash-NonRetryable-Error" not in response.headers
