"""Tests for the knowledge graph view route with a stubbed graph service."""
import os
import time

import jwt as pyjwt
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

os.environ.setdefault("INTERNAL_JWT_SECRET", "test-secret-that-is-at-least-32-characters-long")

from models.api_models import GraphViewLink, GraphViewNode, GraphViewResponse
from tests.fakes import FakeMeetingRepository, make_container, make_meeting


def bearer(user_id="user-1"):
    now = int(time.time())
    token = pyjwt.encode(
        {
            "user_id": user_id,
            "iss": os.getenv("INTERNAL_JWT_ISSUER", "meeting-frontend"),
            "aud": os.getenv("INTERNAL_JWT_AUDIENCE", "meeting-backend"),
            "iat": now,
            "exp": now + 300,
        },
        os.environ["INTERNAL_JWT_SECRET"],
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def graph():
    graph = MagicMock()
    graph.get_graph = AsyncMock(return_value=GraphViewResponse(
        nodes=[GraphViewNode(id="Alice", label="Person"), GraphViewNode(id="Apollo", label="Project")],
        links=[GraphViewLink(source="Alice", target="Apollo", label="WORKS_ON")],
    ))
    return graph


@pytest.fixture
def repository():
    return FakeMeetingRepository(meetings=[
        make_meeting(),
        make_meeting(id="meeting-2", bot_id="bot-2"),
        make_meeting(id="meeting-3", created_by_id="user-2", bot_id="bot-3"),
    ])


@pytest.fixture
def client(repository, graph):
    from main import app
    app.state.container = make_container(repository, graph=graph)
    return TestClient(app)


def test_graph_covers_callers_meetings(client, graph):
    response = client.get("/graph", headers=bearer())

    assert response.status_code == 200
    assert response.json() == {
        "nodes": [{"id": "Alice", "label": "Person"}, {"id": "Apollo", "label": "Project"}],
        "links": [{"source": "Alice", "target": "Apollo", "label": "WORKS_ON"}],
    }
    meeting_ids = graph.get_graph.call_args.args[0]
    assert sorted(meeting_ids) == ["meeting-1", "meeting-2"]


def test_graph_for_one_meeting(client, graph):
    response = client.get("/graph", params={"meetingId": "meeting-2", "limit": 10}, headers=bearer())

    assert response.status_code == 200
    graph.get_graph.assert_awaited_once_with(["meeting-2"], limit=10)


def test_graph_for_foreign_meeting_is_not_found(client, graph):
    response = client.get("/graph", params={"meetingId": "meeting-3"}, headers=bearer())

    assert response.status_code == 404
    graph.get_graph.assert_not_called()


def test_graph_requires_token(client):
    assert client.get("/graph").status_code == 401


def test_graph_failure_is_503(client, graph):
    graph.get_graph.side_effect = ConnectionError("neo4j down")

    response = client.get("/graph", headers=bearer())

    assert response.status_code == 503


def test_graph_unavailable_without_service(repository):
    from main import app
    app.state.container = make_container(repository)

    response = TestClient(app).get("/graph", headers=bearer())

    assert response.status_code == 503
