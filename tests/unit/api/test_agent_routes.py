"""Unit tests for the agent turn endpoint."""

import json
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pmagent.agent import AgentRunner
from pmagent.api.app import create_app
from pmagent.api.dependencies import get_optional_ticket_store, get_runner
from pmagent.config import AgentSettings
from pmagent.state_store import TicketStore


class ScriptedEndpoint:
    """Serves queued Responses API bodies and records request bodies."""

    def __init__(self, *bodies: dict[str, Any], status_code: int = 200) -> None:
        self.bodies = list(bodies)
        self.status_code = status_code
        self.requests: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return httpx.Response(self.status_code, json=self.bodies.pop(0))


def _message(text: str) -> dict[str, Any]:
    return {
        "id": "resp_1",
        "output": [{"type": "message", "content": [{"type": "output_text", "text": text}]}],
    }


@pytest.fixture
def store():
    """Create an in-memory TicketStore."""
    s = TicketStore(":memory:")
    yield s
    s.close()


def _make_app(tmp_path: Path, endpoint: ScriptedEndpoint, store=None, **settings) -> FastAPI:
    values = {"openai_api_key": "sk-test", "repo_root": str(tmp_path)}
    values.update(settings)
    app = create_app(AgentSettings(**values))

    def override_get_store():
        yield store

    app.dependency_overrides[get_optional_ticket_store] = override_get_store
    app.dependency_overrides[get_runner] = lambda: AgentRunner(
        label="test-runner", transport=httpx.MockTransport(endpoint)
    )
    return app


@pytest.mark.unit
class TestRespond:
    """Tests for POST /agent/respond."""

    def test_successful_turn(self, tmp_path: Path) -> None:
        """A completed turn returns the reply and diagnostics."""
        endpoint = ScriptedEndpoint(_message("Hello!"))
        with TestClient(_make_app(tmp_path, endpoint)) as client:
            response = client.post("/api/v1/agent/respond", json={"message": "Hi"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["reply"] == "Hello!"
        assert data["runner"] == "test-runner"
        assert data["response_id"] == "resp_1"
        assert data["tool_calls"] == []
        assert data["outbound_request"]["model"] == "gpt-4.1-mini"
        assert response.json()["error"] is None

    def test_request_fields_forwarded(self, tmp_path: Path) -> None:
        """History, continuation id and images reach the completion request."""
        endpoint = ScriptedEndpoint(_message("ok"))
        payload = {
            "message": "And now?",
            "conversation_history": [{"role": "user", "content": "earlier ask"}],
            "previous_response_id": "resp_prev",
            "images": ["https://example.com/shot.png"],
        }
        with TestClient(_make_app(tmp_path, endpoint)) as client:
            client.post("/api/v1/agent/respond", json=payload)

        sent = endpoint.requests[0]
        assert sent["previous_response_id"] == "resp_prev"
        content = sent["input"][0]["content"]
        assert "**user**: earlier ask" in content[0]["text"]
        assert content[1]["image_url"] == "https://example.com/shot.png"

    def test_store_enables_ticket_tools(self, tmp_path: Path, store: TicketStore) -> None:
        """With a store the ticket tools are declared."""
        endpoint = ScriptedEndpoint(_message("ok"))
        with TestClient(_make_app(tmp_path, endpoint, store=store)) as client:
            client.post("/api/v1/agent/respond", json={"message": "Hi"})

        names = [tool["name"] for tool in endpoint.requests[0]["tools"]]
        assert "create_ticket" in names
        assert "list_available_repos" in names

    def test_failed_turn_returns_502(self, tmp_path: Path) -> None:
        """Completion failures come back as 502 with the phase."""
        endpoint = ScriptedEndpoint({"error": {"message": "bad key"}}, status_code=401)
        with TestClient(_make_app(tmp_path, endpoint)) as client:
            response = client.post("/api/v1/agent/respond", json={"message": "Hi"})

        assert response.status_code == 502
        body = response.json()
        assert body["data"]["error_phase"] == "openai"
        assert "401: bad key" in body["error"]

    def test_missing_api_key_returns_503(self, tmp_path: Path) -> None:
        """Without an API key no turn can run."""
        endpoint = ScriptedEndpoint()
        app = _make_app(tmp_path, endpoint, openai_api_key=None)
        with TestClient(app) as client:
            response = client.post("/api/v1/agent/respond", json={"message": "Hi"})

        assert response.status_code == 503
        assert response.json()["error"] == "OPENAI_API_KEY is not set"
        assert endpoint.requests == []

    def test_empty_message_rejected(self, tmp_path: Path) -> None:
        """An empty message fails validation."""
        with TestClient(_make_app(tmp_path, ScriptedEndpoint())) as client:
            response = client.post("/api/v1/agent/respond", json={"message": ""})
        assert response.status_code == 422
