"""Unit tests for AgentRunner."""

import asyncio
import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from pmagent.agent import AgentConfig, AgentRunner, get_shared_runner, respond
from pmagent.agent.runner import PM_SYSTEM_INSTRUCTIONS, SHARED_RUNNER_LABEL
from pmagent.context import ContextPackError, ConversationTurn
from pmagent.redact import REDACTED
from pmagent.repo_tools import LocalRepoTools, RepoUsage
from pmagent.state_store import TicketStore

SECRET = "sk-" + "Zz9Yy8Xx7Ww6Vv5Uu4Tt3Ss2"

READY_BODY = """## Goal

Users can log in.

## Human-verifiable deliverable

Login form works.

## Acceptance criteria

- Works

## Constraints

None.

## Non-goals

SSO.
"""


def _message(text: str, response_id: str = "resp_final") -> dict[str, Any]:
    return {
        "id": response_id,
        "output": [{"type": "message", "content": [{"type": "output_text", "text": text}]}],
    }


def _calls(*calls: tuple[str, Any], response_id: str = "resp_tools") -> dict[str, Any]:
    return {
        "id": response_id,
        "output": [
            {
                "type": "function_call",
                "name": name,
                "arguments": args if isinstance(args, str) else json.dumps(args),
                "call_id": f"call_{i}",
            }
            for i, (name, args) in enumerate(calls)
        ],
    }


class ScriptedEndpoint:
    """Serves queued JSON bodies and records request bodies."""

    def __init__(self, *bodies: dict[str, Any], status_code: int = 200) -> None:
        self.bodies = list(bodies)
        self.status_code = status_code
        self.requests: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return httpx.Response(self.status_code, json=self.bodies.pop(0))


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Repository checkout with a rules file and one document."""
    (tmp_path / ".cursor" / "rules").mkdir(parents=True)
    (tmp_path / ".cursor" / "rules" / "pm.mdc").write_text("Be concise.\n")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "plan.md").write_text("# Plan\n")
    return tmp_path


def _config(repo: Path, **kwargs) -> AgentConfig:
    return AgentConfig(repo_root=str(repo), openai_api_key=SECRET, **kwargs)


def _run(endpoint: ScriptedEndpoint, message: str, config: AgentConfig):
    runner = AgentRunner(label="test", transport=httpx.MockTransport(endpoint))
    return asyncio.run(runner.run(message, config))


@pytest.mark.unit
class TestSuccessfulTurns:
    """Tests for turns that complete."""

    def test_plain_reply(self, repo: Path) -> None:
        """The model's text is the reply; no tools means no diagnostics."""
        endpoint = ScriptedEndpoint(_message("  Hello there  "))
        result = _run(endpoint, "Hi", _config(repo))

        assert result.ok
        assert result.reply == "Hello there"
        assert result.response_id == "resp_final"
        assert result.tool_calls == []
        assert result.repo_usage == []

    def test_tools_without_store(self, repo: Path) -> None:
        """Ticket store tools are not declared when no store is configured."""
        endpoint = ScriptedEndpoint(_message("ok"))
        _run(endpoint, "Hi", _config(repo))

        names = [tool["name"] for tool in endpoint.requests[0]["tools"]]
        assert names == ["list_directory", "read_file", "search_files", "evaluate_ticket_ready"]

    def test_outbound_request_is_first_payload_redacted(self, repo: Path) -> None:
        """Diagnostics hold the first request with secrets redacted."""
        endpoint = ScriptedEndpoint(
            _calls(("read_file", {"path": "docs/plan.md"})),
            _message("Read it."),
        )
        config = _config(
            repo, conversation_history=[ConversationTurn("user", f"my key is {SECRET}")]
        )
        result = _run(endpoint, "What is in the plan?", config)

        outbound = result.outbound_request
        assert outbound["instructions"] == PM_SYSTEM_INSTRUCTIONS
        prompt = outbound["input"][0]["content"][0]["text"]
        assert "What is in the plan?" in prompt
        assert "Be concise." in prompt
        assert SECRET not in json.dumps(outbound)
        assert REDACTED in prompt
        # the endpoint itself received the unredacted prompt
        assert SECRET in endpoint.requests[0]["input"][0]["content"][0]["text"]

    def test_tool_calls_and_repo_usage(self, repo: Path) -> None:
        """Tool calls are recorded in order with the repository paths touched."""
        endpoint = ScriptedEndpoint(
            _calls(("list_directory", {"path": "docs"}), ("read_file", {"path": "docs/plan.md"})),
            _message("Done"),
        )
        result = _run(endpoint, "Look around", _config(repo))

        assert [call.name for call in result.tool_calls] == ["list_directory", "read_file"]
        assert result.tool_calls[0].output == {"entries": ["plan.md"]}
        assert result.repo_usage == [
            RepoUsage("list_directory", "local", "docs"),
            RepoUsage("read_file", "local", "docs/plan.md"),
        ]

    def test_empty_reply_uses_fallback(self, repo: Path) -> None:
        """A silent model gets a reply built from the tool calls."""
        endpoint = ScriptedEndpoint(
            _calls(("create_ticket", {"title": "Fix login", "body_md": READY_BODY})),
            _message(""),
        )
        config = _config(repo, store=TicketStore(":memory:"), repo_full_name="acme/portfolio-2026-hal")
        result = _run(endpoint, "Create a login ticket", config)

        assert result.ok
        assert result.reply == (
            "Created ticket HAL-0001: Fix login. "
            "It is ready to start and was moved to To Do."
        )
        assert result.tool_calls[0].output["autoFixed"] is True

    def test_invalid_json_arguments_reported_to_model(self, repo: Path) -> None:
        """Unparseable arguments become an error output, not a failed turn."""
        endpoint = ScriptedEndpoint(_calls(("read_file", "{not json")), _message("Sorry"))
        result = _run(endpoint, "Read", _config(repo))

        assert result.ok
        assert result.tool_calls[0].input == "{not json"
        assert result.tool_calls[0].output["success"] is False
        sent = json.loads(endpoint.requests[1]["input"][0]["output"])
        assert sent["error"].startswith("Invalid JSON arguments")

    def test_to_dict(self, repo: Path) -> None:
        """Serialized results use camelCase keys."""
        result = _run(ScriptedEndpoint(_message("ok")), "Hi", _config(repo))
        assert set(result.to_dict()) == {
            "reply",
            "toolCalls",
            "outboundRequest",
            "repoUsage",
            "responseId",
            "error",
            "errorPhase",
        }


@pytest.mark.unit
class TestFailedTurns:
    """Tests for the error phases."""

    def test_context_pack_failure(self, repo: Path) -> None:
        """Context assembly failures stop the turn before any request."""
        endpoint = ScriptedEndpoint()
        with patch(
            "pmagent.agent.runner.build_context_pack",
            side_effect=ContextPackError("Failed to assemble conversation: bad"),
        ):
            result = _run(endpoint, "Hi", _config(repo))

        assert not result.ok
        assert result.error_phase == "context-pack"
        assert result.reply == ""
        assert endpoint.requests == []

    def test_completion_failure(self, repo: Path) -> None:
        """Endpoint errors fail the turn in the openai phase."""
        endpoint = ScriptedEndpoint({"error": {"message": "Rate limit"}}, status_code=429)
        result = _run(endpoint, "Hi", _config(repo))

        assert result.error_phase == "openai"
        assert "429: Rate limit" in result.error
        assert result.outbound_request["model"] == "gpt-4.1-mini"

    def test_tool_failure(self, repo: Path) -> None:
        """An unexpected tool exception fails the turn in the tool phase."""
        endpoint = ScriptedEndpoint(_calls(("list_directory", {"path": "."})), _message("x"))
        with patch.object(LocalRepoTools, "list_directory", side_effect=RuntimeError("boom")):
            result = _run(endpoint, "List", _config(repo))

        assert result.error_phase == "tool"
        assert result.error == "Tool list_directory failed: boom"
        assert len(endpoint.requests) == 1

    def test_domain_error_is_not_a_turn_failure(self, repo: Path) -> None:
        """Ticket errors go back to the model and the turn continues."""
        endpoint = ScriptedEndpoint(
            _calls(("fetch_ticket_content", {"ticket_id": "0099"})), _message("Not found.")
        )
        result = _run(endpoint, "Show 0099", _config(repo, store=TicketStore(":memory:")))

        assert result.ok
        assert result.reply == "Not found."
        assert "not found" in result.tool_calls[0].output["error"]


@pytest.mark.unit
class TestSharedRunner:
    """Tests for the shared runner and canned responder."""

    def test_shared_runner_is_singleton(self) -> None:
        """The shared runner is created once."""
        runner = get_shared_runner()
        assert runner is get_shared_runner()
        assert runner.label == SHARED_RUNNER_LABEL

    def test_respond_standup(self) -> None:
        """Status questions get the standup summary."""
        result = respond("What's the STATUS today?")
        assert result.case == "standup"
        assert result.reply_text.startswith("[PM@pmagent] Standup summary:")

    def test_respond_default(self) -> None:
        """Anything else gets the checklist."""
        data = respond("Plan the sprint").to_dict()
        assert data["meta"] == {"source": "pmagent", "case": "default"}
        assert "Clarify scope" in data["replyText"]
