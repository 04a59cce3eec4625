"""Unit tests for the completion client."""

import asyncio
import json
from typing import Any

import httpx
import pytest

from pmagent.agent.completion import CompletionClient, build_input, function_calls, output_text
from pmagent.agent.exceptions import CompletionError


def _message(text: str, response_id: str = "resp_final") -> dict[str, Any]:
    return {
        "id": response_id,
        "output": [
            {"type": "message", "content": [{"type": "output_text", "text": text}]},
        ],
    }


def _tool_call(name: str, arguments: dict, call_id: str, response_id: str) -> dict[str, Any]:
    return {
        "id": response_id,
        "output": [
            {
                "type": "function_call",
                "name": name,
                "arguments": json.dumps(arguments),
                "call_id": call_id,
            }
        ],
    }


class ScriptedEndpoint:
    """Serves queued responses and records request bodies."""

    def __init__(self, responses: list[httpx.Response]) -> None:
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/responses")
        self.requests.append(json.loads(request.content))
        return self.responses.pop(0)


def _client(endpoint, **kwargs) -> CompletionClient:
    return CompletionClient(
        api_key="sk-test",
        model="gpt-4.1-mini",
        transport=httpx.MockTransport(endpoint),
        **kwargs,
    )


async def _echo_executor(name: str, arguments: str) -> dict[str, Any]:
    return {"tool": name, "args": json.loads(arguments)}


def _run(client: CompletionClient, max_steps: int = 10, **kwargs):
    async def go():
        try:
            return await client.run(
                instructions="Be helpful",
                prompt="Hello",
                tools=[{"type": "function", "name": "read_file"}],
                execute=kwargs.pop("execute", _echo_executor),
                max_steps=max_steps,
                **kwargs,
            )
        finally:
            await client.aclose()

    return asyncio.run(go())


@pytest.mark.unit
class TestPayloadHelpers:
    """Tests for response parsing helpers."""

    def test_output_text_joins_message_parts(self) -> None:
        """Only output_text parts of message items are collected."""
        response = {
            "output": [
                {"type": "reasoning", "content": [{"type": "output_text", "text": "hidden"}]},
                {
                    "type": "message",
                    "content": [
                        {"type": "output_text", "text": "Hello "},
                        {"type": "refusal", "text": "no"},
                        {"type": "output_text", "text": "there"},
                    ],
                },
            ]
        }
        assert output_text(response) == "Hello there"

    def test_function_calls(self) -> None:
        """Function calls are picked out in order."""
        response = _tool_call("read_file", {"path": "a"}, "c1", "r1")
        assert [c["call_id"] for c in function_calls(response)] == ["c1"]
        assert function_calls({}) == []

    def test_build_input_with_images(self) -> None:
        """Images become input_image parts after the text."""
        content = build_input("look", ["data:image/png;base64,AAA"])[0]["content"]
        assert content == [
            {"type": "input_text", "text": "look"},
            {"type": "input_image", "image_url": "data:image/png;base64,AAA"},
        ]


@pytest.mark.unit
class TestCompletionRun:
    """Tests for CompletionClient.run."""

    def test_plain_answer(self) -> None:
        """A response without tool calls ends the loop immediately."""
        endpoint = ScriptedEndpoint([httpx.Response(200, json=_message("Hi!"))])
        result = _run(_client(endpoint))

        assert result.text == "Hi!"
        assert result.response_id == "resp_final"
        assert result.round_trips == 0
        first = endpoint.requests[0]
        assert first["model"] == "gpt-4.1-mini"
        assert first["instructions"] == "Be helpful"
        assert first["tools"] == [{"type": "function", "name": "read_file"}]
        assert "previous_response_id" not in first

    def test_tool_outputs_continue_previous_response(self) -> None:
        """Tool results are sent back as function_call_output items."""
        endpoint = ScriptedEndpoint(
            [
                httpx.Response(200, json=_tool_call("read_file", {"path": "a.md"}, "call_1", "resp_1")),
                httpx.Response(200, json=_message("Done")),
            ]
        )
        result = _run(_client(endpoint))

        assert result.text == "Done"
        assert result.round_trips == 1
        follow_up = endpoint.requests[1]
        assert follow_up["previous_response_id"] == "resp_1"
        assert follow_up["input"] == [
            {
                "type": "function_call_output",
                "call_id": "call_1",
                "output": json.dumps({"tool": "read_file", "args": {"path": "a.md"}}),
            }
        ]

    def test_round_trip_cap(self) -> None:
        """After max_steps round trips the latest response is final."""
        responses = [
            httpx.Response(200, json=_tool_call("read_file", {"path": "x"}, f"c{i}", f"r{i}"))
            for i in range(3)
        ]
        endpoint = ScriptedEndpoint(responses)
        executed: list[str] = []

        async def execute(name: str, arguments: str) -> dict[str, Any]:
            executed.append(name)
            return {"ok": True}

        result = _run(_client(endpoint), max_steps=2, execute=execute)

        assert result.round_trips == 2
        assert result.text == ""
        assert len(executed) == 2
        assert len(endpoint.requests) == 3

    def test_previous_response_and_images_forwarded(self) -> None:
        """A prior response id and images go into the first request."""
        endpoint = ScriptedEndpoint([httpx.Response(200, json=_message("ok"))])
        _run(_client(endpoint), previous_response_id="resp_prev", images=["https://x/y.png"])

        first = endpoint.requests[0]
        assert first["previous_response_id"] == "resp_prev"
        assert first["input"][0]["content"][1]["image_url"] == "https://x/y.png"

    def test_on_request_sees_every_payload(self) -> None:
        """The request hook is called before each request."""
        seen: list[dict[str, Any]] = []
        endpoint = ScriptedEndpoint(
            [
                httpx.Response(200, json=_tool_call("read_file", {}, "c1", "r1")),
                httpx.Response(200, json=_message("ok")),
            ]
        )
        _run(_client(endpoint, on_request=seen.append))
        assert len(seen) == 2


@pytest.mark.unit
class TestCompletionErrors:
    """Tests for endpoint failures."""

    def test_error_status_uses_api_message(self) -> None:
        """Error payload messages are surfaced with the status code."""
        endpoint = ScriptedEndpoint(
            [httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})]
        )
        with pytest.raises(CompletionError, match="401: Incorrect API key provided") as exc_info:
            _run(_client(endpoint))
        assert exc_info.value.status_code == 401

    def test_error_status_without_json(self) -> None:
        """Non-JSON error bodies are reported as text."""
        endpoint = ScriptedEndpoint([httpx.Response(503, text="upstream down")])
        with pytest.raises(CompletionError, match="503: upstream down"):
            _run(_client(endpoint))

    def test_invalid_json(self) -> None:
        """A success status with an unparseable body is an error."""
        endpoint = ScriptedEndpoint([httpx.Response(200, text="not json")])
        with pytest.raises(CompletionError, match="invalid JSON"):
            _run(_client(endpoint))

    def test_transport_failure(self) -> None:
        """Connection failures become CompletionError."""

        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CompletionError, match="Request to completion endpoint failed"):
            _run(_client(fail))
