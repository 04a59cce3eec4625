"""Client for the OpenAI Responses API with a bounded function-calling loop."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from pmagent.agent.exceptions import CompletionError

logger = logging.getLogger("pmagent.agent.completion")

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 120.0

ToolExecutor = Callable[[str, str], Awaitable[Any]]
RequestHook = Callable[[dict[str, Any]], None]


@dataclass
class CompletionResult:
    """Final state of a completion loop."""

    text: str
    response_id: str | None
    round_trips: int


def output_text(response: dict[str, Any]) -> str:
    """Concatenate the output_text parts of a Responses API payload."""
    parts: list[str] = []
    for item in response.get("output") or []:
        if item.get("type") != "message":
            continue
        for content in item.get("content") or []:
            if content.get("type") == "output_text" and content.get("text"):
                parts.append(content["text"])
    return "".join(parts)


def function_calls(response: dict[str, Any]) -> list[dict[str, Any]]:
    """Function-call items requested by the model, in order."""
    return [item for item in response.get("output") or [] if item.get("type") == "function_call"]


def build_input(prompt: str, images: list[str] | None = None) -> list[dict[str, Any]]:
    """User input item with a text part and optional image parts."""
    content: list[dict[str, Any]] = [{"type": "input_text", "text": prompt}]
    for url in images or []:
        content.append({"type": "input_image", "image_url": url})
    return [{"role": "user", "content": content}]


class CompletionClient:
    """Drives one turn's exchange with the Responses endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        on_request: RequestHook | None = None,
    ) -> None:
        """Initialize the completion client.

        Args:
            api_key: OpenAI API key
            model: Model name, e.g. "gpt-4.1-mini"
            base_url: API base URL (for testing/proxies)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (for testing)
            on_request: Called with every request body before it is sent
        """
        self.model = model
        self.on_request = on_request
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _create(self, payload: dict[str, Any]) -> dict[str, Any]:
        if self.on_request is not None:
            self.on_request(payload)
        try:
            response = await self._client.post("/responses", json=payload)
        except httpx.HTTPError as e:
            raise CompletionError(f"Request to completion endpoint failed: {e}") from e

        if response.status_code >= 400:
            message = response.text
            try:
                message = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                pass
            raise CompletionError(
                f"Completion endpoint returned {response.status_code}: {message}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise CompletionError(f"Completion endpoint returned invalid JSON: {e}") from e

    async def run(
        self,
        instructions: str,
        prompt: str,
        tools: list[dict[str, Any]],
        execute: ToolExecutor,
        max_steps: int,
        previous_response_id: str | None = None,
        images: list[str] | None = None,
    ) -> CompletionResult:
        """Send the prompt and resolve tool calls until the model answers.

        Each response that requests tools counts as one round trip; after
        ``max_steps`` round trips the latest response is final even if it
        asks for more tools.

        Args:
            instructions: System instructions
            prompt: User prompt text
            tools: Function-tool declarations
            execute: Called as ``execute(name, arguments_json)`` per tool call
            max_steps: Maximum tool round trips
            previous_response_id: Continue from an earlier response
            images: Image URLs (or data URLs) to attach to the prompt

        Raises:
            CompletionError: If the endpoint fails
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "instructions": instructions,
            "input": build_input(prompt, images),
        }
        if tools:
            payload["tools"] = tools
        if previous_response_id:
            payload["previous_response_id"] = previous_response_id

        round_trips = 0
        while True:
            response = await self._create(payload)
            response_id = response.get("id")
            calls = function_calls(response)
            if not calls or round_trips >= max_steps:
                if calls:
                    logger.warning("Tool round-trip cap (%d) reached", max_steps)
                return CompletionResult(output_text(response), response_id, round_trips)

            outputs: list[dict[str, Any]] = []
            for call in calls:
                result = await execute(call.get("name", ""), call.get("arguments") or "{}")
                outputs.append(
                    {
                        "type": "function_call_output",
                        "call_id": call.get("call_id"),
                        "output": json.dumps(result, default=str),
                    }
                )
            round_trips += 1

            payload = {
                "model": self.model,
                "instructions": instructions,
                "previous_response_id": response_id,
                "input": outputs,
            }
            if tools:
                payload["tools"] = tools
