"""Agent runner - one Project Manager turn from user message to reply.

A turn builds the context pack, hands the prompt and tool declarations to the
completion endpoint, executes requested tools one at a time and returns the
reply with diagnostics. Failures are reported on the result with the phase
they happened in rather than raised.
"""

from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from pmagent.agent.completion import DEFAULT_BASE_URL, CompletionClient
from pmagent.agent.exceptions import CompletionError, ToolExecutionError
from pmagent.agent.fallback import fallback_reply
from pmagent.agent.tools import ToolCallRecord, ToolContext, build_tool_registry
from pmagent.context import (
    ContextPackConfig,
    ContextPackError,
    ConversationTurn,
    build_context_pack,
)
from pmagent.context.models import DEFAULT_RULES_DIR
from pmagent.logging import sanitize_for_log, truncate_output
from pmagent.redact import redact
from pmagent.repo_tools import GitHubRepoTools, LocalRepoTools, RepoTools, RepoUsage
from pmagent.state_store import TicketStore
from pmagent.tickets import DEFAULT_REPO, TicketLifecycle

logger = logging.getLogger("pmagent.agent.runner")

MAX_TOOL_ITERATIONS = 10
DEFAULT_MODEL = "gpt-4.1-mini"
SHARED_RUNNER_LABEL = "v2 (shared)"

PHASE_CONTEXT_PACK = "context-pack"
PHASE_OPENAI = "openai"
PHASE_TOOL = "tool"

PM_SYSTEM_INSTRUCTIONS = """You are the Project Manager agent. Your job is to help users \
understand the codebase, review and write tickets, and keep the Kanban board tidy.

Use the repository tools to answer questions about code, tickets and project state. \
Always cite file paths when referencing specific content.

When creating or updating tickets:
- Follow the ticket template from the context pack.
- Fill every required section (Goal, Human-verifiable deliverable, Acceptance criteria, \
Constraints, Non-goals) and write acceptance criteria as "- [ ]" checkboxes.
- Never leave template placeholders such as <what the user will see>.
- Refer to tickets by the id returned from the tools.

After using tools, always tell the user what you did and what the outcome was, \
including any error messages the tools reported."""

PROMPT_SUFFIX = "Respond to the user message above using the tools as needed."


@dataclass
class AgentConfig:
    """Settings for one agent turn.

    Attributes:
        repo_root: Local checkout used for context and (when not connected) repo tools.
        openai_api_key: API key for the completion endpoint.
        openai_model: Model name.
        openai_base_url: Completion endpoint base URL.
        rules_dir: Rules directory relative to repo_root.
        conversation_history: Prior turns, oldest first.
        conversation_summary: Pre-built conversation block used instead of the history.
        previous_response_id: Continuation token from an earlier turn.
        images: Image URLs attached to the user message.
        store: Ticket store; ticket tools are only offered when set.
        repo_full_name: Repository scope for ticket numbering.
        connected_repo: GitHub "owner/name" to inspect instead of repo_root.
        github_token: Token for the connected repository.
        max_steps: Tool round-trip cap.
    """

    repo_root: str
    openai_api_key: str
    openai_model: str = DEFAULT_MODEL
    openai_base_url: str = DEFAULT_BASE_URL
    rules_dir: str = DEFAULT_RULES_DIR
    conversation_history: list[ConversationTurn] = field(default_factory=list)
    conversation_summary: str | None = None
    previous_response_id: str | None = None
    images: list[str] = field(default_factory=list)
    store: TicketStore | None = None
    repo_full_name: str = DEFAULT_REPO
    connected_repo: str | None = None
    github_token: str | None = None
    max_steps: int = MAX_TOOL_ITERATIONS


@dataclass
class AgentResult:
    """Outcome of one turn."""

    reply: str
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    outbound_request: dict[str, Any] = field(default_factory=dict)
    repo_usage: list[RepoUsage] = field(default_factory=list)
    response_id: str | None = None
    error: str | None = None
    error_phase: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the turn completed without a turn-level error."""
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "reply": self.reply,
            "toolCalls": [call.to_dict() for call in self.tool_calls],
            "outboundRequest": self.outbound_request,
            "repoUsage": [usage.to_dict() for usage in self.repo_usage],
            "responseId": self.response_id,
            "error": self.error,
            "errorPhase": self.error_phase,
        }


class AgentRunner:
    """Runs Project Manager turns in-process."""

    def __init__(
        self,
        label: str = SHARED_RUNNER_LABEL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            label: Human-visible name shown in diagnostics
            transport: Optional httpx transport for the completion client (for testing)
        """
        self.label = label
        self._transport = transport

    def _repo_tools(self, config: AgentConfig) -> RepoTools:
        if config.connected_repo:
            return GitHubRepoTools(config.connected_repo, config.github_token or "")
        return LocalRepoTools(config.repo_root)

    async def run(self, message: str, config: AgentConfig) -> AgentResult:
        """Run one turn.

        Args:
            message: The user's message
            config: Turn settings

        Returns:
            AgentResult with the reply, or with error and error_phase set
        """
        started = time.monotonic()
        logger.info(
            "Turn started (runner=%s, model=%s, store=%s, source=%s)",
            self.label,
            config.openai_model,
            "on" if config.store is not None else "off",
            "github" if config.connected_repo else "local",
        )

        logger.debug("Phase: building-context")
        context_config = ContextPackConfig(
            repo_root=config.repo_root,
            rules_dir=config.rules_dir,
            conversation_history=config.conversation_history,
            conversation_summary=config.conversation_summary,
        )
        try:
            context_pack = await build_context_pack(context_config, message)
        except ContextPackError as e:
            logger.error("Turn failed in %s phase: %s", PHASE_CONTEXT_PACK, e)
            return AgentResult(reply="", error=str(e), error_phase=PHASE_CONTEXT_PACK)

        repo_tools = self._repo_tools(config)
        lifecycle = (
            TicketLifecycle(config.store, config.repo_full_name)
            if config.store is not None
            else None
        )
        registry = build_tool_registry(ToolContext(repo=repo_tools, lifecycle=lifecycle))

        tool_calls: list[ToolCallRecord] = []
        repo_usage: list[RepoUsage] = []
        captured: list[dict[str, Any]] = []

        def capture(payload: dict[str, Any]) -> None:
            if not captured:
                captured.append(copy.deepcopy(payload))

        async def execute(name: str, raw_arguments: str) -> dict[str, Any]:
            logger.debug("Phase: executing-tool (%s)", name)
            try:
                arguments = json.loads(raw_arguments)
            except json.JSONDecodeError as e:
                output = {"success": False, "error": f"Invalid JSON arguments: {e}"}
                tool_calls.append(ToolCallRecord(name, raw_arguments, output))
                return output
            tool_started = time.monotonic()
            result = await registry.execute(name, arguments)
            logger.info("Tool %s finished in %.2fs", name, time.monotonic() - tool_started)
            logger.debug(
                "Tool %s output: %s",
                name,
                truncate_output(sanitize_for_log(json.dumps(result.output, default=str)), 2000),
            )
            tool_calls.append(ToolCallRecord(name, arguments, result.output))
            repo_usage.extend(result.repo_usage)
            logger.debug("Phase: awaiting-completion")
            return result.output

        def outbound() -> dict[str, Any]:
            return redact(captured[0]) if captured else {}

        client = CompletionClient(
            api_key=config.openai_api_key,
            model=config.openai_model,
            base_url=config.openai_base_url,
            transport=self._transport,
            on_request=capture,
        )
        logger.debug("Phase: awaiting-completion")
        try:
            completion = await client.run(
                instructions=PM_SYSTEM_INSTRUCTIONS,
                prompt=f"{context_pack}\n\n---\n\n{PROMPT_SUFFIX}",
                tools=registry.definitions(),
                execute=execute,
                max_steps=config.max_steps,
                previous_response_id=config.previous_response_id,
                images=config.images,
            )
        except ToolExecutionError as e:
            logger.error("Turn failed in %s phase: %s", PHASE_TOOL, e)
            return AgentResult(
                reply="",
                tool_calls=tool_calls,
                outbound_request=outbound(),
                repo_usage=repo_usage,
                error=str(e),
                error_phase=PHASE_TOOL,
            )
        except CompletionError as e:
            logger.error("Turn failed in %s phase: %s", PHASE_OPENAI, e)
            return AgentResult(
                reply="",
                tool_calls=tool_calls,
                outbound_request=outbound(),
                repo_usage=repo_usage,
                error=str(e),
                error_phase=PHASE_OPENAI,
            )
        finally:
            await client.aclose()
            if isinstance(repo_tools, GitHubRepoTools):
                repo_tools.close()

        reply = completion.text.strip()
        if not reply:
            reply = fallback_reply(tool_calls)
            logger.info("Model returned no text; using fallback reply")

        logger.info(
            "Turn done in %.2fs (%d tool calls, %d round trips)",
            time.monotonic() - started,
            len(tool_calls),
            completion.round_trips,
        )
        return AgentResult(
            reply=reply,
            tool_calls=tool_calls,
            outbound_request=outbound(),
            repo_usage=repo_usage,
            response_id=completion.response_id,
        )


_shared_runner: AgentRunner | None = None


def get_shared_runner() -> AgentRunner:
    """Get the runner instance shared by the API and CLI."""
    global _shared_runner
    if _shared_runner is None:
        _shared_runner = AgentRunner(label=SHARED_RUNNER_LABEL)
    return _shared_runner


# Legacy canned replies, no model call

SIGNATURE = "[PM@pmagent]"
STANDUP_TRIGGERS = ("standup", "status")


@dataclass
class RespondResult:
    """Reply from the legacy responder."""

    reply_text: str
    case: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"replyText": self.reply_text, "meta": {"source": "pmagent", "case": self.case}}


def respond(message: str) -> RespondResult:
    """Canned reply: a standup summary for status questions, else a checklist."""
    normalized = message.strip().lower()
    if any(trigger in normalized for trigger in STANDUP_TRIGGERS):
        return RespondResult(
            reply_text=(
                f"{SIGNATURE} Standup summary:\n"
                "• Reviewed ticket backlog\n"
                "• No blockers identified\n"
                "• Ready to assist with prioritization"
            ),
            case="standup",
        )
    return RespondResult(
        reply_text=(
            f"{SIGNATURE} Message received. Here's a quick checklist to move forward:\n"
            "• [ ] Clarify scope if needed\n"
            "• [ ] Confirm priority with stakeholder\n"
            "• [ ] Break down into tasks when ready"
        ),
        case="default",
    )
