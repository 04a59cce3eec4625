"""Agent - the Project Manager tool loop."""

from pmagent.agent.completion import CompletionClient, CompletionResult
from pmagent.agent.exceptions import AgentError, CompletionError, ToolExecutionError
from pmagent.agent.fallback import FALLBACK_RULES, FallbackRule, fallback_reply
from pmagent.agent.runner import (
    MAX_TOOL_ITERATIONS,
    SHARED_RUNNER_LABEL,
    AgentConfig,
    AgentResult,
    AgentRunner,
    RespondResult,
    get_shared_runner,
    respond,
)
from pmagent.agent.tools import (
    TOOL_SPECS,
    Capability,
    ToolCallRecord,
    ToolContext,
    ToolRegistry,
    ToolResult,
    ToolSpec,
    build_tool_registry,
)

__all__ = [
    "FALLBACK_RULES",
    "MAX_TOOL_ITERATIONS",
    "SHARED_RUNNER_LABEL",
    "TOOL_SPECS",
    "AgentConfig",
    "AgentError",
    "AgentResult",
    "AgentRunner",
    "Capability",
    "CompletionClient",
    "CompletionError",
    "CompletionResult",
    "FallbackRule",
    "RespondResult",
    "ToolCallRecord",
    "ToolContext",
    "ToolExecutionError",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
    "build_tool_registry",
    "fallback_reply",
    "get_shared_runner",
    "respond",
]
