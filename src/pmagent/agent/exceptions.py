"""Custom exceptions for the agent runner."""


class AgentError(Exception):
    """Base exception for agent turn failures."""


class CompletionError(AgentError):
    """The completion endpoint failed or returned an unusable response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ToolExecutionError(AgentError):
    """A tool raised an unexpected exception while running."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"Tool {tool_name} failed: {message}")
        self.tool_name = tool_name
