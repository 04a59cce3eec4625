"""Pydantic models for REST API."""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from pmagent.agent import AgentResult
from pmagent.state_store import RepoSummary, TicketRecord

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None


# Agent models


class ConversationTurnModel(BaseModel):
    """One prior message supplied by the client."""

    role: str = Field(..., min_length=1, max_length=32)
    content: str


class AgentRespondRequest(BaseModel):
    """Request model for running one agent turn."""

    message: str = Field(..., min_length=1)
    conversation_history: list[ConversationTurnModel] = Field(default_factory=list)
    conversation_summary: str | None = None
    previous_response_id: str | None = None
    images: list[str] = Field(default_factory=list)


class RepoUsageResponse(BaseModel):
    """A repository access made by a tool."""

    tool: str
    source: str
    path: str


class ToolCallResponse(BaseModel):
    """A tool invocation made during the turn."""

    name: str
    input: Any
    output: Any


class AgentTurnResponse(BaseModel):
    """Response model for an agent turn."""

    reply: str
    tool_calls: list[ToolCallResponse]
    outbound_request: dict[str, Any]
    repo_usage: list[RepoUsageResponse]
    response_id: str | None
    error_phase: str | None = None
    runner: str


def agent_result_to_response(result: AgentResult, runner_label: str) -> AgentTurnResponse:
    """Convert an AgentResult to AgentTurnResponse."""
    return AgentTurnResponse(
        reply=result.reply,
        tool_calls=[ToolCallResponse(**call.to_dict()) for call in result.tool_calls],
        outbound_request=result.outbound_request,
        repo_usage=[RepoUsageResponse(**usage.to_dict()) for usage in result.repo_usage],
        response_id=result.response_id,
        error_phase=result.error_phase,
        runner=runner_label,
    )


# Ticket models


class TicketResponse(BaseModel):
    """Response model for a ticket."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    display_id: str | None
    repo_full_name: str | None
    ticket_number: int | None
    filename: str
    title: str
    body_md: str
    kanban_column_id: str | None
    kanban_position: int | None
    kanban_moved_at: datetime | None


def ticket_to_response(ticket: TicketRecord) -> TicketResponse:
    """Convert a TicketRecord to TicketResponse."""
    return TicketResponse(
        id=ticket.id,
        ticket_id=ticket.reference,
        display_id=ticket.display_id,
        repo_full_name=ticket.repo_full_name,
        ticket_number=ticket.ticket_number,
        filename=ticket.filename,
        title=ticket.title,
        body_md=ticket.body_md,
        kanban_column_id=ticket.kanban_column_id,
        kanban_position=ticket.kanban_position,
        kanban_moved_at=ticket.kanban_moved_at,
    )


class RepoResponse(BaseModel):
    """Response model for a repository scope."""

    model_config = ConfigDict(from_attributes=True)

    repo_full_name: str
    ticket_count: int


def repo_to_response(repo: RepoSummary) -> RepoResponse:
    """Convert a RepoSummary to RepoResponse."""
    return RepoResponse.model_validate(repo)
