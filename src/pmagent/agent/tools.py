"""Tool registry - the functions the model may call during a turn.

Tools are declared once in TOOL_SPECS, each keyed by the capability it needs.
A registry for one turn holds only the tools whose capability is available:
store-backed ticket tools appear only when a ticket store is configured.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from pmagent.agent.exceptions import ToolExecutionError
from pmagent.repo_tools import RepoTools, RepoToolError, RepoUsage
from pmagent.state_store import StateStoreError
from pmagent.tickets import TicketError, TicketLifecycle, evaluate_ticket_ready

logger = logging.getLogger("pmagent.agent.tools")


class Capability(StrEnum):
    """What a tool needs in order to run."""

    REPO = "repo"
    READINESS = "readiness"
    STORE = "store"


@dataclass
class ToolContext:
    """Collaborators available to tools during one turn."""

    repo: RepoTools
    lifecycle: TicketLifecycle | None = None

    @property
    def capabilities(self) -> set[Capability]:
        """Capabilities this context can satisfy."""
        available = {Capability.REPO, Capability.READINESS}
        if self.lifecycle is not None:
            available.add(Capability.STORE)
        return available


@dataclass
class ToolResult:
    """Output of one tool execution plus the repository accesses it made."""

    output: dict[str, Any]
    repo_usage: list[RepoUsage] = field(default_factory=list)


@dataclass
class ToolCallRecord:
    """One tool invocation as seen by the caller of a turn."""

    name: str
    input: Any
    output: Any

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "input": self.input, "output": self.output}


# Tool arguments


class PathArgs(BaseModel):
    path: str = Field(..., description="Path relative to the repository root")


class SearchArgs(BaseModel):
    pattern: str = Field(..., description="Regular expression to search for")
    glob: str | None = Field(
        default=None, description="File glob, e.g. '**/*.md' (default: all files)"
    )


class CreateTicketArgs(BaseModel):
    title: str = Field(..., description="Short ticket title without an id prefix")
    body_md: str = Field(..., description="Full markdown body following the ticket template")


class TicketIdArgs(BaseModel):
    ticket_id: str = Field(..., description="Ticket id, e.g. 'HAL-0012', '0012' or '12'")


class BodyArgs(BaseModel):
    body_md: str = Field(..., description="Markdown ticket body to evaluate")


class UpdateBodyArgs(BaseModel):
    ticket_id: str = Field(..., description="Ticket id, e.g. 'HAL-0012', '0012' or '12'")
    body_md: str = Field(..., description="Replacement markdown body")


class MoveOtherRepoArgs(BaseModel):
    ticket_id: str = Field(..., description="Ticket id, e.g. 'HAL-0012', '0012' or '12'")
    target_repo_full_name: str = Field(..., description="Target repository as 'owner/name'")


class ColumnArgs(BaseModel):
    column_id: str = Field(..., description="Column id, e.g. 'col-todo' or 'col-unassigned'")


class NoArgs(BaseModel):
    pass


# Handlers


def _usage(ctx: ToolContext, tool: str, path: str) -> list[RepoUsage]:
    return [RepoUsage(tool=tool, source=ctx.repo.source, path=path)]


def _list_directory(ctx: ToolContext, args: PathArgs) -> ToolResult:
    output = ctx.repo.list_directory(args.path)
    return ToolResult(output, _usage(ctx, "list_directory", args.path))


def _read_file(ctx: ToolContext, args: PathArgs) -> ToolResult:
    output = ctx.repo.read_file(args.path)
    return ToolResult(output, _usage(ctx, "read_file", args.path))


def _search_files(ctx: ToolContext, args: SearchArgs) -> ToolResult:
    output = ctx.repo.search_files(args.pattern, args.glob)
    return ToolResult(output, _usage(ctx, "search_files", args.glob or args.pattern))


def _lifecycle(ctx: ToolContext) -> TicketLifecycle:
    if ctx.lifecycle is None:
        raise TicketError("Ticket store is not configured")
    return ctx.lifecycle


def _create_ticket(ctx: ToolContext, args: CreateTicketArgs) -> ToolResult:
    return ToolResult(_lifecycle(ctx).create_ticket(args.title, args.body_md).to_dict())


def _fetch_ticket_content(ctx: ToolContext, args: TicketIdArgs) -> ToolResult:
    ticket = _lifecycle(ctx).fetch(args.ticket_id)
    return ToolResult({"success": True, "ticketId": ticket.reference, **ticket.to_dict()})


def _evaluate_ticket_ready(ctx: ToolContext, args: BodyArgs) -> ToolResult:
    return ToolResult({"success": True, **evaluate_ticket_ready(args.body_md).to_dict()})


def _update_ticket_body(ctx: ToolContext, args: UpdateBodyArgs) -> ToolResult:
    return ToolResult(_lifecycle(ctx).update_body(args.ticket_id, args.body_md).to_dict())


def _move_to_todo(ctx: ToolContext, args: TicketIdArgs) -> ToolResult:
    return ToolResult(_lifecycle(ctx).move_to_todo(args.ticket_id).to_dict())


def _move_to_other_repo_todo(ctx: ToolContext, args: MoveOtherRepoArgs) -> ToolResult:
    result = _lifecycle(ctx).move_to_other_repo_todo(args.ticket_id, args.target_repo_full_name)
    return ToolResult(result.to_dict())


def _list_tickets_by_column(ctx: ToolContext, args: ColumnArgs) -> ToolResult:
    return ToolResult(_lifecycle(ctx).list_by_column(args.column_id).to_dict())


def _list_available_repos(ctx: ToolContext, args: NoArgs) -> ToolResult:
    repos = _lifecycle(ctx).list_repos()
    return ToolResult(
        {
            "success": True,
            "repos": [
                {"repo_full_name": r.repo_full_name, "ticket_count": r.ticket_count}
                for r in repos
            ],
        }
    )


@dataclass(frozen=True)
class ToolSpec:
    """Declaration of one model-callable tool."""

    name: str
    description: str
    args_model: type[BaseModel]
    handler: Callable[[ToolContext, Any], ToolResult]
    capability: Capability

    def definition(self) -> dict[str, Any]:
        """Function-tool declaration for the completion endpoint."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.args_model.model_json_schema(),
        }


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        "list_directory",
        "List files in a directory. Path is relative to the repo root.",
        PathArgs,
        _list_directory,
        Capability.REPO,
    ),
    ToolSpec(
        "read_file",
        "Read file contents. Path is relative to the repo root. Max 500 lines.",
        PathArgs,
        _read_file,
        Capability.REPO,
    ),
    ToolSpec(
        "search_files",
        "Regex search across files, optionally limited by a glob such as '**/*.md'.",
        SearchArgs,
        _search_files,
        Capability.REPO,
    ),
    ToolSpec(
        "create_ticket",
        "Create a ticket in Unassigned. It is moved to To Do automatically when ready.",
        CreateTicketArgs,
        _create_ticket,
        Capability.STORE,
    ),
    ToolSpec(
        "fetch_ticket_content",
        "Fetch a ticket's title, body and Kanban state.",
        TicketIdArgs,
        _fetch_ticket_content,
        Capability.STORE,
    ),
    ToolSpec(
        "evaluate_ticket_ready",
        "Check a ticket body against the Definition of Ready.",
        BodyArgs,
        _evaluate_ticket_ready,
        Capability.READINESS,
    ),
    ToolSpec(
        "update_ticket_body",
        "Replace a ticket's markdown body and re-evaluate readiness.",
        UpdateBodyArgs,
        _update_ticket_body,
        Capability.STORE,
    ),
    ToolSpec(
        "kanban_move_ticket_to_todo",
        "Move a ticket from Unassigned to the end of To Do.",
        TicketIdArgs,
        _move_to_todo,
        Capability.STORE,
    ),
    ToolSpec(
        "kanban_move_ticket_to_other_repo_todo",
        "Move a ticket from any column to To Do of another repository, renumbering it.",
        MoveOtherRepoArgs,
        _move_to_other_repo_todo,
        Capability.STORE,
    ),
    ToolSpec(
        "list_tickets_by_column",
        "List tickets in a Kanban column for the current repository.",
        ColumnArgs,
        _list_tickets_by_column,
        Capability.STORE,
    ),
    ToolSpec(
        "list_available_repos",
        "List repositories that have tickets, with ticket counts.",
        NoArgs,
        _list_available_repos,
        Capability.STORE,
    ),
)


class ToolRegistry:
    """Tools available for one turn."""

    def __init__(self, context: ToolContext, specs: tuple[ToolSpec, ...] = TOOL_SPECS) -> None:
        self.context = context
        available = context.capabilities
        self._specs = {spec.name: spec for spec in specs if spec.capability in available}

    @property
    def names(self) -> list[str]:
        """Names of the registered tools, in declaration order."""
        return list(self._specs)

    def definitions(self) -> list[dict[str, Any]]:
        """Declarations to send to the completion endpoint."""
        return [spec.definition() for spec in self._specs.values()]

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Run a tool by name.

        Validation problems and domain errors come back as
        ``{"success": False, "error": ...}`` outputs for the model.

        Raises:
            ToolExecutionError: If the tool fails unexpectedly
        """
        spec = self._specs.get(name)
        if spec is None:
            return ToolResult({"success": False, "error": f"Unknown tool: {name}"})
        try:
            args = spec.args_model.model_validate(arguments)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            )
            return ToolResult({"success": False, "error": f"Invalid arguments for {name}: {problems}"})

        try:
            return await asyncio.to_thread(spec.handler, self.context, args)
        except (TicketError, StateStoreError, RepoToolError) as e:
            logger.info("Tool %s returned error: %s", name, e)
            return ToolResult({"success": False, "error": str(e)})
        except Exception as e:
            logger.exception("Tool %s raised unexpectedly", name)
            raise ToolExecutionError(name, str(e)) from e


def build_tool_registry(context: ToolContext) -> ToolRegistry:
    """Assemble the registry for one turn from the declared tools."""
    registry = ToolRegistry(context)
    logger.debug("Tool registry: %s", ", ".join(registry.names))
    return registry
