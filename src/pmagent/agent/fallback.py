"""Fallback replies for turns where the model produced no text.

Rules are evaluated in order; the first rule that matches any recorded tool
call (most recent call first) formats the reply. Mutations come before reads
so that an action the model took is always reported.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pmagent.agent.tools import ToolCallRecord
from pmagent.tickets.identifiers import strip_display_prefix

NO_TOOLS_REPLY = "I don't have a reply for that. Could you rephrase your request?"


@dataclass(frozen=True)
class FallbackRule:
    """A predicate over one tool call and the reply to give when it matches."""

    predicate: Callable[[ToolCallRecord], bool]
    format: Callable[[ToolCallRecord], str]


def _output(call: ToolCallRecord) -> dict[str, Any]:
    return call.output if isinstance(call.output, dict) else {}


def _input(call: ToolCallRecord) -> dict[str, Any]:
    return call.input if isinstance(call.input, dict) else {}


def _succeeded(*names: str) -> Callable[[ToolCallRecord], bool]:
    return lambda call: call.name in names and _output(call).get("success") is True


def _failed(*names: str) -> Callable[[ToolCallRecord], bool]:
    return lambda call: call.name in names and _output(call).get("success") is False


def _missing(output: dict[str, Any]) -> str:
    return "; ".join(output.get("missingItems") or [])


def _label(ticket: dict[str, Any]) -> str:
    """``ID: title`` with the id shown once even when the title embeds it."""
    title = strip_display_prefix(str(ticket.get("title") or ""))
    return f"{ticket.get('ticketId')}: {title}" if title else str(ticket.get("ticketId"))


def _created(call: ToolCallRecord) -> str:
    out = _output(call)
    reply = f"Created ticket {_label(out)}."
    if out.get("movedToTodo"):
        return reply + " It is ready to start and was moved to To Do."
    if out.get("ready"):
        return reply + f" It is ready, but moving it to To Do failed: {out.get('moveError')}"
    return reply + f" It stays in Unassigned until it is ready. Missing: {_missing(out)}"


def _moved_other_repo(call: ToolCallRecord) -> str:
    out = _output(call)
    return (
        f"Moved ticket {_input(call).get('ticket_id')} to To Do in "
        f"{out.get('repo_full_name')} as {out.get('ticketId')} (position {out.get('position')})."
    )


def _moved(call: ToolCallRecord) -> str:
    out = _output(call)
    return f"Moved ticket {out.get('ticketId')} to To Do (position {out.get('position')})."


def _updated(call: ToolCallRecord) -> str:
    out = _output(call)
    if out.get("ready"):
        return f"Updated ticket {out.get('ticketId')}. It is ready to start."
    return f"Updated ticket {out.get('ticketId')}. Still missing: {_missing(out)}"


def _evaluated(call: ToolCallRecord) -> str:
    out = _output(call)
    if out.get("ready"):
        return "The ticket body meets the Definition of Ready."
    return f"The ticket body is not ready yet. Missing: {_missing(out)}"


def _listed_column(call: ToolCallRecord) -> str:
    out = _output(call)
    tickets = out.get("tickets") or []
    if not tickets:
        return f"There are no tickets in {out.get('column_id')}."
    summary = ", ".join(_label(t) for t in tickets)
    return f"{out.get('column_id')} has {len(tickets)} ticket(s): {summary}."


def _listed_repos(call: ToolCallRecord) -> str:
    repos = _output(call).get("repos") or []
    if not repos:
        return "No repositories have tickets yet."
    summary = ", ".join(f"{r.get('repo_full_name')} ({r.get('ticket_count')})" for r in repos)
    return f"Repositories with tickets: {summary}."


def _fetched(call: ToolCallRecord) -> str:
    out = _output(call)
    return (
        f"Ticket {_label(out)} "
        f"(column: {out.get('kanban_column_id') or 'col-unassigned'})."
    )


def _failure(action: str) -> Callable[[ToolCallRecord], str]:
    return lambda call: f"I couldn't {action}: {_output(call).get('error')}"


def _any_error(call: ToolCallRecord) -> bool:
    return "error" in _output(call)


FALLBACK_RULES: tuple[FallbackRule, ...] = (
    FallbackRule(_succeeded("create_ticket"), _created),
    FallbackRule(_failed("create_ticket"), _failure("create the ticket")),
    FallbackRule(_succeeded("kanban_move_ticket_to_other_repo_todo"), _moved_other_repo),
    FallbackRule(_succeeded("kanban_move_ticket_to_todo"), _moved),
    FallbackRule(
        _failed("kanban_move_ticket_to_todo", "kanban_move_ticket_to_other_repo_todo"),
        _failure("move the ticket"),
    ),
    FallbackRule(_succeeded("update_ticket_body"), _updated),
    FallbackRule(_failed("update_ticket_body"), _failure("update the ticket")),
    FallbackRule(_succeeded("evaluate_ticket_ready"), _evaluated),
    FallbackRule(_succeeded("list_tickets_by_column"), _listed_column),
    FallbackRule(_succeeded("list_available_repos"), _listed_repos),
    FallbackRule(_succeeded("fetch_ticket_content"), _fetched),
    FallbackRule(_any_error, lambda call: f"The {call.name} tool failed: {_output(call)['error']}"),
)


def fallback_reply(
    tool_calls: list[ToolCallRecord],
    rules: tuple[FallbackRule, ...] = FALLBACK_RULES,
) -> str:
    """Deterministic reply describing what the turn's tool calls did."""
    if not tool_calls:
        return NO_TOOLS_REPLY
    recent_first = list(reversed(tool_calls))
    for rule in rules:
        for call in recent_first:
            if rule.predicate(call):
                return rule.format(call)
    return (
        f"I ran {len(tool_calls)} tool call(s) but have no summary to give. "
        "The tool output is available in the diagnostics."
    )
