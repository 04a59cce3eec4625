"""Result models for ticket lifecycle operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pmagent.state_store import TicketRecord
from pmagent.tickets.readiness import ReadinessResult


def _ticket_fields(ticket: TicketRecord) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "ticketId": ticket.reference,
        "display_id": ticket.display_id,
        "repo_full_name": ticket.repo_full_name,
        "filename": ticket.filename,
        "title": ticket.title,
        "column_id": ticket.kanban_column_id,
        "position": ticket.kanban_position,
    }


@dataclass
class CreateTicketResult:
    """Outcome of create_ticket.

    Attributes:
        ticket: The stored ticket (after any auto-fix and auto-move).
        readiness: Readiness evaluation of the final body.
        auto_fixed: Whether acceptance-criteria bullets were turned into checkboxes.
        moved_to_todo: Whether the ticket was placed in To Do.
        move_error: Why the automatic move failed, if it did.
        attempts: Insert attempts needed to allocate the number.
    """

    ticket: TicketRecord
    readiness: ReadinessResult
    auto_fixed: bool = False
    moved_to_todo: bool = False
    move_error: str | None = None
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to the tool-facing dictionary."""
        data: dict[str, Any] = {"success": True, **_ticket_fields(self.ticket)}
        data.update(
            ready=self.readiness.ready,
            missingItems=list(self.readiness.missing_items),
            autoFixed=self.auto_fixed,
            movedToTodo=self.moved_to_todo,
        )
        if self.move_error:
            data["moveError"] = self.move_error
        return data


@dataclass
class MoveResult:
    """Outcome of a column transition."""

    ticket: TicketRecord
    from_column: str | None
    to_column: str
    from_repo: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the tool-facing dictionary."""
        data: dict[str, Any] = {"success": True, **_ticket_fields(self.ticket)}
        data["fromColumn"] = self.from_column
        data["movedAt"] = (
            self.ticket.kanban_moved_at.isoformat() if self.ticket.kanban_moved_at else None
        )
        if self.from_repo is not None:
            data["fromRepo"] = self.from_repo
        return data


@dataclass
class UpdateBodyResult:
    """Outcome of update_ticket_body."""

    ticket: TicketRecord
    readiness: ReadinessResult

    def to_dict(self) -> dict[str, Any]:
        """Convert to the tool-facing dictionary."""
        data: dict[str, Any] = {"success": True, **_ticket_fields(self.ticket)}
        data.update(self.readiness.to_dict())
        return data


@dataclass
class ColumnListing:
    """Tickets currently in one column."""

    column_id: str
    tickets: list[TicketRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the tool-facing dictionary."""
        return {
            "success": True,
            "column_id": self.column_id,
            "count": len(self.tickets),
            "tickets": [
                {
                    "id": t.id,
                    "ticketId": t.reference,
                    "title": t.title,
                    "position": t.kanban_position,
                    "repo_full_name": t.repo_full_name,
                }
                for t in self.tickets
            ],
        }
