"""SQLAlchemy models for the ticket store."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime  # noqa: TC003 - used at runtime for SQLAlchemy
from enum import StrEnum
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class KanbanColumn(StrEnum):
    """Kanban column identifiers."""

    UNASSIGNED = "col-unassigned"
    TODO = "col-todo"
    DOING = "col-doing"
    QA = "col-qa"
    HUMAN_IN_THE_LOOP = "col-human-in-the-loop"
    DONE = "col-done"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Ticket(Base):
    """Ticket model - one card on the Kanban board.

    ``repo_full_name``, ``ticket_number``, ``display_id`` and ``pk`` are the
    newer repository-scoping columns; older stores only have the legacy
    global ``id`` and may be missing them entirely.
    """

    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("repo_full_name", "ticket_number", name="uq_tickets_repo_number"),
    )

    # No Python-side defaults: legacy inserts must only render the columns given
    pk: Mapped[str] = mapped_column(String(36), primary_key=True)
    id: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body_md: Mapped[str] = mapped_column(Text, nullable=False)
    kanban_column_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    kanban_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    kanban_moved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    repo_full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ticket_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    display_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id!r}, display_id={self.display_id!r})>"


LEGACY_COLUMNS = (
    Ticket.id,
    Ticket.filename,
    Ticket.title,
    Ticket.body_md,
    Ticket.kanban_column_id,
    Ticket.kanban_position,
    Ticket.kanban_moved_at,
)

SCOPED_COLUMNS = (
    *LEGACY_COLUMNS,
    Ticket.pk,
    Ticket.repo_full_name,
    Ticket.ticket_number,
    Ticket.display_id,
)

SCOPED_FIELDS = frozenset({"pk", "repo_full_name", "ticket_number", "display_id"})


@dataclass
class TicketRecord:
    """Detached snapshot of a ticket row.

    Attributes:
        id: Legacy global id, zero-padded (e.g. "0042").
        filename: Unique document filename.
        title: Ticket title (carries the display id once assigned).
        body_md: Markdown body.
        kanban_column_id: Current column, None for never-placed tickets.
        kanban_position: Order within the column.
        kanban_moved_at: Last column change.
        pk: Opaque primary key (scoped stores only).
        repo_full_name: Owning repository scope (scoped stores only).
        ticket_number: Per-repository sequence number (scoped stores only).
        display_id: Human-facing id, PREFIX-NNNN (scoped stores only).
    """

    id: str
    filename: str
    title: str
    body_md: str
    kanban_column_id: str | None = None
    kanban_position: int | None = None
    kanban_moved_at: datetime | None = None
    pk: str | None = None
    repo_full_name: str | None = None
    ticket_number: int | None = None
    display_id: str | None = None

    @property
    def reference(self) -> str:
        """Identifier shown to users: display id when scoped, else legacy id."""
        return self.display_id or self.id

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        if self.kanban_moved_at is not None:
            data["kanban_moved_at"] = self.kanban_moved_at.isoformat()
        return data


@dataclass
class RepoSummary:
    """A repository scope that owns tickets."""

    repo_full_name: str
    ticket_count: int
