"""Ticket Store - Persistent storage for Kanban tickets."""

from pmagent.state_store.exceptions import (
    DuplicateTicketError,
    ScopingUnsupportedError,
    StateStoreError,
    TicketNotFoundError,
)
from pmagent.state_store.models import (
    KanbanColumn,
    RepoSummary,
    Ticket,
    TicketRecord,
)
from pmagent.state_store.store import TicketStore, is_missing_column_error

__all__ = [
    "DuplicateTicketError",
    "KanbanColumn",
    "RepoSummary",
    "ScopingUnsupportedError",
    "StateStoreError",
    "Ticket",
    "TicketNotFoundError",
    "TicketRecord",
    "TicketStore",
    "is_missing_column_error",
]
