"""Tickets - readiness, identifiers and lifecycle operations."""

from pmagent.tickets.exceptions import (
    IdAllocationError,
    TicketError,
    TicketMoveError,
    TicketValidationError,
)
from pmagent.tickets.identifiers import (
    TicketRef,
    parse_ticket_ref,
    repo_prefix,
    validate_repo_ref,
)
from pmagent.tickets.lifecycle import (
    DEFAULT_REPO,
    MAX_ALLOCATION_ATTEMPTS,
    TicketLifecycle,
)
from pmagent.tickets.models import (
    ColumnListing,
    CreateTicketResult,
    MoveResult,
    UpdateBodyResult,
)
from pmagent.tickets.readiness import ReadinessResult, evaluate_ticket_ready

__all__ = [
    "DEFAULT_REPO",
    "MAX_ALLOCATION_ATTEMPTS",
    "ColumnListing",
    "CreateTicketResult",
    "IdAllocationError",
    "MoveResult",
    "ReadinessResult",
    "TicketError",
    "TicketLifecycle",
    "TicketMoveError",
    "TicketRef",
    "TicketValidationError",
    "UpdateBodyResult",
    "evaluate_ticket_ready",
    "parse_ticket_ref",
    "repo_prefix",
    "validate_repo_ref",
]
