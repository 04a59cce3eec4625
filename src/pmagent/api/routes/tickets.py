"""Read-only ticket and repository endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from pmagent.api.dependencies import SettingsDep, TicketStoreDep
from pmagent.api.models import (
    APIResponse,
    RepoResponse,
    TicketResponse,
    repo_to_response,
    ticket_to_response,
)
from pmagent.state_store import KanbanColumn
from pmagent.tickets import TicketLifecycle

router = APIRouter(tags=["tickets"])


def get_lifecycle(
    store: TicketStoreDep,
    settings: SettingsDep,
    repo: Annotated[str | None, Query(description="Repository scope (owner/name)")] = None,
) -> TicketLifecycle:
    """Lifecycle manager for the requested (or configured) repository scope."""
    return TicketLifecycle(store, repo or settings.repo_full_name)


LifecycleDep = Annotated[TicketLifecycle, Depends(get_lifecycle)]


@router.get("/tickets", response_model=APIResponse[list[TicketResponse]])
def list_tickets(
    lifecycle: LifecycleDep,
    column_id: str = KanbanColumn.TODO.value,
) -> APIResponse[list[TicketResponse]]:
    """List tickets in a Kanban column, ordered by position."""
    listing = lifecycle.list_by_column(column_id)
    return APIResponse(data=[ticket_to_response(t) for t in listing.tickets])


@router.get("/tickets/{ticket_ref}", response_model=APIResponse[TicketResponse])
def get_ticket(ticket_ref: str, lifecycle: LifecycleDep) -> APIResponse[TicketResponse]:
    """Get a ticket by display id, number or legacy id."""
    return APIResponse(data=ticket_to_response(lifecycle.fetch(ticket_ref)))


@router.get("/repos", response_model=APIResponse[list[RepoResponse]])
def list_repos(lifecycle: LifecycleDep) -> APIResponse[list[RepoResponse]]:
    """List repositories that own tickets."""
    return APIResponse(data=[repo_to_response(r) for r in lifecycle.list_repos()])
